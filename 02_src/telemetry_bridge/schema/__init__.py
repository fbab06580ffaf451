"""Schema normalization across OTel and ECS conventions."""

from .normalizer import (
    FIELD_ALIASES,
    UNKNOWN_SERVICE,
    LogicalField,
    lookup,
    normalize_log,
    normalize_metric,
    normalize_span,
    resolve,
    resolve_alias,
)

__all__ = [
    "FIELD_ALIASES",
    "UNKNOWN_SERVICE",
    "LogicalField",
    "lookup",
    "resolve",
    "resolve_alias",
    "normalize_span",
    "normalize_log",
    "normalize_metric",
]
