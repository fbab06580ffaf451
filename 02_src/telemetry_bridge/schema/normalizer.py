"""Schema normalization across OpenTelemetry-native and ECS field conventions.

Documents in the backend may store the same logical value under different
paths (``resource.service.name`` vs ``service.name``), and each path may be
stored flattened (``{"service.name": "a"}``), nested
(``{"service": {"name": "a"}}``) or a mix of both. Resolution walks
``FIELD_ALIASES`` in priority order; the first present, non-empty value
wins. Resolution never raises: every logical field has a documented default.
"""

import json
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..logging_config import get_logger
from ..models import LogRecord, MetricRecord, Span, StatusCode
from ..timerange import format_iso, ns_to_datetime, parse_timestamp_ns

logger = get_logger(__name__)

UNKNOWN_SERVICE = "unknown"
DEFAULT_SPAN_KIND = "INTERNAL"

# 17+ is ERROR in the OpenTelemetry log data model.
ERROR_SEVERITY_NUMBER = 17

POD_NAME_RE = re.compile(r"^([a-z0-9-]+)-[a-z0-9]{9,10}-[a-z0-9]{5}$")

ERROR_STATUS_VALUES = {"2", "error", "status_code_error"}


class LogicalField(str, Enum):
    TIMESTAMP = "timestamp"
    END_TIMESTAMP = "end_timestamp"
    DURATION = "duration"
    SERVICE_NAME = "service_name"
    DEPLOYMENT_NAME = "deployment_name"
    K8S_OBJECT_NAME = "k8s_object_name"
    TRACE_ID = "trace_id"
    SPAN_ID = "span_id"
    PARENT_SPAN_ID = "parent_span_id"
    SEVERITY = "severity"
    SEVERITY_NUMBER = "severity_number"
    MESSAGE = "message"
    OPERATION_NAME = "operation_name"
    SPAN_KIND = "span_kind"
    STATUS_CODE = "status_code"


FIELD_ALIASES: dict[LogicalField, tuple[str, ...]] = {
    LogicalField.TIMESTAMP: ("@timestamp", "timestamp"),
    LogicalField.END_TIMESTAMP: ("EndTimestamp", "end_timestamp", "end_time"),
    LogicalField.DURATION: ("duration", "Duration"),
    LogicalField.SERVICE_NAME: (
        "resource.service.name",
        "service.name",
        "Resource.attributes.service.name",
        "resource.attributes.service.name",
        "Resource.service.name",
    ),
    LogicalField.DEPLOYMENT_NAME: (
        "resource.attributes.k8s.deployment.name",
        "Resource.attributes.k8s.deployment.name",
        "k8s.deployment.name",
        "kubernetes.deployment.name",
    ),
    LogicalField.K8S_OBJECT_NAME: (
        "Body.object.regarding.name",
        "Body.object.involvedObject.name",
        "resource.attributes.k8s.pod.name",
        "Resource.k8s.pod.name",
    ),
    LogicalField.TRACE_ID: ("TraceId", "trace_id", "trace.id", "attributes.trace_id"),
    LogicalField.SPAN_ID: ("SpanId", "span_id", "span.id", "attributes.span_id"),
    LogicalField.PARENT_SPAN_ID: (
        "ParentSpanId",
        "parent_span_id",
        "parent.id",
        "attributes.parent_span_id",
    ),
    LogicalField.SEVERITY: ("SeverityText", "severity_text", "log.level", "severity"),
    LogicalField.SEVERITY_NUMBER: ("SeverityNumber", "severity_number"),
    LogicalField.MESSAGE: ("Body", "body", "message", "exception.message", "error.message"),
    LogicalField.OPERATION_NAME: ("Name", "name", "span.name"),
    LogicalField.SPAN_KIND: ("Kind", "kind", "span.kind"),
    LogicalField.STATUS_CODE: (
        "status.code",
        "Status.code",
        "Status.Code",
        "attributes.otel.status_code",
    ),
}

# Top-level keys not repeated in LogRecord.attributes.
_LOG_RESERVED_KEYS = {"@timestamp", "timestamp", "service", "level", "message", "trace_id", "span_id"}


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def lookup(doc: Any, path: str) -> Any:
    """Read a dotted path from a flattened, nested or mixed document.

    Every split of ``path`` into a literal key prefix and a remaining
    sub-path is tried, longest literal key first. Returns ``None`` when
    nothing non-empty is found.
    """
    if not isinstance(doc, Mapping):
        return None
    if path in doc and _is_present(doc[path]):
        return doc[path]

    parts = path.split(".")
    for i in range(len(parts) - 1, 0, -1):
        head = ".".join(parts[:i])
        nested = doc.get(head)
        if isinstance(nested, Mapping):
            found = lookup(nested, ".".join(parts[i:]))
            if _is_present(found):
                return found
    return None


def resolve_alias(doc: Mapping[str, Any], logical: LogicalField) -> Any:
    """Return the first present alias value for ``logical``, or ``None``."""
    for alias in FIELD_ALIASES.get(logical, ()):
        value = lookup(doc, alias)
        if _is_present(value):
            return value
    return None


def service_from_object_name(name: str) -> str:
    """Derive a service name from a Kubernetes pod name.

    ``frontend-758f7b8695-2r6hv`` -> ``frontend``; anything that doesn't
    look like a ReplicaSet pod falls back to the text before the first dash.
    """
    match = POD_NAME_RE.match(name)
    if match:
        return match.group(1)
    return name.split("-")[0]


def is_error_log(doc: Mapping[str, Any]) -> bool:
    severity = resolve_alias(doc, LogicalField.SEVERITY)
    if isinstance(severity, str) and severity.lower() == "error":
        return True

    number = resolve_alias(doc, LogicalField.SEVERITY_NUMBER)
    try:
        if number is not None and int(number) >= ERROR_SEVERITY_NUMBER:
            return True
    except (TypeError, ValueError):
        pass

    for key in doc:
        if key in ("exception", "error") or key.startswith(("exception.", "error.")):
            return True
    return False


def is_error_status(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    return str(value).strip().lower() in ERROR_STATUS_VALUES


def resolve(doc: Mapping[str, Any], logical: LogicalField) -> Any:
    """Resolve a logical field with its documented default."""
    value = resolve_alias(doc, logical)

    if logical == LogicalField.SERVICE_NAME:
        if _is_present(value):
            return str(value)
        deployment = resolve_alias(doc, LogicalField.DEPLOYMENT_NAME)
        if _is_present(deployment):
            return str(deployment)
        object_name = resolve_alias(doc, LogicalField.K8S_OBJECT_NAME)
        if isinstance(object_name, str) and object_name:
            return service_from_object_name(object_name)
        return UNKNOWN_SERVICE

    if logical == LogicalField.SEVERITY:
        if _is_present(value):
            return str(value).upper()
        return "ERROR" if is_error_log(doc) else "INFO"

    if logical == LogicalField.MESSAGE:
        if value is None:
            return json.dumps(doc, default=str, sort_keys=True)
        return value if isinstance(value, str) else json.dumps(value, default=str)

    return value


def _to_ns(value: Any) -> int | None:
    try:
        return parse_timestamp_ns(value)
    except (OverflowError, ValueError):
        return None


def _span_status(doc: Mapping[str, Any]) -> StatusCode:
    code = resolve_alias(doc, LogicalField.STATUS_CODE)
    if is_error_status(code):
        return StatusCode.ERROR
    if lookup(doc, "attributes.error") is True:
        return StatusCode.ERROR
    if code is not None and str(code).strip().lower() in ("1", "ok", "status_code_ok"):
        return StatusCode.OK
    return StatusCode.UNSET


def _span_kind(doc: Mapping[str, Any]) -> str:
    kind = resolve_alias(doc, LogicalField.SPAN_KIND)
    if not _is_present(kind):
        return DEFAULT_SPAN_KIND
    text = str(kind).upper()
    return text[len("SPAN_KIND_"):] if text.startswith("SPAN_KIND_") else text


def normalize_span(doc: Mapping[str, Any]) -> Span | None:
    """Build a ``Span`` from a raw document, or ``None`` if it's malformed.

    A span needs a trace id and a span id. Missing timing information
    degrades to zero rather than failing.
    """
    trace_id = resolve_alias(doc, LogicalField.TRACE_ID)
    span_id = resolve_alias(doc, LogicalField.SPAN_ID)
    if not _is_present(trace_id) or not _is_present(span_id):
        logger.debug("Skipping span document without trace or span id")
        return None

    start_ns = _to_ns(resolve_alias(doc, LogicalField.TIMESTAMP)) or 0
    end_ns = _to_ns(resolve_alias(doc, LogicalField.END_TIMESTAMP))
    raw_duration = resolve_alias(doc, LogicalField.DURATION)
    try:
        duration_ns = int(float(raw_duration)) if raw_duration is not None else None
    except (TypeError, ValueError):
        duration_ns = None

    if duration_ns is None:
        duration_ns = max(end_ns - start_ns, 0) if end_ns is not None else 0
    if end_ns is None:
        end_ns = start_ns + duration_ns

    parent = resolve_alias(doc, LogicalField.PARENT_SPAN_ID)
    attributes = lookup(doc, "attributes") or lookup(doc, "Attributes") or {}

    return Span(
        trace_id=str(trace_id),
        span_id=str(span_id),
        parent_span_id=str(parent) if _is_present(parent) else None,
        service=resolve(doc, LogicalField.SERVICE_NAME),
        operation_name=str(resolve_alias(doc, LogicalField.OPERATION_NAME) or ""),
        start_time_ns=start_ns,
        end_time_ns=end_ns,
        duration_ns=max(duration_ns, 0),
        status=_span_status(doc),
        kind=_span_kind(doc),
        attributes=dict(attributes) if isinstance(attributes, Mapping) else {},
    )


def _timestamp_text(doc: Mapping[str, Any]) -> str | None:
    raw = resolve_alias(doc, LogicalField.TIMESTAMP)
    if raw is None:
        return None
    value_ns = _to_ns(raw)
    if value_ns is None:
        return str(raw)
    try:
        return format_iso(ns_to_datetime(value_ns))
    except (OverflowError, ValueError):
        return str(raw)


def normalize_log(doc: Mapping[str, Any]) -> LogRecord:
    trace_id = resolve_alias(doc, LogicalField.TRACE_ID)
    span_id = resolve_alias(doc, LogicalField.SPAN_ID)
    return LogRecord(
        timestamp=_timestamp_text(doc),
        service=resolve(doc, LogicalField.SERVICE_NAME),
        level=resolve(doc, LogicalField.SEVERITY),
        message=resolve(doc, LogicalField.MESSAGE),
        trace_id=str(trace_id) if trace_id is not None else None,
        span_id=str(span_id) if span_id is not None else None,
        attributes={k: v for k, v in doc.items() if k not in _LOG_RESERVED_KEYS},
    )


def _numeric_leaves(doc: Mapping[str, Any], prefix: str = "") -> dict[str, float]:
    values: dict[str, float] = {}
    stack = [(prefix, doc)]
    while stack:
        base, current = stack.pop()
        for key, value in current.items():
            path = f"{base}.{key}" if base else str(key)
            if isinstance(value, Mapping):
                stack.append((path, value))
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                values[path] = value
    return dict(sorted(values.items()))


def normalize_metric(doc: Mapping[str, Any]) -> MetricRecord:
    """Build a ``MetricRecord``: every numeric leaf outside the timestamp becomes a value."""
    numeric = {
        path: value
        for path, value in _numeric_leaves(doc).items()
        if path not in FIELD_ALIASES[LogicalField.TIMESTAMP]
    }
    return MetricRecord(
        timestamp=_timestamp_text(doc),
        service=resolve(doc, LogicalField.SERVICE_NAME),
        values=numeric,
        attributes={k: v for k, v in doc.items() if not isinstance(v, (int, float)) or isinstance(v, bool)},
    )
