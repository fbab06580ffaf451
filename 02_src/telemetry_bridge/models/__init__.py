"""Data models for Telemetry Bridge."""

from .telemetry import LogRecord, MetricRecord, Span, StatusCode
from .trace import SpanContext, SpanNode, Trace, TraceMetrics
from .dependencies import (
    DependencyEntry,
    DependencyGraph,
    DependencyOverview,
    ErrorBucket,
    NodeMetrics,
    ServiceDependencyTree,
    ServiceEdge,
    ServiceNode,
    ServiceSummary,
    SpanCounts,
)
from .correlation import CorrelationContext, CorrelationOptions, CorrelationResult

__all__ = [
    # Telemetry
    "Span",
    "StatusCode",
    "LogRecord",
    "MetricRecord",
    # Traces
    "SpanNode",
    "SpanContext",
    "Trace",
    "TraceMetrics",
    # Dependencies
    "ServiceEdge",
    "DependencyEntry",
    "NodeMetrics",
    "ServiceNode",
    "ServiceDependencyTree",
    "SpanCounts",
    "DependencyGraph",
    "ErrorBucket",
    "ServiceSummary",
    "DependencyOverview",
    # Correlation
    "CorrelationContext",
    "CorrelationOptions",
    "CorrelationResult",
]
