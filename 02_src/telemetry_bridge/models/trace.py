"""Reconstructed trace structures."""

from dataclasses import dataclass, field
from typing import Any

from .telemetry import Span


@dataclass
class SpanNode:
    """A span with its ordered children."""

    span: Span
    children: list["SpanNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        # Explicit stack: deep traces must not hit the recursion limit.
        out: dict[str, Any] = {"span": self.span.to_dict(), "children": []}
        stack = [(self, out)]
        while stack:
            node, rendered = stack.pop()
            for child in node.children:
                child_out = {"span": child.span.to_dict(), "children": []}
                rendered["children"].append(child_out)
                stack.append((child, child_out))
        return out


@dataclass(frozen=True)
class TraceMetrics:
    """Summary numbers for a trace."""

    total_spans: int
    total_duration_ns: int
    error_count: int
    error_rate: float
    counts_by_kind: dict[str, int]
    counts_by_service: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_spans": self.total_spans,
            "total_duration_ns": self.total_duration_ns,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
            "counts_by_kind": dict(self.counts_by_kind),
            "counts_by_service": dict(self.counts_by_service),
        }


@dataclass(frozen=True)
class Trace:
    """A fully reconstructed trace."""

    trace_id: str
    root_span: Span
    spans: list[Span]
    span_tree: list[SpanNode]
    critical_path: list[Span]
    critical_path_duration_ns: int
    metrics: TraceMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "root_span": self.root_span.to_dict(),
            "spans": [s.to_dict() for s in self.spans],
            "span_tree": [n.to_dict() for n in self.span_tree],
            "critical_path": [s.to_dict() for s in self.critical_path],
            "critical_path_duration_ns": self.critical_path_duration_ns,
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class SpanContext:
    """A span with its immediate neighbours in the trace."""

    span: Span
    parent: Span | None
    children: list[Span]

    def to_dict(self) -> dict[str, Any]:
        return {
            "span": self.span.to_dict(),
            "parent": self.parent.to_dict() if self.parent else None,
            "children": [c.to_dict() for c in self.children],
        }
