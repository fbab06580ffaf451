"""Service dependency graph models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ServiceEdge:
    """Aggregated calls from a parent service to a child service."""

    parent: str
    child: str
    count: int
    error_count: int
    error_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent": self.parent,
            "child": self.child,
            "count": self.count,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
        }


@dataclass(frozen=True)
class DependencyEntry:
    """One neighbour of a service node, referenced by name."""

    service: str
    calls: int
    errors: int
    error_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "calls": self.calls,
            "errors": self.errors,
            "error_rate": self.error_rate,
        }


@dataclass(frozen=True)
class NodeMetrics:
    """Call totals of a service node.

    ``errors`` counts failed calls to the node's children, the same numerator
    as ``error_rate``; ``incoming_errors`` counts failed calls into the node.
    """

    incoming_calls: int
    outgoing_calls: int
    errors: int
    error_rate: float
    incoming_errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "incoming_calls": self.incoming_calls,
            "outgoing_calls": self.outgoing_calls,
            "errors": self.errors,
            "error_rate": self.error_rate,
            "incoming_errors": self.incoming_errors,
        }


@dataclass(frozen=True)
class ServiceNode:
    children: tuple[DependencyEntry, ...]
    parents: tuple[DependencyEntry, ...]
    metrics: NodeMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "children": [c.to_dict() for c in self.children],
            "parents": [p.to_dict() for p in self.parents],
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class ServiceDependencyTree:
    """Per-service adjacency view of a dependency graph."""

    nodes: dict[str, ServiceNode]
    root_services: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {name: node.to_dict() for name, node in self.nodes.items()},
            "root_services": list(self.root_services),
        }


@dataclass(frozen=True)
class SpanCounts:
    """How many spans fed a dependency graph."""

    processed: int
    total: int

    @property
    def percentage(self) -> str:
        if self.total <= 0:
            return "0.00%"
        return f"{self.processed / self.total * 100:.2f}%"

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class DependencyGraph:
    relationships: list[ServiceEdge]
    span_counts: SpanCounts

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationships": [e.to_dict() for e in self.relationships],
            "span_counts": self.span_counts.to_dict(),
        }


@dataclass(frozen=True)
class ErrorBucket:
    """One distinct error message with its frequency."""

    error: str
    count: int
    service: str
    timestamp: str | None = None
    trace_id: str | None = None
    span_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "count": self.count,
            "service": self.service,
            "timestamp": self.timestamp,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
        }


@dataclass(frozen=True)
class ServiceSummary:
    """A service seen in span data, with its span and error-span counts."""

    service: str
    span_count: int
    error_count: int = 0

    @property
    def error_rate(self) -> float:
        return self.error_count / self.span_count if self.span_count > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "span_count": self.span_count,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
        }


@dataclass
class DependencyOverview:
    """Dependency graph, its tree view and the most frequent errors."""

    relationships: list[ServiceEdge]
    span_counts: SpanCounts
    tree: ServiceDependencyTree
    top_errors: list[ErrorBucket] | None = None
    warnings: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "relationships": [e.to_dict() for e in self.relationships],
            "span_counts": self.span_counts.to_dict(),
            "tree": self.tree.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if self.top_errors is not None:
            data["top_errors"] = [b.to_dict() for b in self.top_errors]
        return data
