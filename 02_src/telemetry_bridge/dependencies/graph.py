"""Service dependency graph aggregation."""

import random
from typing import Iterable

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import (
    DependencyEntry,
    NodeMetrics,
    ServiceDependencyTree,
    ServiceEdge,
    ServiceNode,
    Span,
)
from ..schema import UNKNOWN_SERVICE

logger = get_logger(__name__)


def safe_rate(errors: int, calls: int) -> float:
    """``errors / calls`` clamped to [0, 1]; 0 when there are no calls."""
    if calls <= 0:
        return 0.0
    return min(max(errors / calls, 0.0), 1.0)


def validate_sample_rate(sample_rate: float | None) -> float:
    if sample_rate is None:
        return 1.0
    if not 0 <= sample_rate <= 1:
        raise ValidationError(
            "Sample rate must be between 0 and 1", {"sample_rate": sample_rate}
        )
    return float(sample_rate)


class DependencyGraphBuilder:
    """Aggregates parent-to-child service calls from spans."""

    def build_edges(
        self, spans: Iterable[Span], sample_rate: float | None = None
    ) -> list[ServiceEdge]:
        """Count cross-service parent/child span pairs.

        With ``sample_rate`` below 1 each candidate span is kept with that
        probability, drawn from the unseeded module PRNG; sampled results
        are not reproducible between calls.

        Raises:
            ValidationError: if ``sample_rate`` is outside [0, 1].
        """
        rate = validate_sample_rate(sample_rate)
        spans = list(spans)

        services: dict[tuple[str, str], str] = {s.key: s.service for s in spans}

        # Insertion order of the dict is first-seen order of each edge.
        counts: dict[tuple[str, str], list[int]] = {}
        for span in spans:
            if span.parent_span_id is None:
                continue
            parent_service = services.get((span.trace_id, span.parent_span_id))
            if parent_service is None:
                continue
            child_service = span.service
            if parent_service == child_service:
                continue
            if UNKNOWN_SERVICE in (parent_service, child_service):
                continue
            if rate < 1 and random.random() >= rate:
                continue

            entry = counts.setdefault((parent_service, child_service), [0, 0])
            entry[0] += 1
            if span.is_error:
                entry[1] += 1

        edges = [
            ServiceEdge(
                parent=parent,
                child=child,
                count=count,
                error_count=errors,
                error_rate=safe_rate(errors, count),
            )
            for (parent, child), (count, errors) in counts.items()
        ]
        edges.sort(key=lambda e: e.count, reverse=True)
        return edges

    def build_dependency_tree(self, edges: Iterable[ServiceEdge]) -> ServiceDependencyTree:
        """Per-service view with children, parents and call metrics."""
        children: dict[str, list[DependencyEntry]] = {}
        parents: dict[str, list[DependencyEntry]] = {}
        incoming: dict[str, int] = {}
        outgoing: dict[str, int] = {}
        incoming_errors: dict[str, int] = {}
        child_errors: dict[str, int] = {}

        order: dict[str, None] = {}
        for edge in edges:
            for name in (edge.parent, edge.child):
                order.setdefault(name, None)

            children.setdefault(edge.parent, []).append(
                DependencyEntry(edge.child, edge.count, edge.error_count, edge.error_rate)
            )
            parents.setdefault(edge.child, []).append(
                DependencyEntry(edge.parent, edge.count, edge.error_count, edge.error_rate)
            )
            outgoing[edge.parent] = outgoing.get(edge.parent, 0) + edge.count
            incoming[edge.child] = incoming.get(edge.child, 0) + edge.count
            incoming_errors[edge.child] = incoming_errors.get(edge.child, 0) + edge.error_count
            child_errors[edge.parent] = child_errors.get(edge.parent, 0) + edge.error_count

        nodes: dict[str, ServiceNode] = {}
        for name in order:
            node_children = sorted(children.get(name, []), key=lambda e: e.calls, reverse=True)
            node_parents = sorted(parents.get(name, []), key=lambda e: e.calls, reverse=True)
            nodes[name] = ServiceNode(
                children=tuple(node_children),
                parents=tuple(node_parents),
                metrics=NodeMetrics(
                    incoming_calls=incoming.get(name, 0),
                    outgoing_calls=outgoing.get(name, 0),
                    errors=child_errors.get(name, 0),
                    error_rate=safe_rate(child_errors.get(name, 0), outgoing.get(name, 0)),
                    incoming_errors=incoming_errors.get(name, 0),
                ),
            )

        roots = tuple(name for name, node in nodes.items() if not node.parents)
        return ServiceDependencyTree(nodes=nodes, root_services=roots)
