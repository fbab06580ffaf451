"""Trace reconstruction: root detection, span tree, critical path and metrics."""

from collections import Counter
from typing import Iterable

from ..errors import NoSpansFoundError, NotFoundError
from ..logging_config import get_logger
from ..models import Span, SpanContext, SpanNode, Trace, TraceMetrics

logger = get_logger(__name__)

SpanKey = tuple[str, str]


def deduplicate(spans: Iterable[Span]) -> list[Span]:
    """Drop repeated (trace_id, span_id) keys, keeping the first, then sort by start time."""
    seen: set[SpanKey] = set()
    unique = []
    for span in spans:
        if span.key in seen:
            continue
        seen.add(span.key)
        unique.append(span)
    # Stable: equal start times keep backend order.
    unique.sort(key=lambda s: s.start_time_ns)
    return unique


def _parent_key(span: Span) -> SpanKey | None:
    if span.parent_span_id is None:
        return None
    return (span.trace_id, span.parent_span_id)


def children_index(spans: list[Span]) -> dict[SpanKey, list[Span]]:
    """Map each span key to its children, in start-time order."""
    present = {s.key for s in spans}
    children: dict[SpanKey, list[Span]] = {}
    for span in spans:
        parent = _parent_key(span)
        if parent is not None and parent in present:
            children.setdefault(parent, []).append(span)
    return children


def find_root(spans: list[Span]) -> Span:
    """Earliest span whose parent is absent from the set, else the earliest span."""
    present = {s.key for s in spans}
    for span in spans:
        parent = _parent_key(span)
        if parent is None or parent not in present:
            return span
    return spans[0]


def build_span_tree(spans: list[Span], children: dict[SpanKey, list[Span]]) -> list[SpanNode]:
    """Arrange spans into a forest in which every span appears exactly once.

    Spans whose parent is missing become roots. Spans only reachable
    through a parent cycle are promoted to roots in start-time order.
    """
    present = {s.key for s in spans}
    roots = [s for s in spans if _parent_key(s) is None or _parent_key(s) not in present]

    forest: list[SpanNode] = []
    placed: set[SpanKey] = set()

    def attach(top: Span) -> None:
        node = SpanNode(span=top)
        forest.append(node)
        placed.add(top.key)
        stack = [node]
        while stack:
            current = stack.pop()
            for child in children.get(current.span.key, []):
                if child.key in placed:
                    continue
                placed.add(child.key)
                child_node = SpanNode(span=child)
                current.children.append(child_node)
                stack.append(child_node)

    for root in roots:
        attach(root)
    for span in spans:
        if span.key not in placed:
            logger.warning(
                "Span only reachable through a parent cycle, promoting to root",
                extra={"context": {"trace_id": span.trace_id, "span_id": span.span_id}},
            )
            attach(span)
    return forest


def find_critical_path(
    root: Span, children: dict[SpanKey, list[Span]]
) -> tuple[list[Span], int]:
    """Root-to-leaf path with the largest summed span duration.

    Explicit-stack depth-first search. Every frame carries its own
    immutable ancestor set, so a parent cycle ends the branch instead of
    looping. On ties the path found first (earlier children) wins.
    """
    best_path: tuple[Span, ...] = (root,)
    best_total = -1

    stack: list[tuple[Span, frozenset[SpanKey], tuple[Span, ...], int]] = [
        (root, frozenset([root.key]), (root,), root.duration_ns)
    ]
    while stack:
        span, ancestors, path, total = stack.pop()
        next_children = [c for c in children.get(span.key, []) if c.key not in ancestors]
        if not next_children:
            if total > best_total:
                best_total = total
                best_path = path
            continue
        # Reversed so the earliest child is explored first.
        for child in reversed(next_children):
            stack.append(
                (child, ancestors | {child.key}, path + (child,), total + child.duration_ns)
            )

    return list(best_path), max(best_total, 0)


def compute_metrics(spans: list[Span], root: Span) -> TraceMetrics:
    total = len(spans)
    errors = sum(1 for s in spans if s.is_error)
    return TraceMetrics(
        total_spans=total,
        total_duration_ns=max(root.end_time_ns - root.start_time_ns, 0),
        error_count=errors,
        error_rate=errors / total if total else 0.0,
        counts_by_kind=dict(Counter(s.kind or "INTERNAL" for s in spans)),
        counts_by_service=dict(Counter(s.service for s in spans)),
    )


class TraceReconstructor:
    """Builds ``Trace`` objects from flat span lists."""

    def analyze_trace(self, spans: Iterable[Span], trace_id: str | None = None) -> Trace:
        """Reconstruct a trace.

        Raises:
            NoSpansFoundError: if ``spans`` is empty.
        """
        ordered = deduplicate(spans)
        if not ordered:
            raise NoSpansFoundError(trace_id)

        children = children_index(ordered)
        root = find_root(ordered)
        tree = build_span_tree(ordered, children)
        path, path_duration = find_critical_path(root, children)

        logger.debug(
            "Reconstructed trace",
            extra={
                "context": {
                    "trace_id": root.trace_id,
                    "spans": len(ordered),
                    "critical_path_length": len(path),
                }
            },
        )
        return Trace(
            trace_id=trace_id or root.trace_id,
            root_span=root,
            spans=ordered,
            span_tree=tree,
            critical_path=path,
            critical_path_duration_ns=path_duration,
            metrics=compute_metrics(ordered, root),
        )

    def span_context(self, spans: Iterable[Span], span_id: str) -> SpanContext:
        """Locate ``span_id`` and its parent and children.

        Raises:
            NotFoundError: if the span is not in ``spans``.
        """
        ordered = deduplicate(spans)
        target = next((s for s in ordered if s.span_id == span_id), None)
        if target is None:
            raise NotFoundError(f"Span not found: {span_id}", {"span_id": span_id})

        parent = None
        if target.parent_span_id is not None:
            parent = next(
                (
                    s
                    for s in ordered
                    if s.trace_id == target.trace_id and s.span_id == target.parent_span_id
                ),
                None,
            )
        children = children_index(ordered).get(target.key, [])
        return SpanContext(span=target, parent=parent, children=list(children))
