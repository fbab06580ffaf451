"""Dependency graph entry points backed by a span repository."""

import asyncio
from typing import Any

from ..errors import (
    ErrorResult,
    PartialResultWarning,
    TelemetryError,
    error_from_exception,
)
from ..logging_config import get_logger
from ..models import (
    DependencyGraph,
    DependencyOverview,
    ErrorBucket,
    ServiceEdge,
    ServiceSummary,
    SpanCounts,
)
from ..schema import UNKNOWN_SERVICE, LogicalField, lookup, resolve_alias
from ..search import ISpanRepository
from ..timerange import TimeRange, parse_time_range
from .graph import DependencyGraphBuilder, validate_sample_rate

logger = get_logger(__name__)


def primary_service(bucket: dict[str, Any]) -> str:
    """Service most represented in an error bucket.

    Highest document count wins; equal counts go to the lexicographically
    smallest name so the choice is stable across runs.
    """
    candidates = lookup(bucket, "services.buckets") or []
    best: tuple[int, str] | None = None
    for candidate in candidates:
        if not isinstance(candidate, dict) or candidate.get("key") in (None, ""):
            continue
        name = str(candidate["key"])
        count = int(candidate.get("doc_count") or 0)
        if best is None or count > best[0] or (count == best[0] and name < best[1]):
            best = (count, name)
    if best is not None:
        return best[1]

    top = _top_hit_source(bucket)
    service = resolve_alias(top, LogicalField.SERVICE_NAME) if top else None
    return str(service) if service else UNKNOWN_SERVICE


def _top_hit_source(bucket: dict[str, Any]) -> dict[str, Any] | None:
    hits = lookup(bucket, "top_hit.hits.hits")
    if isinstance(hits, list) and hits and isinstance(hits[0].get("_source"), dict):
        return hits[0]["_source"]
    return None


def to_error_bucket(bucket: dict[str, Any]) -> ErrorBucket:
    source = _top_hit_source(bucket) or {}
    timestamp = resolve_alias(source, LogicalField.TIMESTAMP)
    trace_id = resolve_alias(source, LogicalField.TRACE_ID)
    span_id = resolve_alias(source, LogicalField.SPAN_ID)
    return ErrorBucket(
        error=str(bucket.get("key", "Unknown error")),
        count=int(bucket.get("doc_count") or 0),
        service=primary_service(bucket),
        timestamp=str(timestamp) if timestamp is not None else None,
        trace_id=str(trace_id) if trace_id is not None else None,
        span_id=str(span_id) if span_id is not None else None,
    )


class DependencyService:
    """Builds service dependency graphs over a time window."""

    def __init__(
        self,
        repository: ISpanRepository,
        builder: DependencyGraphBuilder | None = None,
    ):
        self._repository = repository
        self._builder = builder or DependencyGraphBuilder()

    async def _count_or_zero(self, time_range: TimeRange) -> int:
        try:
            return await self._repository.count_spans(time_range)
        except TelemetryError as e:
            logger.warning("Span count failed, reporting total as 0: %s", e.message)
            return 0

    async def _graph(self, time_range: TimeRange, sample_rate: float) -> DependencyGraph:
        spans, total = await asyncio.gather(
            self._repository.fetch_spans(time_range),
            self._count_or_zero(time_range),
        )
        edges = self._builder.build_edges(spans, sample_rate)
        logger.info(
            "Built dependency graph",
            extra={
                "context": {
                    "spans": len(spans),
                    "edges": len(edges),
                    "sample_rate": sample_rate,
                }
            },
        )
        return DependencyGraph(
            relationships=edges,
            span_counts=SpanCounts(processed=len(spans), total=total),
        )

    async def service_dependency_graph(
        self, start: Any, end: Any, sample_rate: float = 1.0
    ) -> DependencyGraph | ErrorResult:
        """Edges between services in ``[start, end]`` plus span counts.

        Arguments are validated before any backend call.
        """
        try:
            time_range = parse_time_range(start, end)
            rate = validate_sample_rate(sample_rate)
            return await self._graph(time_range, rate)
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error building dependency graph")
            return error_from_exception(e)

    async def service_dependencies(
        self, service: str, time_range: TimeRange
    ) -> list[ServiceEdge]:
        """Edges in which ``service`` is the caller or the callee.

        Raises:
            TelemetryError: if the backend query fails.
        """
        graph = await self._graph(time_range, 1.0)
        return [e for e in graph.relationships if service in (e.parent, e.child)]

    async def discover_services(
        self, start: Any, end: Any, limit: int = 1000
    ) -> list[ServiceSummary] | ErrorResult:
        """Services with spans in ``[start, end]``, busiest first."""
        try:
            time_range = parse_time_range(start, end)
            return await self._repository.discover_services(time_range, limit)
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error discovering services")
            return error_from_exception(e)

    async def _top_errors(self, time_range: TimeRange, limit: int) -> list[ErrorBucket]:
        buckets = await self._repository.fetch_error_buckets(time_range, limit)
        return [to_error_bucket(b) for b in buckets if isinstance(b, dict)]

    async def top_errors(
        self, start: Any, end: Any, limit: int = 10
    ) -> list[ErrorBucket] | ErrorResult:
        """Most frequent error messages among error spans."""
        try:
            time_range = parse_time_range(start, end)
            return await self._top_errors(time_range, limit)
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error fetching top errors")
            return error_from_exception(e)

    async def dependency_overview(
        self, start: Any, end: Any, sample_rate: float = 1.0, error_limit: int = 10
    ) -> DependencyOverview | ErrorResult:
        """Graph, tree view and top errors in one call.

        A top-errors failure drops that part and records a warning; a graph
        failure fails the whole call.
        """
        try:
            time_range = parse_time_range(start, end)
            rate = validate_sample_rate(sample_rate)
            graph_result, errors_result = await asyncio.gather(
                self._graph(time_range, rate),
                self._top_errors(time_range, error_limit),
                return_exceptions=True,
            )
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error building dependency overview")
            return error_from_exception(e)

        if isinstance(graph_result, BaseException):
            if not isinstance(graph_result, Exception):
                raise graph_result
            return error_from_exception(graph_result)

        overview = DependencyOverview(
            relationships=graph_result.relationships,
            span_counts=graph_result.span_counts,
            tree=self._builder.build_dependency_tree(graph_result.relationships),
        )
        if isinstance(errors_result, BaseException):
            if not isinstance(errors_result, Exception):
                raise errors_result
            message = (
                errors_result.message
                if isinstance(errors_result, TelemetryError)
                else str(errors_result)
            )
            logger.warning("Top errors unavailable: %s", message)
            overview.warnings.append(PartialResultWarning(field="top_errors", message=message))
        else:
            overview.top_errors = errors_result
        return overview

