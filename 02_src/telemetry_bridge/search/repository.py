"""Index-pattern aware data access for spans, logs and metrics."""

from typing import Any, Iterable, Protocol

from ..config import BackendSettings
from ..errors import BackendError
from ..logging_config import get_logger
from ..models import LogRecord, MetricRecord, ServiceSummary, Span
from ..schema import normalize_log, normalize_metric, normalize_span
from ..timerange import TimeRange
from . import queries
from .client import ISearchClient

logger = get_logger(__name__)


def extract_hits(response: Any) -> list[dict[str, Any]]:
    """Return ``hits.hits`` from a search response.

    Raises:
        BackendError: if the payload doesn't have the expected shape.
    """
    hits = response.get("hits") if isinstance(response, dict) else None
    items = hits.get("hits") if isinstance(hits, dict) else None
    if not isinstance(items, list):
        raise BackendError("Malformed search response: missing hits.hits")
    return [h for h in items if isinstance(h, dict)]


def extract_sources(response: Any) -> list[dict[str, Any]]:
    return [h["_source"] for h in extract_hits(response) if isinstance(h.get("_source"), dict)]


def extract_total(response: Any) -> int:
    hits = response.get("hits") if isinstance(response, dict) else None
    total = hits.get("total") if isinstance(hits, dict) else None
    if isinstance(total, dict):
        total = total.get("value")
    if isinstance(total, int) and not isinstance(total, bool):
        return total
    raise BackendError("Malformed search response: missing hits.total")


def _normalize_spans(sources: Iterable[dict[str, Any]]) -> list[Span]:
    spans = []
    skipped = 0
    for source in sources:
        span = normalize_span(source)
        if span is None:
            skipped += 1
            continue
        spans.append(span)
    if skipped:
        logger.debug("Skipped %s malformed span documents", skipped)
    return spans


class ISpanRepository(Protocol):
    """Query access to span, log and metric documents."""

    async def fetch_trace_spans(self, trace_id: str) -> list[Span]:
        """All spans of one trace, in start-time order."""
        ...

    async def fetch_span(self, span_id: str) -> Span | None:
        """A single span by id."""
        ...

    async def fetch_spans(self, time_range: TimeRange) -> list[Span]:
        """All spans in a time window."""
        ...

    async def count_spans(self, time_range: TimeRange) -> int:
        """Total span documents in a time window."""
        ...

    async def fetch_logs(
        self,
        time_range: TimeRange,
        trace_id: str | None = None,
        span_ids: Iterable[str] | None = None,
        service: str | None = None,
        limit: int = 10,
    ) -> list[LogRecord]:
        """Logs matching a trace, span ids or service."""
        ...

    async def fetch_metrics(
        self, time_range: TimeRange, service: str, limit: int = 10
    ) -> list[MetricRecord]:
        """Metric documents for a service."""
        ...

    async def fetch_error_buckets(
        self, time_range: TimeRange, limit: int = 10
    ) -> list[dict[str, Any]]:
        """Raw terms-aggregation buckets of error spans grouped by message."""
        ...

    async def discover_services(
        self, time_range: TimeRange, limit: int = 1000
    ) -> list[ServiceSummary]:
        """Services that emitted spans in a time window, busiest first."""
        ...


class SpanRepository:
    """``ISpanRepository`` backed by a search client."""

    def __init__(self, client: ISearchClient, settings: BackendSettings | None = None):
        self._client = client
        self._settings = settings or BackendSettings()

    async def fetch_trace_spans(self, trace_id: str) -> list[Span]:
        response = await self._client.search(
            self._settings.traces_index, queries.trace_spans_request(trace_id)
        )
        return _normalize_spans(extract_sources(response))

    async def fetch_span(self, span_id: str) -> Span | None:
        response = await self._client.search(
            self._settings.traces_index, queries.span_request(span_id)
        )
        spans = _normalize_spans(extract_sources(response))
        return spans[0] if spans else None

    async def fetch_spans(self, time_range: TimeRange) -> list[Span]:
        """Page through the window with ``search_after``, up to ``max_pages`` pages."""
        page_size = self._settings.page_size
        spans: list[Span] = []
        search_after = None

        for page in range(self._settings.max_pages):
            response = await self._client.search(
                self._settings.traces_index,
                queries.spans_page_request(time_range, page_size, search_after),
            )
            hits = extract_hits(response)
            spans.extend(
                _normalize_spans(h["_source"] for h in hits if isinstance(h.get("_source"), dict))
            )
            if len(hits) < page_size:
                break
            search_after = hits[-1].get("sort")
            if not search_after:
                break
        else:
            logger.warning(
                "Stopped paging spans at max pages",
                extra={"context": {"max_pages": self._settings.max_pages, "spans": len(spans)}},
            )

        logger.info(
            "Fetched spans",
            extra={"context": {"count": len(spans), "range": time_range.to_dict()}},
        )
        return spans

    async def count_spans(self, time_range: TimeRange) -> int:
        response = await self._client.search(
            self._settings.traces_index, queries.count_request(time_range)
        )
        return extract_total(response)

    async def fetch_logs(
        self,
        time_range: TimeRange,
        trace_id: str | None = None,
        span_ids: Iterable[str] | None = None,
        service: str | None = None,
        limit: int = 10,
    ) -> list[LogRecord]:
        response = await self._client.search(
            self._settings.logs_index,
            queries.logs_request(time_range, trace_id, span_ids, service, limit),
        )
        return [normalize_log(source) for source in extract_sources(response)]

    async def fetch_metrics(
        self, time_range: TimeRange, service: str, limit: int = 10
    ) -> list[MetricRecord]:
        response = await self._client.search(
            self._settings.metrics_index,
            queries.metrics_request(time_range, service, limit),
        )
        return [normalize_metric(source) for source in extract_sources(response)]

    async def fetch_error_buckets(
        self, time_range: TimeRange, limit: int = 10
    ) -> list[dict[str, Any]]:
        response = await self._client.search(
            self._settings.traces_index,
            queries.error_buckets_request(time_range, limit),
        )
        aggregations = response.get("aggregations") if isinstance(response, dict) else None
        agg = aggregations.get("error_messages") if isinstance(aggregations, dict) else None
        buckets = agg.get("buckets") if isinstance(agg, dict) else None
        if not isinstance(buckets, list):
            raise BackendError("Malformed search response: missing error_messages buckets")
        return buckets

    async def discover_services(
        self, time_range: TimeRange, limit: int = 1000
    ) -> list[ServiceSummary]:
        response = await self._client.search(
            self._settings.traces_index,
            queries.services_request(time_range, limit),
        )
        aggregations = response.get("aggregations") if isinstance(response, dict) else None
        agg = aggregations.get("services") if isinstance(aggregations, dict) else None
        buckets = agg.get("buckets") if isinstance(agg, dict) else None
        if not isinstance(buckets, list):
            raise BackendError("Malformed search response: missing services buckets")

        services = []
        for bucket in buckets:
            if not isinstance(bucket, dict) or bucket.get("key") in (None, ""):
                continue
            errors = bucket.get("errors")
            services.append(
                ServiceSummary(
                    service=str(bucket["key"]),
                    span_count=int(bucket.get("doc_count") or 0),
                    error_count=int(errors.get("doc_count") or 0) if isinstance(errors, dict) else 0,
                )
            )
        logger.info(
            "Discovered services",
            extra={"context": {"count": len(services), "range": time_range.to_dict()}},
        )
        return services
