"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from telemetry_bridge.errors import BackendError  # noqa: E402
from telemetry_bridge.models import (  # noqa: E402
    LogRecord,
    MetricRecord,
    ServiceSummary,
    Span,
    StatusCode,
)
from telemetry_bridge.timerange import TimeRange  # noqa: E402

BASE_NS = 1_700_000_000_000_000_000


def make_span(
    span_id: str,
    parent: str | None = None,
    service: str = "svc",
    start_ms: int = 0,
    duration_ms: int = 10,
    error: bool = False,
    trace_id: str = "t1",
    kind: str = "INTERNAL",
    name: str = "op",
) -> Span:
    """Build a span with millisecond offsets from a fixed base time."""
    start = BASE_NS + start_ms * 1_000_000
    duration = duration_ms * 1_000_000
    return Span(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=parent,
        service=service,
        operation_name=name,
        start_time_ns=start,
        end_time_ns=start + duration,
        duration_ns=duration,
        status=StatusCode.ERROR if error else StatusCode.UNSET,
        kind=kind,
    )


class FakeRepository:
    """In-memory ISpanRepository. Methods listed in ``failures`` raise."""

    def __init__(self, spans=None, logs=None, metrics=None, error_buckets=None, total=None):
        self.spans: list[Span] = list(spans or [])
        self.logs: list[LogRecord] = list(logs or [])
        self.metrics: list[MetricRecord] = list(metrics or [])
        self.error_buckets: list[dict] = list(error_buckets or [])
        self.total = total
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def called(self, name) -> bool:
        return any(c[0] == name for c in self.calls)

    async def fetch_trace_spans(self, trace_id):
        self._record("fetch_trace_spans", trace_id)
        return [s for s in self.spans if s.trace_id == trace_id]

    async def fetch_span(self, span_id):
        self._record("fetch_span", span_id)
        return next((s for s in self.spans if s.span_id == span_id), None)

    async def fetch_spans(self, time_range):
        self._record("fetch_spans", time_range)
        return list(self.spans)

    async def count_spans(self, time_range):
        self._record("count_spans", time_range)
        return self.total if self.total is not None else len(self.spans)

    async def fetch_logs(self, time_range, trace_id=None, span_ids=None, service=None, limit=10):
        self._record("fetch_logs", time_range, trace_id, list(span_ids or []), service, limit)
        span_ids = set(span_ids or [])
        matched = [
            r for r in self.logs
            if (trace_id and r.trace_id == trace_id) or (r.span_id in span_ids)
        ]
        return matched[:limit]

    async def fetch_metrics(self, time_range, service, limit=10):
        self._record("fetch_metrics", time_range, service, limit)
        return [m for m in self.metrics if m.service == service][:limit]

    async def fetch_error_buckets(self, time_range, limit=10):
        self._record("fetch_error_buckets", time_range, limit)
        return self.error_buckets[:limit]

    async def discover_services(self, time_range, limit=1000):
        self._record("discover_services", time_range, limit)
        counts: dict[str, list[int]] = {}
        for span in self.spans:
            entry = counts.setdefault(span.service, [0, 0])
            entry[0] += 1
            entry[1] += int(span.is_error)
        ordered = sorted(counts.items(), key=lambda item: item[1][0], reverse=True)
        return [ServiceSummary(name, spans, errors) for name, (spans, errors) in ordered][:limit]


class FakeSearchClient:
    """ISearchClient returning queued responses and recording requests."""

    def __init__(self, responses=None):
        self.responses: list = list(responses or [])
        self.requests: list[tuple[str, dict]] = []
        self.closed = False
        self.available = True

    async def search(self, index, body):
        self.requests.append((index, body))
        if not self.responses:
            return {"hits": {"total": {"value": 0}, "hits": []}}
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def ping(self):
        return self.available

    async def close(self):
        self.closed = True


def hits(*sources, total=None):
    """Search response wrapping ``sources`` as hits."""
    return {
        "hits": {
            "total": {"value": total if total is not None else len(sources), "relation": "eq"},
            "hits": [{"_source": s, "sort": [i]} for i, s in enumerate(sources)],
        }
    }


@pytest.fixture
def time_range():
    """One-hour window."""
    return TimeRange(
        start=datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
        end=datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def three_span_trace():
    """Root r (service A) with children c1 (B, 50ms) and c2 (C, 10ms)."""
    return [
        make_span("r", None, "A", start_ms=0, duration_ms=100),
        make_span("c1", "r", "B", start_ms=10, duration_ms=50),
        make_span("c2", "r", "C", start_ms=20, duration_ms=10),
    ]


@pytest.fixture
def repository(three_span_trace):
    return FakeRepository(spans=three_span_trace)


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def backend_error():
    return BackendError("Search backend error: timeout", status=504)
