"""Tests for TelemetryCorrelator."""

import asyncio

import pytest

from conftest import FakeRepository, make_span
from telemetry_bridge.correlation import TelemetryCorrelator
from telemetry_bridge.errors import ErrorKind, is_error_result
from telemetry_bridge.models import (
    CorrelationContext,
    CorrelationOptions,
    LogRecord,
    MetricRecord,
)


def _log(message, trace_id=None, span_id=None, service="B"):
    return LogRecord(
        timestamp="2024-01-01T00:00:00.000Z",
        service=service,
        level="INFO",
        message=message,
        trace_id=trace_id,
        span_id=span_id,
    )


@pytest.fixture
def repository(three_span_trace):
    return FakeRepository(
        spans=three_span_trace,
        logs=[
            _log("by trace", trace_id="t1"),
            _log("by span", span_id="c2"),
            _log("unrelated", trace_id="t9"),
        ],
        metrics=[
            MetricRecord(timestamp=None, service="B", values={"cpu": 0.5}),
            MetricRecord(timestamp=None, service="C", values={"cpu": 0.1}),
        ],
    )


@pytest.fixture
def correlator(repository):
    return TelemetryCorrelator(repository)


class TestCorrelateLogsWithTrace:
    """Tests for correlate_logs_with_trace()."""

    async def test_logs_by_trace_and_span(self, correlator, repository, time_range):
        """Test that logs matching the trace or any of its spans are returned."""
        logs = await correlator.correlate_logs_with_trace("t1", time_range)

        assert [r.message for r in logs] == ["by trace", "by span"]
        call = next(c for c in repository.calls if c[0] == "fetch_logs")
        assert call[2] == "t1"
        assert sorted(call[3]) == ["c1", "c2", "r"]
        assert call[5] == 10

    async def test_missing_trace_propagates(self, time_range):
        """Test that a trace lookup failure is returned as is."""
        correlator = TelemetryCorrelator(FakeRepository())
        result = await correlator.correlate_logs_with_trace("nope", time_range)

        assert result.kind == ErrorKind.NOT_FOUND
        assert "nope" in result.message

    async def test_max_results(self, correlator, repository, time_range):
        """Test that max_results limits the query."""
        logs = await correlator.correlate_logs_with_trace(
            "t1", time_range, CorrelationOptions(max_results=1)
        )
        assert len(logs) == 1

    async def test_invalid_options(self, correlator, time_range):
        """Test that a non-positive limit is rejected."""
        result = await correlator.correlate_logs_with_trace(
            "t1", time_range, CorrelationOptions(max_results=0)
        )
        assert result.kind == ErrorKind.VALIDATION


class TestCorrelateMetricsWithService:
    """Tests for correlate_metrics_with_service()."""

    async def test_metrics_for_service(self, correlator, time_range):
        """Test service-filtered metrics."""
        metrics = await correlator.correlate_metrics_with_service("B", time_range)
        assert [m.values for m in metrics] == [{"cpu": 0.5}]

    async def test_backend_failure(self, correlator, repository, time_range, backend_error):
        """Test that failures are returned as error results."""
        repository.failures["fetch_metrics"] = backend_error
        result = await correlator.correlate_metrics_with_service("B", time_range)
        assert result.kind == ErrorKind.BACKEND


class TestCorrelateAcrossTelemetry:
    """Tests for correlate_across_telemetry()."""

    async def test_trace_only(self, correlator, repository, time_range):
        """Test that a trace id alone yields logs and traces but no service data."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1")
        )

        assert [r.message for r in result.logs] == ["by trace", "by span"]
        assert result.traces[0].trace_id == "t1"
        assert result.metrics is None
        assert result.relationships is None
        assert result.warnings == []
        assert not repository.called("fetch_metrics")
        assert not repository.called("fetch_spans")

    async def test_service_only(self, correlator, repository, time_range):
        """Test that a service alone yields metrics and relationships."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, service="B")
        )

        assert result.logs is None
        assert result.traces is None
        assert len(result.metrics) == 1
        assert [(e.parent, e.child) for e in result.relationships] == [("A", "B")]
        assert not repository.called("fetch_logs")

    async def test_trace_and_service(self, correlator, time_range):
        """Test that all signals are gathered together."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1", service="C")
        )

        assert result.logs is not None
        assert result.traces is not None
        assert [(e.parent, e.child) for e in result.relationships] == [("A", "C")]
        assert result.context["trace_id"] == "t1"
        assert result.context["time_range"] == time_range.to_dict()

    async def test_span_id_resolves_trace(self, correlator, time_range):
        """Test that a span id is used to find its trace."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, span_id="c2")
        )

        assert result.traces[0].trace_id == "t1"
        assert result.context["trace_id"] == "t1"

    async def test_unknown_span_id_warns(self, correlator, time_range):
        """Test that an unresolvable span id becomes a warning."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, span_id="missing")
        )

        assert result.traces is None
        assert [w.field for w in result.warnings] == ["traces"]

    async def test_failing_subquery_is_omitted(
        self, correlator, repository, time_range, backend_error
    ):
        """Test that one failing query leaves the others intact."""
        repository.failures["fetch_metrics"] = backend_error
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1", service="B")
        )

        assert result.metrics is None
        assert result.relationships is not None
        assert result.logs is not None
        assert [w.field for w in result.warnings] == ["metrics"]
        assert result.warnings[0].kind == ErrorKind.PARTIAL_RESULT
        assert "metrics" not in result.to_dict()

    async def test_missing_trace_warns(self, repository, time_range):
        """Test that a missing trace drops logs and traces with warnings."""
        repository.spans = [make_span("x", trace_id="other")]
        correlator = TelemetryCorrelator(repository)
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1")
        )

        assert result.logs is None
        assert result.traces is None
        assert sorted(w.field for w in result.warnings) == ["logs", "traces"]

    async def test_context_can_be_excluded(self, correlator, time_range):
        """Test include_context=False."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, service="B"),
            CorrelationOptions(include_context=False),
        )
        assert result.context is None
        assert "context" not in result.to_dict()

    async def test_empty_context(self, correlator, repository, time_range):
        """Test that nothing is queried without a trace or service."""
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range)
        )

        assert not is_error_result(result)
        assert result.logs is None and result.metrics is None
        assert repository.calls == []

    async def test_cancellation_propagates(self, correlator, repository, time_range):
        """Test that cancellation is not swallowed as a partial result."""
        repository.failures["fetch_metrics"] = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await correlator.correlate_across_telemetry(
                CorrelationContext(time_range=time_range, service="B")
            )

    async def test_log_failure_keeps_trace(self, correlator, repository, time_range):
        """Test that an unexpected log fetch error drops only the logs."""
        repository.failures["fetch_logs"] = OverflowError("date value out of range")
        result = await correlator.correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1")
        )

        assert result.traces[0].trace_id == "t1"
        assert result.logs is None
        assert [w.field for w in result.warnings] == ["logs"]
        assert result.warnings[0].message == "date value out of range"

    async def test_branches_run_concurrently(self, repository, time_range):
        """Test that trace and service queries are in flight at the same time."""
        both_started = asyncio.Event()
        in_flight = set()

        class GatedRepository(FakeRepository):
            async def _wait(self, name):
                in_flight.add(name)
                if {"fetch_trace_spans", "fetch_metrics"} <= in_flight:
                    both_started.set()
                await asyncio.wait_for(both_started.wait(), timeout=1)

            async def fetch_trace_spans(self, trace_id):
                await self._wait("fetch_trace_spans")
                return await super().fetch_trace_spans(trace_id)

            async def fetch_metrics(self, time_range, service, limit=10):
                await self._wait("fetch_metrics")
                return await super().fetch_metrics(time_range, service, limit)

        gated = GatedRepository(spans=repository.spans, metrics=repository.metrics)
        result = await TelemetryCorrelator(gated).correlate_across_telemetry(
            CorrelationContext(time_range=time_range, trace_id="t1", service="B")
        )

        assert result.warnings == []
        assert result.traces is not None
        assert len(result.metrics) == 1
