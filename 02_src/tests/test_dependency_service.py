"""Tests for DependencyService."""

import pytest

from conftest import FakeRepository
from telemetry_bridge.dependencies import DependencyService
from telemetry_bridge.dependencies.service import primary_service, to_error_bucket
from telemetry_bridge.errors import ErrorKind, ErrorResult

START = "2024-01-01T00:00:00Z"
END = "2024-01-01T01:00:00Z"


def _bucket(key, count, services=(), source=None):
    bucket = {
        "key": key,
        "doc_count": count,
        "services": {"buckets": [{"key": s, "doc_count": c} for s, c in services]},
    }
    if source is not None:
        bucket["top_hit"] = {"hits": {"hits": [{"_source": source}]}}
    return bucket


@pytest.fixture
def service(repository):
    return DependencyService(repository)


class TestServiceDependencyGraph:
    """Tests for DependencyService.service_dependency_graph()."""

    async def test_graph(self, service, repository):
        """Test edges and span counts."""
        repository.total = 6
        graph = await service.service_dependency_graph(START, END)

        assert [(e.parent, e.child) for e in graph.relationships] == [("A", "B"), ("A", "C")]
        assert graph.span_counts.processed == 3
        assert graph.span_counts.total == 6
        assert graph.span_counts.percentage == "50.00%"

    async def test_validates_before_backend(self, service, repository):
        """Test that invalid arguments never reach the repository."""
        result = await service.service_dependency_graph(END, START)
        assert isinstance(result, ErrorResult)
        assert result.kind == ErrorKind.VALIDATION
        assert result.message == "Start time must be before end time"

        result = await service.service_dependency_graph(START, END, sample_rate=2)
        assert result.kind == ErrorKind.VALIDATION
        assert repository.calls == []

    async def test_missing_times(self, service):
        """Test that empty bounds are rejected."""
        result = await service.service_dependency_graph("", END)
        assert result.kind == ErrorKind.VALIDATION
        assert result.message == "Start time and end time are required"

    async def test_count_failure_tolerated(self, service, repository, backend_error):
        """Test that a failed total count reports zero instead of failing."""
        repository.failures["count_spans"] = backend_error
        graph = await service.service_dependency_graph(START, END)

        assert len(graph.relationships) == 2
        assert graph.span_counts.total == 0
        assert graph.span_counts.percentage == "0.00%"

    async def test_fetch_failure_returned(self, service, repository, backend_error):
        """Test that span fetch failures become backend errors."""
        repository.failures["fetch_spans"] = backend_error
        result = await service.service_dependency_graph(START, END)

        assert result.kind == ErrorKind.BACKEND
        assert result.details["status"] == 504


class TestServiceDependencies:
    """Tests for DependencyService.service_dependencies()."""

    async def test_filters_by_service(self, service, time_range):
        """Test that only edges touching the service are returned."""
        edges = await service.service_dependencies("B", time_range)
        assert [(e.parent, e.child) for e in edges] == [("A", "B")]


class TestTopErrors:
    """Tests for top error buckets."""

    def test_primary_service_highest_count(self):
        """Test that the most frequent service wins."""
        assert primary_service(_bucket("E", 5, [("a", 1), ("b", 4)])) == "b"

    def test_primary_service_tie_is_lexicographic(self):
        """Test stable tie breaking."""
        assert primary_service(_bucket("E", 4, [("zeta", 2), ("alpha", 2)])) == "alpha"

    def test_primary_service_falls_back_to_top_hit(self):
        """Test fallback to the sample document and then to unknown."""
        bucket = _bucket("E", 1, source={"service": {"name": "cart"}})
        assert primary_service(bucket) == "cart"
        assert primary_service(_bucket("E", 1)) == "unknown"

    def test_to_error_bucket(self):
        """Test metadata extraction from the sample document."""
        bucket = _bucket(
            "timeout",
            3,
            [("cart", 3)],
            source={"@timestamp": "2024-01-01T00:00:00Z", "TraceId": "t1", "SpanId": "s1"},
        )
        result = to_error_bucket(bucket)

        assert result.error == "timeout"
        assert result.count == 3
        assert result.service == "cart"
        assert result.trace_id == "t1"
        assert result.span_id == "s1"

    async def test_top_errors(self, service, repository):
        """Test the entry point."""
        repository.error_buckets = [_bucket("boom", 2, [("api", 2)])]
        buckets = await service.top_errors(START, END, limit=5)

        assert [b.error for b in buckets] == ["boom"]
        assert repository.calls[-1][0] == "fetch_error_buckets"
        assert repository.calls[-1][2] == 5


class TestDiscoverServices:
    """Tests for DependencyService.discover_services()."""

    async def test_discover_services(self, service, repository):
        """Test that services are listed busiest first."""
        services = await service.discover_services(START, END)

        assert [s.service for s in services] == ["A", "B", "C"]
        assert all(s.span_count == 1 for s in services)
        assert repository.called("discover_services")

    async def test_invalid_range(self, service, repository):
        """Test that a reversed range is rejected before any query."""
        result = await service.discover_services(END, START)

        assert isinstance(result, ErrorResult)
        assert result.kind == ErrorKind.VALIDATION
        assert repository.calls == []

    async def test_backend_failure(self, service, repository, backend_error):
        """Test that a failed aggregation is returned as a backend error."""
        repository.failures["discover_services"] = backend_error
        result = await service.discover_services(START, END)
        assert result.kind == ErrorKind.BACKEND


class TestDependencyOverview:
    """Tests for DependencyService.dependency_overview()."""

    async def test_overview(self, service, repository):
        """Test that graph, tree and top errors are combined."""
        repository.error_buckets = [_bucket("boom", 2, [("B", 2)])]
        overview = await service.dependency_overview(START, END)

        assert overview.tree.root_services == ("A",)
        assert [b.service for b in overview.top_errors] == ["B"]
        assert overview.warnings == []

    async def test_top_errors_failure_is_isolated(self, service, repository, backend_error):
        """Test that a failed error aggregation only drops that part."""
        repository.failures["fetch_error_buckets"] = backend_error
        overview = await service.dependency_overview(START, END)

        assert overview.top_errors is None
        assert len(overview.relationships) == 2
        assert [w.field for w in overview.warnings] == ["top_errors"]
        assert overview.warnings[0].kind == ErrorKind.PARTIAL_RESULT
        assert "top_errors" not in overview.to_dict()

    async def test_graph_failure_fails_overview(self, service, repository, backend_error):
        """Test that the graph is required."""
        repository.failures["fetch_spans"] = backend_error
        result = await service.dependency_overview(START, END)
        assert result.kind == ErrorKind.BACKEND
