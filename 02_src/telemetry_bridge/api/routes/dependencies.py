"""Service dependency API routes."""

from typing import Any

from fastapi import APIRouter, Query

from ...app import IApplication
from ..errors import raise_for_error


def create_dependencies_router(app: IApplication) -> APIRouter:
    """Create dependencies router."""
    router = APIRouter(prefix="/api", tags=["dependencies"])

    @router.get("/dependencies")
    async def get_dependency_graph(
        start: str = Query("now-1h", description="ISO timestamp or relative expression"),
        end: str = Query("now", description="ISO timestamp or relative expression"),
        sample_rate: float = Query(1.0, description="Fraction of spans to sample"),
    ) -> dict[str, Any]:
        """Service-to-service call edges in a time window."""
        graph = raise_for_error(
            await app.dependencies.service_dependency_graph(start, end, sample_rate)
        )
        return graph.to_dict()

    @router.get("/dependencies/overview")
    async def get_dependency_overview(
        start: str = Query("now-1h"),
        end: str = Query("now"),
        sample_rate: float = Query(1.0),
    ) -> dict[str, Any]:
        """Graph, per-service tree and top errors."""
        overview = raise_for_error(
            await app.dependencies.dependency_overview(start, end, sample_rate)
        )
        return overview.to_dict()

    @router.get("/services")
    async def get_services(
        start: str = Query("now-1h"),
        end: str = Query("now"),
        limit: int = Query(1000, ge=1, le=10000),
    ) -> list[dict[str, Any]]:
        """Services that emitted spans, with span and error counts."""
        services = raise_for_error(await app.dependencies.discover_services(start, end, limit))
        return [s.to_dict() for s in services]

    @router.get("/errors/top")
    async def get_top_errors(
        start: str = Query("now-1h"),
        end: str = Query("now"),
        limit: int = Query(10, ge=1, le=100),
    ) -> list[dict[str, Any]]:
        """Most frequent error messages among error spans."""
        buckets = raise_for_error(await app.dependencies.top_errors(start, end, limit))
        return [b.to_dict() for b in buckets]

    return router
