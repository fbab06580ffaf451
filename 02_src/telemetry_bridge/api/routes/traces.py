"""Trace API routes."""

from typing import Any

from fastapi import APIRouter

from ...app import IApplication
from ..errors import raise_for_error


def create_traces_router(app: IApplication) -> APIRouter:
    """Create traces router."""
    router = APIRouter(prefix="/api", tags=["traces"])

    @router.get("/traces/{trace_id}")
    async def get_trace(trace_id: str) -> dict[str, Any]:
        """Reconstructed trace with span tree, critical path and metrics."""
        trace = raise_for_error(await app.traces.analyze_trace(trace_id))
        return trace.to_dict()

    @router.get("/spans/{span_id}")
    async def get_span(span_id: str) -> dict[str, Any]:
        """A span with its parent and children."""
        context = raise_for_error(await app.traces.span_lookup(span_id))
        return context.to_dict()

    return router
