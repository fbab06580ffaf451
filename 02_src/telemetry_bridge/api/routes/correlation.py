"""Correlation API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter

from ...app import IApplication
from ...errors import TelemetryError
from ...models import CorrelationContext, CorrelationOptions
from ...timerange import parse_time_range
from ..errors import http_error, raise_for_error


class CorrelateRequest(BaseModel):
    """Request model for cross-telemetry correlation."""

    start: str = "now-1h"
    end: str = "now"
    trace_id: str | None = None
    span_id: str | None = None
    service: str | None = None
    max_results: int = Field(10, ge=1, le=1000)
    include_context: bool = True


def create_correlation_router(app: IApplication) -> APIRouter:
    """Create correlation router."""
    router = APIRouter(prefix="/api", tags=["correlation"])

    @router.post("/correlate")
    async def correlate(request: CorrelateRequest) -> dict[str, Any]:
        """Logs, traces, metrics and relationships around a trace or service."""
        try:
            time_range = parse_time_range(request.start, request.end)
        except TelemetryError as e:
            raise http_error(e.to_result())

        context = CorrelationContext(
            time_range=time_range,
            trace_id=request.trace_id,
            span_id=request.span_id,
            service=request.service,
        )
        options = CorrelationOptions(
            max_results=request.max_results,
            include_context=request.include_context,
        )
        result = raise_for_error(await app.correlator.correlate_across_telemetry(context, options))
        return result.to_dict()

    return router
