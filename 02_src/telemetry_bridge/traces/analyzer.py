"""Trace analysis entry points backed by a span repository."""

from ..errors import (
    ErrorResult,
    NotFoundError,
    TelemetryError,
    ValidationError,
    error_from_exception,
)
from ..logging_config import get_logger
from ..models import SpanContext, Trace
from ..search import ISpanRepository
from .reconstructor import TraceReconstructor

logger = get_logger(__name__)


def _require_id(value: str | None, label: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{label} is required")


class TraceAnalyzer:
    """Fetches spans and reconstructs traces. Failures are returned, not raised."""

    def __init__(
        self,
        repository: ISpanRepository,
        reconstructor: TraceReconstructor | None = None,
    ):
        self._repository = repository
        self._reconstructor = reconstructor or TraceReconstructor()

    async def analyze_trace(self, trace_id: str) -> Trace | ErrorResult:
        try:
            _require_id(trace_id, "Trace ID")
            spans = await self._repository.fetch_trace_spans(trace_id)
            return self._reconstructor.analyze_trace(spans, trace_id)
        except TelemetryError as e:
            logger.info(
                "Trace analysis failed",
                extra={"context": {"trace_id": trace_id, "kind": e.kind.value}},
            )
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error analyzing trace %s", trace_id)
            return error_from_exception(e)

    async def span_lookup(self, span_id: str) -> SpanContext | ErrorResult:
        """Find a span and its parent and children within its trace."""
        try:
            _require_id(span_id, "Span ID")
            span = await self._repository.fetch_span(span_id)
            if span is None:
                raise NotFoundError(f"Span not found: {span_id}", {"span_id": span_id})
            trace_spans = await self._repository.fetch_trace_spans(span.trace_id)
            return self._reconstructor.span_context([span, *trace_spans], span_id)
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error looking up span %s", span_id)
            return error_from_exception(e)
