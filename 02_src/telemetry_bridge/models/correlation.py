"""Cross-telemetry correlation models."""

from dataclasses import dataclass, field
from typing import Any

from ..errors import PartialResultWarning
from ..timerange import TimeRange
from .dependencies import ServiceEdge
from .telemetry import LogRecord, MetricRecord
from .trace import Trace


@dataclass(frozen=True)
class CorrelationContext:
    """What to correlate: a time window plus optional trace, span and service."""

    time_range: TimeRange
    trace_id: str | None = None
    service: str | None = None
    span_id: str | None = None


@dataclass(frozen=True)
class CorrelationOptions:
    max_results: int = 10
    include_context: bool = True


@dataclass
class CorrelationResult:
    """Stitched view across signals. ``None`` fields were not fetched."""

    logs: list[LogRecord] | None = None
    traces: list[Trace] | None = None
    metrics: list[MetricRecord] | None = None
    relationships: list[ServiceEdge] | None = None
    context: dict[str, Any] | None = None
    warnings: list[PartialResultWarning] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"warnings": [w.to_dict() for w in self.warnings]}
        if self.logs is not None:
            data["logs"] = [r.to_dict() for r in self.logs]
        if self.traces is not None:
            data["traces"] = [t.to_dict() for t in self.traces]
        if self.metrics is not None:
            data["metrics"] = [m.to_dict() for m in self.metrics]
        if self.relationships is not None:
            data["relationships"] = [e.to_dict() for e in self.relationships]
        if self.context is not None:
            data["context"] = self.context
        return data
