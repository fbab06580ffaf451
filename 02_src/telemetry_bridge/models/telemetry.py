"""Normalized telemetry records produced from raw backend documents."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StatusCode(str, Enum):
    """Span status."""

    OK = "OK"
    ERROR = "ERROR"
    UNSET = "UNSET"


@dataclass(frozen=True)
class Span:
    """A single unit of work within a trace. Unique by (trace_id, span_id)."""

    trace_id: str
    span_id: str
    parent_span_id: str | None
    service: str
    operation_name: str
    start_time_ns: int
    end_time_ns: int
    duration_ns: int
    status: StatusCode = StatusCode.UNSET
    kind: str = "INTERNAL"
    attributes: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.trace_id, self.span_id)

    @property
    def is_error(self) -> bool:
        return self.status == StatusCode.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "service": self.service,
            "operation_name": self.operation_name,
            "start_time_ns": self.start_time_ns,
            "end_time_ns": self.end_time_ns,
            "duration_ns": self.duration_ns,
            "status": self.status.value,
            "kind": self.kind,
            "attributes": self.attributes,
        }


@dataclass(frozen=True)
class LogRecord:
    """A normalized log line."""

    timestamp: str | None
    service: str
    level: str
    message: str
    trace_id: str | None = None
    span_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "service": self.service,
            "level": self.level,
            "message": self.message,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "attributes": self.attributes,
        }


@dataclass(frozen=True)
class MetricRecord:
    """A normalized metric document: numeric values keyed by field path."""

    timestamp: str | None
    service: str
    values: dict[str, float] = field(default_factory=dict, compare=False, hash=False)
    attributes: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "service": self.service,
            "values": self.values,
            "attributes": self.attributes,
        }
