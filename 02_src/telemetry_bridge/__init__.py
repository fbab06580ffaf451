"""Telemetry Bridge: trace reconstruction, dependency graphs and telemetry correlation."""

from .app import Application, IApplication
from .config import BackendSettings
from .correlation import TelemetryCorrelator
from .dependencies import DependencyGraphBuilder, DependencyService
from .errors import (
    BackendError,
    ErrorKind,
    ErrorResult,
    NoSpansFoundError,
    NotFoundError,
    PartialResultWarning,
    TelemetryError,
    ValidationError,
)
from .search import ISearchClient, ISpanRepository, SearchClient, SpanRepository
from .timerange import TimeRange, parse_time_range
from .traces import TraceAnalyzer, TraceReconstructor

__all__ = [
    # Application
    "Application",
    "IApplication",
    "BackendSettings",
    # Components
    "ISearchClient",
    "SearchClient",
    "ISpanRepository",
    "SpanRepository",
    "TraceReconstructor",
    "TraceAnalyzer",
    "DependencyGraphBuilder",
    "DependencyService",
    "TelemetryCorrelator",
    # Time
    "TimeRange",
    "parse_time_range",
    # Errors
    "ErrorKind",
    "ErrorResult",
    "PartialResultWarning",
    "TelemetryError",
    "ValidationError",
    "NotFoundError",
    "NoSpansFoundError",
    "BackendError",
]
