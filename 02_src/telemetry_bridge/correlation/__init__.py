"""Cross-telemetry correlation."""

from .correlator import TelemetryCorrelator

__all__ = ["TelemetryCorrelator"]
