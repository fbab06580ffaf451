"""Trace reconstruction."""

from .analyzer import TraceAnalyzer
from .reconstructor import TraceReconstructor, find_critical_path

__all__ = ["TraceAnalyzer", "TraceReconstructor", "find_critical_path"]
