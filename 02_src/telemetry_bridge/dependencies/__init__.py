"""Service dependency graphs."""

from .graph import DependencyGraphBuilder
from .service import DependencyService

__all__ = ["DependencyGraphBuilder", "DependencyService"]
