"""Search backend access."""

from .client import ISearchClient, SearchClient
from .repository import ISpanRepository, SpanRepository

__all__ = ["ISearchClient", "SearchClient", "ISpanRepository", "SpanRepository"]
