"""Search and text generation provider interfaces and implementations."""

from research_rounds.core.research.providers.base import (
    SearchProvider,
    TextGenerationProvider,
)
from research_rounds.core.research.providers.tavily import TavilySearchProvider

__all__ = [
    "SearchProvider",
    "TavilySearchProvider",
    "TextGenerationProvider",
]
