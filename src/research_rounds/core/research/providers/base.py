"""Abstract interfaces for the external collaborators of the research engine.

The round controller never talks to a network or a model directly. It
consumes two interfaces:

- ``SearchProvider``: raw citation retrieval for a query string.
- ``TextGenerationProvider``: free-text completion used to propose
  research questions and per-question insights.

Both are plain ABCs so that concrete backends can be injected and tests
can substitute fakes.

Example usage:
    class StaticSearchProvider(SearchProvider):
        def get_provider_name(self) -> str:
            return "static"

        async def search(
            self,
            query: str,
            max_results: int = 10,
            **kwargs: Any,
        ) -> list[CitationResult]:
            return self._results[:max_results]
"""

from abc import ABC, abstractmethod
from typing import Any

from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.providers.resilience import (
    ErrorClassification,
    classify_error,
)


class SearchProvider(ABC):
    """Abstract base class for search providers.

    Subclasses should:
    - Implement get_provider_name() to return a unique identifier
    - Implement search() to execute one query against the backend
    - Optionally override classify_error() for provider-specific handling

    Providers perform a single attempt per call. Pacing, retries, query
    rewriting and timeouts are the search executor's job, so a provider
    should simply raise (preferably a ``SearchProviderError``) or return
    an empty list.
    """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the unique identifier for this provider.

        Returns:
            Provider name (e.g., "tavily")
        """
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        max_results: int = 10,
        **kwargs: Any,
    ) -> list[CitationResult]:
        """Execute a search query and return citations.

        Args:
            query: The search query string
            max_results: Maximum number of results to return (default: 10)
            **kwargs: Provider-specific options

        Returns:
            List of CitationResult objects, possibly empty

        Raises:
            SearchProviderError: If the search fails
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available and properly configured.

        Default implementation returns True.
        """
        return True

    def classify_error(self, error: Exception) -> ErrorClassification:
        """Classify an error for retry decisions.

        Default implementation delegates to the shared classifier, which
        trusts typed ``SearchProviderError`` subclasses first and falls
        back to HTTP-style message patterns.
        """
        return classify_error(error)


class TextGenerationProvider(ABC):
    """Abstract base class for text generation providers.

    The engine treats any exception or blank output from ``complete`` as a
    text generation failure and falls back to template questions, so
    implementations need not retry internally.
    """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the unique identifier for this provider."""
        ...

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Complete a prompt and return the raw generated text.

        Raises:
            TextGenerationError: If generation fails
        """
        ...
