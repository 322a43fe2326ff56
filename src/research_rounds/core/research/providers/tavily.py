"""Tavily search provider for web search.

Wraps the Tavily Search API as a ``SearchProvider``. Each call is a single
HTTP attempt; retries, pacing and timeouts belong to the search executor.

Tavily API documentation: https://docs.tavily.com/

Error Handling:
    - 401: AuthenticationError (not retried)
    - 429: RateLimitError (retried, honours Retry-After)
    - 5xx: SearchProviderError(retryable=True)
    - other 4xx: SearchProviderError(retryable=False)
    - request timeout: SearchTimeoutError (retried)

Example usage:
    provider = TavilySearchProvider(api_key="tvly-...")
    citations = await provider.search("kubernetes pod scheduling", max_results=5)
"""

import logging
import os
from typing import Any, Optional

import httpx

from research_rounds.core.errors.search import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
    SearchTimeoutError,
)
from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.providers.base import SearchProvider
from research_rounds.core.research.providers.shared import (
    extract_error_message,
    parse_iso_date,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

# Tavily API constants
TAVILY_API_BASE_URL = "https://api.tavily.com"
TAVILY_SEARCH_ENDPOINT = "/search"
DEFAULT_TIMEOUT = 30.0
MAX_RESULTS_LIMIT = 20

VALID_SEARCH_DEPTHS = frozenset(["basic", "advanced"])


class TavilySearchProvider(SearchProvider):
    """Tavily Search API provider for web search.

    Attributes:
        api_key: Tavily API key (required)
        base_url: API base URL (default: https://api.tavily.com)
        timeout: Request timeout in seconds (default: 30.0)
        search_depth: "basic" or "advanced" (default: "basic")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = TAVILY_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        search_depth: str = "basic",
    ):
        """Initialize Tavily search provider.

        Args:
            api_key: Tavily API key. If not provided, reads from TAVILY_API_KEY env var.
            base_url: API base URL
            timeout: Request timeout in seconds
            search_depth: Search depth level

        Raises:
            ValueError: If no API key is available or search_depth is invalid
        """
        self._api_key = api_key or os.environ.get("TAVILY_API_KEY")
        if not self._api_key:
            raise ValueError(
                "Tavily API key required. Provide via api_key parameter "
                "or TAVILY_API_KEY environment variable."
            )
        if search_depth not in VALID_SEARCH_DEPTHS:
            raise ValueError(
                f"Invalid search_depth: {search_depth!r}. "
                f"Must be one of: {sorted(VALID_SEARCH_DEPTHS)}"
            )

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._search_depth = search_depth

    def get_provider_name(self) -> str:
        return "tavily"

    async def search(
        self,
        query: str,
        max_results: int = 10,
        **kwargs: Any,
    ) -> list[CitationResult]:
        """Execute a web search via Tavily API.

        Args:
            query: The search query string
            max_results: Maximum number of results (clamped to 20)
            **kwargs: Extra Tavily payload fields (e.g. include_domains)

        Returns:
            List of CitationResult objects

        Raises:
            AuthenticationError: If API key is invalid
            RateLimitError: If rate limit exceeded
            SearchTimeoutError: If the HTTP request times out
            SearchProviderError: For other API or transport errors
        """
        payload: dict[str, Any] = {
            "api_key": self._api_key,
            "query": query,
            "max_results": min(max_results, MAX_RESULTS_LIMIT),
            "search_depth": self._search_depth,
            "include_raw_content": True,
            **kwargs,
        }
        url = f"{self._base_url}{TAVILY_SEARCH_ENDPOINT}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise SearchTimeoutError(query, self._timeout) from e
        except httpx.HTTPError as e:
            raise SearchProviderError(
                provider="tavily",
                message=f"Request failed: {e}",
                retryable=True,
                original_error=e,
            ) from e

        if response.status_code == 401:
            raise AuthenticationError(provider="tavily", message="Invalid API key")

        if response.status_code == 429:
            raise RateLimitError(provider="tavily", retry_after=parse_retry_after(response))

        if response.status_code >= 400:
            error_msg = extract_error_message(response)
            raise SearchProviderError(
                provider="tavily",
                message=f"API error {response.status_code}: {error_msg}",
                retryable=response.status_code >= 500,
            )

        return self._parse_response(response.json())

    def _parse_response(self, data: dict[str, Any]) -> list[CitationResult]:
        """Parse Tavily API response into CitationResult objects."""
        citations: list[CitationResult] = []
        for result in data.get("results", []):
            url = result.get("url") or ""
            if not url:
                continue
            citations.append(
                CitationResult(
                    title=result.get("title") or "Untitled",
                    url=url,
                    snippet=result.get("content"),  # Tavily uses "content" for the snippet
                    content=result.get("raw_content") or result.get("content") or "",
                    relevance_score=result.get("score") or 0.0,
                    published_at=parse_iso_date(result.get("published_date")),
                    metadata={"tavily_score": result.get("score")},
                )
            )
        logger.debug("Tavily returned %d results", len(citations))
        return citations

    async def health_check(self) -> bool:
        """Check if Tavily API is accessible with a one-result search."""
        try:
            await self.search("test", max_results=1)
            return True
        except SearchProviderError as e:
            logger.warning("Tavily health check failed: %s", e)
            return False
