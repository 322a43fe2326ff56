"""Tests for TavilySearchProvider."""

import httpx
import pytest

from research_rounds.core.errors import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
    SearchTimeoutError,
)
from research_rounds.core.research.providers.resilience import ErrorType
from research_rounds.core.research.providers.tavily import TavilySearchProvider

TAVILY_RESULTS = {
    "results": [
        {
            "title": "Vector databases explained",
            "url": "https://www.example.com/vector",
            "content": "Short snippet",
            "raw_content": "Full page content " * 20,
            "score": 0.87,
            "published_date": "2025-03-01",
        },
        {"title": "Missing url", "url": "", "content": "dropped"},
        {"title": None, "url": "https://docs.example.org/y", "content": "Only snippet", "score": 1.7},
    ]
}


class TestInit:
    """Tests for provider construction."""

    def test_requires_api_key(self, monkeypatch):
        """No key argument and no env var is an error."""
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)
        with pytest.raises(ValueError, match="API key required"):
            TavilySearchProvider()

    def test_reads_env_key(self, monkeypatch):
        """The key falls back to TAVILY_API_KEY."""
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-env")
        assert TavilySearchProvider().get_provider_name() == "tavily"

    def test_invalid_search_depth(self):
        """Only basic and advanced depths are accepted."""
        with pytest.raises(ValueError, match="search_depth"):
            TavilySearchProvider(api_key="k", search_depth="deep")


class TestSearch:
    """Tests for TavilySearchProvider.search."""

    @pytest.mark.asyncio
    async def test_parses_results(self, tavily_provider, mock_response, patched_client):
        """Results become CitationResult objects; url-less entries are skipped."""
        with patched_client(mock_response(json_data=TAVILY_RESULTS)) as client:
            citations = await tavily_provider.search("vector databases", max_results=50)

        payload = client.post.call_args.kwargs["json"]
        assert payload["query"] == "vector databases"
        assert payload["max_results"] == 20
        assert payload["include_raw_content"] is True

        assert len(citations) == 2
        first, second = citations
        assert first.domain == "example.com"
        assert first.snippet == "Short snippet"
        assert first.content.startswith("Full page content")
        assert first.relevance_score == 0.87
        assert first.published_at is not None
        assert second.title == "Untitled"
        assert second.content == "Only snippet"
        assert second.relevance_score == 1.0

    @pytest.mark.asyncio
    async def test_401_is_authentication_error(self, tavily_provider, mock_response, patched_client):
        """401 raises a non-retryable AuthenticationError."""
        with patched_client(mock_response(status_code=401)):
            with pytest.raises(AuthenticationError) as exc_info:
                await tavily_provider.search("q")
        assert exc_info.value.retryable is False
        assert tavily_provider.classify_error(exc_info.value).retryable is False

    @pytest.mark.asyncio
    async def test_429_is_rate_limit_with_retry_after(self, tavily_provider, mock_response, patched_client):
        """429 raises RateLimitError carrying Retry-After."""
        with patched_client(mock_response(status_code=429, headers={"Retry-After": "7"})):
            with pytest.raises(RateLimitError) as exc_info:
                await tavily_provider.search("q")
        assert exc_info.value.retry_after == 7.0
        classification = tavily_provider.classify_error(exc_info.value)
        assert classification.retryable is True
        assert classification.backoff_seconds == 7.0
        assert classification.error_type is ErrorType.RATE_LIMIT

    @pytest.mark.asyncio
    async def test_5xx_retryable(self, tavily_provider, mock_response, patched_client):
        """Server errors are retryable SearchProviderErrors."""
        with patched_client(mock_response(status_code=503, json_data={"error": "overloaded"})):
            with pytest.raises(SearchProviderError) as exc_info:
                await tavily_provider.search("q")
        assert exc_info.value.retryable is True
        assert "overloaded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_4xx_not_retryable(self, tavily_provider, mock_response, patched_client):
        """Other client errors are not retryable."""
        with patched_client(mock_response(status_code=400, text="bad request key=tvly-secret123", raise_json=True)):
            with pytest.raises(SearchProviderError) as exc_info:
                await tavily_provider.search("q")
        assert exc_info.value.retryable is False
        assert "secret123" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_timeout(self, tavily_provider, patched_client):
        """An HTTP timeout surfaces as SearchTimeoutError."""
        with patched_client(httpx.ReadTimeout("timed out")):
            with pytest.raises(SearchTimeoutError):
                await tavily_provider.search("q")

    @pytest.mark.asyncio
    async def test_transport_error_retryable(self, tavily_provider, patched_client):
        """Connection failures are retryable SearchProviderErrors."""
        with patched_client(httpx.ConnectError("refused")):
            with pytest.raises(SearchProviderError) as exc_info:
                await tavily_provider.search("q")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_health_check(self, tavily_provider, mock_response, patched_client):
        """Health check reports API errors as False."""
        with patched_client(mock_response(json_data={"results": []})):
            assert await tavily_provider.health_check() is True
        with patched_client(mock_response(status_code=500)):
            assert await tavily_provider.health_check() is False
