"""Shared test fixtures for research provider tests.

Provides a Tavily provider factory and a mock httpx response builder.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest


@pytest.fixture
def tavily_provider():
    """TavilySearchProvider with a test API key."""
    from research_rounds.core.research.providers.tavily import TavilySearchProvider

    return TavilySearchProvider(api_key="tvly-test-key")


def make_mock_response(
    *,
    status_code: int = 200,
    headers: dict | None = None,
    json_data: dict | None = None,
    text: str = "",
    raise_json: bool = False,
) -> MagicMock:
    """Build a mock httpx.Response for provider tests.

    Args:
        status_code: HTTP status code.
        headers: Response headers dict.
        json_data: JSON body (returned by response.json()).
        text: Plain text body.
        raise_json: If True, response.json() raises ValueError.

    Returns:
        MagicMock configured as an httpx.Response.
    """
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text

    if raise_json:
        response.json.side_effect = ValueError("No JSON")
    elif json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.return_value = {}

    return response


@pytest.fixture
def mock_response():
    """Factory fixture around make_mock_response."""
    return make_mock_response


@pytest.fixture
def patched_client():
    """Factory patching httpx.AsyncClient so ``post`` returns or raises ``outcome``.

    Usage::

        with patched_client(response) as client:
            ...
        client.post.assert_called_once()
    """
    from contextlib import contextmanager
    from unittest.mock import patch

    @contextmanager
    def _patch(outcome):
        client = MagicMock()
        if isinstance(outcome, Exception):
            client.post = AsyncMock(side_effect=outcome)
        else:
            client.post = AsyncMock(return_value=outcome)
        with patch("httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
            mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=None)
            yield client

    return _patch
