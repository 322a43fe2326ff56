"""Tests for backoff computation and error classification."""

import asyncio
import random

import pytest

from research_rounds.core.errors import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
    SearchTimeoutError,
)
from research_rounds.core.research.providers.resilience import (
    ErrorType,
    RetryPolicy,
    classify_error,
    compute_backoff_delay,
)


class TestComputeBackoffDelay:
    """Tests for compute_backoff_delay."""

    @pytest.mark.parametrize(("retry_index", "expected"), [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0)])
    def test_exponential(self, retry_index, expected):
        """Retry n waits base * 2**n."""
        assert compute_backoff_delay(RetryPolicy(base_delay=1.0), retry_index) == expected

    def test_capped(self):
        """Delay never exceeds max_delay."""
        policy = RetryPolicy(base_delay=10.0, max_delay=15.0)
        assert compute_backoff_delay(policy, 5) == 15.0

    def test_jitter_bounds(self):
        """Jitter stays within the configured fraction."""
        policy = RetryPolicy(base_delay=2.0, jitter=0.5)
        rng = random.Random(42)
        for _ in range(20):
            assert 1.0 <= compute_backoff_delay(policy, 0, rng) <= 3.0


class TestClassifyError:
    """Tests for classify_error."""

    def test_authentication_not_retryable(self):
        """Auth failures are permanent."""
        result = classify_error(AuthenticationError(provider="tavily"))
        assert result.retryable is False
        assert result.error_type is ErrorType.AUTHENTICATION

    def test_rate_limit_carries_retry_after(self):
        """Retry-After is passed through as the backoff."""
        result = classify_error(RateLimitError(provider="tavily", retry_after=3.0))
        assert result.retryable is True
        assert result.backoff_seconds == 3.0

    @pytest.mark.parametrize("error", [SearchTimeoutError("q", 1.0), asyncio.TimeoutError()])
    def test_timeouts_retryable(self, error):
        """Timeouts are retried."""
        result = classify_error(error)
        assert result.retryable is True
        assert result.error_type is ErrorType.TIMEOUT

    def test_non_retryable_provider_error(self):
        """A provider error flagged non-retryable is not retried."""
        result = classify_error(SearchProviderError("tavily", "API error 400: bad"))
        assert result.retryable is False
        assert result.error_type is ErrorType.INVALID_REQUEST

    @pytest.mark.parametrize(
        ("message", "error_type", "retryable"),
        [
            ("HTTP 429 Too Many Requests", ErrorType.RATE_LIMIT, True),
            ("403 forbidden", ErrorType.AUTHENTICATION, False),
            ("502 bad gateway", ErrorType.SERVER_ERROR, True),
            ("read timed out", ErrorType.TIMEOUT, True),
            ("connection reset by peer", ErrorType.NETWORK, True),
            ("something odd", ErrorType.UNKNOWN, True),
        ],
    )
    def test_message_patterns(self, message, error_type, retryable):
        """Untyped errors are classified from their message."""
        result = classify_error(RuntimeError(message))
        assert result.error_type is error_type
        assert result.retryable is retryable
