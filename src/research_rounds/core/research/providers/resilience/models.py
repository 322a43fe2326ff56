"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- ErrorType enum for error classification
- RetryPolicy for per-query retry tuning
- ErrorClassification for retry decisions
- SleepFunc / ClockFunc protocols for injectable time
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class ErrorType(str, Enum):
    """Classification of error types for resilience decisions."""

    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for a single search query.

    Retry ``n`` (0-based, counted after the first attempt) waits
    ``base_delay * exponential_base**n`` seconds, capped at ``max_delay``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.0  # Fractional jitter range around the delay (0.5 => 50-150%)


@dataclass
class ErrorClassification:
    """Classification result for an error.

    Determines whether the executor should try the query again.
    """

    retryable: bool
    backoff_seconds: Optional[float] = None
    error_type: ErrorType = ErrorType.UNKNOWN


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


class ClockFunc(Protocol):
    """Protocol for injectable monotonic clock."""

    def __call__(self) -> float: ...
