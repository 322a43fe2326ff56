"""Unified error hierarchy for research-rounds.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from research_rounds.core.errors import SearchProviderError
    from research_rounds.core.errors.research import TextGenerationError
"""

# --- Config errors ---
from research_rounds.core.errors.config import ConfigValidationError

# --- Research errors ---
from research_rounds.core.errors.research import (
    CitationValidationError,
    SessionCancelledError,
    TextGenerationError,
)

# --- Search errors ---
from research_rounds.core.errors.search import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
    SearchTimeoutError,
)

__all__ = [
    # Config
    "ConfigValidationError",
    # Research
    "CitationValidationError",
    "SessionCancelledError",
    "TextGenerationError",
    # Search
    "AuthenticationError",
    "RateLimitError",
    "SearchProviderError",
    "SearchTimeoutError",
]
