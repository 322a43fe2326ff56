"""Research workflow error classes."""

from __future__ import annotations

from typing import Optional


# =============================================================================
# Text Generation Errors
# =============================================================================


class TextGenerationError(Exception):
    """Text generation provider failed or returned unusable output.

    Attributes:
        provider: Name of the text generation provider
        message: Human-readable error description
        original_error: The underlying exception if available
    """

    def __init__(
        self,
        provider: str,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        self.provider = provider
        self.message = message
        self.original_error = original_error
        super().__init__(f"[{provider}] {message}")


# =============================================================================
# Evidence Errors
# =============================================================================


class CitationValidationError(ValueError):
    """A citation is malformed or too thin to keep."""

    def __init__(self, reason: str, url: Optional[str] = None):
        self.reason = reason
        self.url = url
        suffix = f" ({url})" if url else ""
        super().__init__(f"Invalid citation: {reason}{suffix}")


# =============================================================================
# Session Errors
# =============================================================================


class SessionCancelledError(Exception):
    """Raised when work is attempted on a cancelled research session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Research session {session_id} was cancelled")
