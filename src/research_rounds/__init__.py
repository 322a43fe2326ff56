"""research-rounds: round-based research orchestration."""

__version__ = "0.1.0"
