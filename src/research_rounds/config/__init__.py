"""Configuration for research-rounds."""

from research_rounds.config.loader import load_config
from research_rounds.config.research import DepthTierConfig, RoundsConfig, ThresholdConfig

__all__ = [
    "DepthTierConfig",
    "RoundsConfig",
    "ThresholdConfig",
    "load_config",
]
