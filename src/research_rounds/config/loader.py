"""Layered configuration loading.

Precedence, lowest first:

1. ``RoundsConfig`` defaults
2. ``[research]`` table of a TOML file: an explicit path, else the
   ``RESEARCH_ROUNDS_CONFIG`` env var, else ``research-rounds.toml`` in
   the working directory
3. ``RESEARCH_ROUNDS_*`` environment variables
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from research_rounds.config.parsing import _parse_bool, _parse_enum, _parse_list
from research_rounds.config.research import RoundsConfig
from research_rounds.core.research.models.enums import ResearchDepth

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV_VAR = "RESEARCH_ROUNDS_CONFIG"
DEFAULT_CONFIG_FILENAME = "research-rounds.toml"
_ENV_PREFIX = "RESEARCH_ROUNDS_"

# env suffix -> (RoundsConfig field, parser)
_ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "MAX_ROUNDS": ("max_rounds", int),
    "MAX_PARALLEL_SEARCHES": ("max_parallel_searches", int),
    "MAX_SOURCES": ("max_sources", int),
    "SEARCH_RATE_LIMIT": ("search_rate_limit", float),
    "PER_QUERY_TIMEOUT": ("per_query_timeout", float),
    "MAX_SEARCH_ATTEMPTS": ("max_search_attempts", int),
    "ENABLE_FALLBACK_RESEARCH": ("enable_fallback_research", _parse_bool),
    "ENABLE_INSIGHTS": ("enable_insights", _parse_bool),
    "ENABLE_LLM_QUERY_EXPANSION": ("enable_llm_query_expansion", _parse_bool),
    "BLOCKED_PATTERNS": ("blocked_patterns", _parse_list),
    "SEARCH_PROVIDER": ("search_provider", str),
    "LOG_LEVEL": ("log_level", lambda v: v.upper()),
}


def _load_toml(path: Path) -> Dict[str, Any]:
    """Read the ``[research]`` table of a TOML file."""
    with open(path, "rb") as f:
        data = tomllib.load(f)
    section = data.get("research", {})
    if not isinstance(section, dict):
        logger.warning("Ignoring non-table [research] entry in %s", path)
        return {}
    return section


def _apply_env(config: RoundsConfig, env: Mapping[str, str]) -> None:
    for suffix, (attr, parser) in _ENV_OVERRIDES.items():
        raw = env.get(f"{_ENV_PREFIX}{suffix}")
        if raw is None or raw == "":
            continue
        try:
            setattr(config, attr, parser(raw))
        except ValueError:
            logger.warning("Invalid value for %s%s: %r (ignored)", _ENV_PREFIX, suffix, raw)

    depth = env.get(f"{_ENV_PREFIX}RESEARCH_DEPTH")
    if depth:
        config.research_depth = _parse_enum(ResearchDepth, depth, config.research_depth, "research_depth")

    min_relevance = env.get(f"{_ENV_PREFIX}MIN_RELEVANCE_SCORE")
    if min_relevance:
        try:
            config.thresholds = replace(config.thresholds, min_relevance_score=float(min_relevance))
        except ValueError:
            logger.warning("Invalid value for %sMIN_RELEVANCE_SCORE: %r (ignored)", _ENV_PREFIX, min_relevance)

    if not config.tavily_api_key:
        config.tavily_api_key = env.get("TAVILY_API_KEY")


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> RoundsConfig:
    """Load a validated RoundsConfig from defaults, TOML and environment.

    Args:
        path: Explicit TOML file. A missing explicit file is an error.
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist.
        ConfigValidationError: If the merged values are out of range.
    """
    env = os.environ if env is None else env

    config_path: Optional[Path] = path
    if config_path is None and env.get(CONFIG_PATH_ENV_VAR):
        config_path = Path(env[CONFIG_PATH_ENV_VAR])
    elif config_path is None and Path(DEFAULT_CONFIG_FILENAME).exists():
        config_path = Path(DEFAULT_CONFIG_FILENAME)

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config = RoundsConfig.from_toml_dict(_load_toml(config_path))
        logger.debug("Loaded research config from %s", config_path)
    else:
        config = RoundsConfig()

    _apply_env(config, env)
    config.validate()
    return config
