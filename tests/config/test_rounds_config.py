"""Tests for RoundsConfig parsing, validation and layered loading."""

import logging

import pytest

from research_rounds.config import RoundsConfig, ThresholdConfig, load_config
from research_rounds.core.errors import ConfigValidationError
from research_rounds.core.research.models import ResearchDepth

CONFIG_TOML = """
[research]
max_rounds = 6
max_sources = 80
research_depth = "comprehensive"
blocked_patterns = ["pinterest", "quora.com"]
enable_insights = "no"

[research.thresholds]
min_relevance_score = 0.7
coverage_threshold = 0.9

[research.depth_tiers.comprehensive]
min_sources = 40
"""


class TestDefaults:
    """Tests for default values."""

    def test_defaults_valid(self):
        """Defaults pass validation."""
        config = RoundsConfig()
        config.validate()
        assert config.max_rounds == 4
        assert config.research_depth is ResearchDepth.STANDARD
        assert config.depth_tier.min_sources == 25
        assert config.min_relevance_score == 0.6

    def test_threshold_defaults(self):
        """Thresholds default to the documented values."""
        thresholds = ThresholdConfig()
        assert thresholds.title_similarity_threshold == 0.8
        assert thresholds.min_content_length == 150


class TestFromTomlDict:
    """Tests for RoundsConfig.from_toml_dict."""

    def test_nested_tables(self):
        """Threshold and depth tier tables override sub-configs."""
        config = RoundsConfig.from_toml_dict(
            {
                "max_rounds": 2,
                "thresholds": {"min_relevance_score": 0.5},
                "depth_tiers": {"basic": {"min_sources": 5}},
            }
        )
        assert config.max_rounds == 2
        assert config.thresholds.min_relevance_score == 0.5
        assert config.depth_tiers[ResearchDepth.BASIC].min_sources == 5
        assert config.depth_tiers[ResearchDepth.BASIC].result_limit == 8

    def test_blocked_patterns_string(self):
        """A comma-separated string is accepted for list values."""
        config = RoundsConfig.from_toml_dict({"blocked_patterns": "pinterest, , quora.com"})
        assert config.blocked_patterns == ["pinterest", "quora.com"]

    def test_invalid_depth_falls_back(self, caplog):
        """An unknown depth warns and keeps the default."""
        with caplog.at_level(logging.WARNING):
            config = RoundsConfig.from_toml_dict({"research_depth": "bottomless"})
        assert config.research_depth is ResearchDepth.STANDARD
        assert "bottomless" in caplog.text

    def test_unknown_key_warns(self, caplog):
        """Unknown keys are ignored with a warning."""
        with caplog.at_level(logging.WARNING):
            RoundsConfig.from_toml_dict({"max_roundz": 3})
        assert "max_roundz" in caplog.text


class TestValidate:
    """Tests for RoundsConfig.validate."""

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"max_rounds": 0}, "max_rounds"),
            ({"max_parallel_searches": 0}, "max_parallel_searches"),
            ({"search_rate_limit": -1.0}, "search_rate_limit"),
            ({"per_query_timeout": 0.0}, "per_query_timeout"),
            ({"thresholds": ThresholdConfig(coverage_threshold=1.5)}, "coverage_threshold"),
        ],
    )
    def test_out_of_range(self, overrides, field):
        """Out-of-range values name the offending field."""
        with pytest.raises(ConfigValidationError) as exc_info:
            RoundsConfig(**overrides).validate()
        assert exc_info.value.field == field

    def test_missing_depth_tier(self):
        """The selected depth must have a tier."""
        config = RoundsConfig(research_depth=ResearchDepth.EXPERT, depth_tiers={})
        with pytest.raises(ConfigValidationError):
            config.validate()


class TestLoadConfig:
    """Tests for load_config layering."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        """No file and no env gives defaults."""
        monkeypatch.chdir(tmp_path)
        config = load_config(env={})
        assert config.max_rounds == 4
        assert config.tavily_api_key is None

    def test_toml_file(self, tmp_path):
        """The [research] table of an explicit file is applied."""
        path = tmp_path / "research-rounds.toml"
        path.write_text(CONFIG_TOML)
        config = load_config(path, env={})
        assert config.max_rounds == 6
        assert config.research_depth is ResearchDepth.COMPREHENSIVE
        assert config.depth_tier.min_sources == 40
        assert config.blocked_patterns == ["pinterest", "quora.com"]
        assert config.enable_insights is False
        assert config.thresholds.coverage_threshold == 0.9

    def test_default_file_in_cwd(self, tmp_path, monkeypatch):
        """research-rounds.toml in the working directory is picked up."""
        (tmp_path / "research-rounds.toml").write_text(CONFIG_TOML)
        monkeypatch.chdir(tmp_path)
        assert load_config(env={}).max_sources == 80

    def test_env_path(self, tmp_path, monkeypatch):
        """RESEARCH_ROUNDS_CONFIG points at the file."""
        path = tmp_path / "custom.toml"
        path.write_text(CONFIG_TOML)
        monkeypatch.chdir(tmp_path)
        assert load_config(env={"RESEARCH_ROUNDS_CONFIG": str(path)}).max_rounds == 6

    def test_missing_explicit_file(self, tmp_path):
        """A missing explicit file is an error."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml", env={})

    def test_env_overrides_file(self, tmp_path):
        """Environment variables win over TOML values."""
        path = tmp_path / "research-rounds.toml"
        path.write_text(CONFIG_TOML)
        env = {
            "RESEARCH_ROUNDS_MAX_ROUNDS": "3",
            "RESEARCH_ROUNDS_RESEARCH_DEPTH": "basic",
            "RESEARCH_ROUNDS_MIN_RELEVANCE_SCORE": "0.4",
            "RESEARCH_ROUNDS_ENABLE_LLM_QUERY_EXPANSION": "true",
            "RESEARCH_ROUNDS_BLOCKED_PATTERNS": "reddit.com",
            "RESEARCH_ROUNDS_LOG_LEVEL": "debug",
            "TAVILY_API_KEY": "tvly-env",
        }
        config = load_config(path, env=env)
        assert config.max_rounds == 3
        assert config.research_depth is ResearchDepth.BASIC
        assert config.thresholds.min_relevance_score == 0.4
        assert config.thresholds.coverage_threshold == 0.9
        assert config.enable_llm_query_expansion is True
        assert config.blocked_patterns == ["reddit.com"]
        assert config.log_level == "DEBUG"
        assert config.tavily_api_key == "tvly-env"

    def test_invalid_env_value_ignored(self, tmp_path, monkeypatch, caplog):
        """Unparseable env values warn and keep the previous value."""
        monkeypatch.chdir(tmp_path)
        with caplog.at_level(logging.WARNING):
            config = load_config(env={"RESEARCH_ROUNDS_MAX_SOURCES": "lots"})
        assert config.max_sources == 50
        assert "RESEARCH_ROUNDS_MAX_SOURCES" in caplog.text

    def test_invalid_merged_value_rejected(self, tmp_path, monkeypatch):
        """Validation runs after all layers merge."""
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigValidationError):
            load_config(env={"RESEARCH_ROUNDS_MAX_ROUNDS": "0"})
