"""research-rounds command line interface.

Runs a research session against the Tavily search provider and prints
the ResearchResult as JSON on stdout. Diagnostics go to stderr.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

from research_rounds.config import RoundsConfig, load_config
from research_rounds.core.errors import ConfigValidationError
from research_rounds.core.research.models.enums import ResearchDepth
from research_rounds.core.research.providers import TavilySearchProvider
from research_rounds.core.research.workflows.rounds import RoundController

logger = logging.getLogger(__name__)


def _emit_error(message: str, code: str, details: Optional[dict[str, Any]] = None) -> None:
    payload = {"success": False, "error": message, "code": code, "details": details or {}}
    click.echo(json.dumps(payload), err=True)
    sys.exit(1)


def _build_search_provider(config: RoundsConfig) -> TavilySearchProvider:
    if config.search_provider.lower() != "tavily":
        _emit_error(
            f"Unsupported search provider: {config.search_provider}",
            code="VALIDATION_ERROR",
            details={"search_provider": config.search_provider, "supported": ["tavily"]},
        )
    if not config.tavily_api_key:
        _emit_error(
            "Tavily API key not configured",
            code="MISSING_CREDENTIALS",
            details={"hint": "Set TAVILY_API_KEY or tavily_api_key in [research]"},
        )
    return TavilySearchProvider(api_key=config.tavily_api_key)


@click.group()
@click.version_option(package_name="research-rounds")
def cli() -> None:
    """Round-based research orchestration."""


@cli.command("run")
@click.argument("query")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML config file with a [research] table.",
)
@click.option("--max-rounds", type=click.IntRange(min=1), default=None, help="Override max_rounds.")
@click.option("--max-sources", type=click.IntRange(min=1), default=None, help="Override max_sources.")
@click.option(
    "--depth",
    type=click.Choice([d.value for d in ResearchDepth], case_sensitive=False),
    default=None,
    help="Research depth tier.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (defaults to the configured level).",
)
def run_cmd(
    query: str,
    config_path: Optional[Path],
    max_rounds: Optional[int],
    max_sources: Optional[int],
    depth: Optional[str],
    log_level: Optional[str],
) -> None:
    """Research QUERY and print the result as JSON."""
    try:
        config = load_config(config_path)
        if max_rounds is not None:
            config.max_rounds = max_rounds
        if max_sources is not None:
            config.max_sources = max_sources
        if depth is not None:
            config.research_depth = ResearchDepth(depth.lower())
        if log_level is not None:
            config.log_level = log_level.upper()
        config.validate()
    except ConfigValidationError as e:
        _emit_error(str(e), code="VALIDATION_ERROR", details={"field": e.field})
    except FileNotFoundError as e:
        _emit_error(str(e), code="CONFIG_NOT_FOUND")
    except ValueError as e:
        # tomllib.TOMLDecodeError is a ValueError
        _emit_error(f"Invalid config file: {e}", code="INVALID_CONFIG")

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    controller = RoundController(_build_search_provider(config))
    try:
        result = asyncio.run(controller.execute_rounds(query, config))
    except KeyboardInterrupt:
        _emit_error("Interrupted", code="CANCELLED")
    except ValueError as e:
        _emit_error(str(e), code="VALIDATION_ERROR")

    click.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
