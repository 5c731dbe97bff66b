"""CLI command for running the quest bot.

Load settings, build the API clients from environment variables, install
signal handlers for a graceful stop, and print a summary when the bot exits.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Annotated

import typer

from unhedged_tools.apps.quest_bot.cli._helpers import (
    DEFAULT_CMC_KEY_ENV,
    DEFAULT_UNHEDGED_KEY_ENV,
    build_price_feed,
    build_unhedged_client,
    configure_logging,
    load_settings_or_exit,
    pick_proxy,
    require_env,
)
from unhedged_tools.apps.quest_bot.lifecycle import QuestBot
from unhedged_tools.apps.quest_bot.models import RunSummary
from unhedged_tools.apps.quest_bot.settings import Settings
from unhedged_tools.apps.quest_bot.strategy import ScoringStrategy

logger = logging.getLogger(__name__)


def run(  # noqa: PLR0913
    unhedged_key_env: Annotated[
        str, typer.Option(help="Environment variable holding the Unhedged API key")
    ] = DEFAULT_UNHEDGED_KEY_ENV,
    cmc_key_env: Annotated[
        str, typer.Option(help="Environment variable holding the CoinMarketCap API key")
    ] = DEFAULT_CMC_KEY_ENV,
    proxy_env: Annotated[
        str | None,
        typer.Option(help="Environment variable holding comma-separated proxy URLs"),
    ] = None,
    config: Annotated[
        Path | None, typer.Option(help="YAML file merged over the default settings")
    ] = None,
    dry_run: Annotated[  # noqa: FBT002
        bool, typer.Option("--dry-run", help="Log decisions without placing bets")
    ] = False,
    max_bets: Annotated[
        int | None, typer.Option(help="Stop after this many bets (overrides config)")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Run the quest bot until interrupted or the bet cap is reached."""
    configure_logging(verbose=verbose)
    settings = load_settings_or_exit(config, dry_run=dry_run, max_total_bets=max_bets)
    api_key = require_env(unhedged_key_env)
    proxy = pick_proxy(proxy_env)

    _display_banner(settings, proxy=proxy)
    summary = asyncio.run(
        _run(settings=settings, api_key=api_key, cmc_key_env=cmc_key_env, proxy=proxy)
    )
    _display_summary(summary)


def _display_banner(settings: Settings, *, proxy: str | None) -> None:
    """Display the run mode and the main strategy parameters."""
    betting = settings.bot.betting
    typer.echo("")
    typer.echo("=" * 60)
    if settings.bot.dry_run:
        typer.echo("  DRY RUN -- no bets will be placed")
    else:
        typer.echo("  LIVE MODE -- real bets will be placed")
    typer.echo("=" * 60)
    typer.echo(f"Betting window: last {betting.window_minutes} min")
    typer.echo(f"Majority threshold: {betting.majority_threshold:.0%}")
    typer.echo(f"Price threshold: {betting.price_uncertainty_threshold:.2%}")
    typer.echo(f"Min pool size: {betting.min_pool_size} CC")
    if betting.max_total_bets is not None:
        typer.echo(f"Max bets: {betting.max_total_bets}")
    if proxy is not None:
        typer.echo("Proxy: enabled")
    typer.echo("")


def _display_summary(summary: RunSummary) -> None:
    """Display the run summary."""
    typer.echo("\n--- Quest Bot Summary ---")
    typer.echo(f"Mode: {'dry run' if summary.dry_run else 'live'}")
    typer.echo(f"Bets placed: {summary.total_bets}")
    typer.echo(f"Final state: {summary.final_state.value}")
    typer.echo(f"Steps: {summary.steps}")


async def _run(
    *,
    settings: Settings,
    api_key: str,
    cmc_key_env: str,
    proxy: str | None,
) -> RunSummary:
    """Build the bot, run it, and close the clients on exit."""
    client = build_unhedged_client(settings, api_key, proxy)
    price_feed = build_price_feed(settings, cmc_key_env, proxy)
    bot = QuestBot(
        client,
        price_feed,
        ScoringStrategy(settings.bot.betting),
        settings.bot,
    )

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, bot.stop)
    loop.add_signal_handler(signal.SIGTERM, bot.stop)
    try:
        async with client:
            await bot.initialize()
            return await bot.run()
    finally:
        await price_feed.close()
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_signal_handler(signal.SIGTERM)
