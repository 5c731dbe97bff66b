"""Shared helpers for the quest bot CLI commands.

Centralise logging setup, settings loading, credential lookup, proxy
selection, and client construction so every command builds its clients
the same way.
"""

import logging
import os
import random
from pathlib import Path

import typer

from unhedged_tools.apps.quest_bot.price_feed import PriceFeed
from unhedged_tools.apps.quest_bot.settings import Settings, load_settings
from unhedged_tools.clients.coinmarketcap.client import CoinMarketCapClient
from unhedged_tools.clients.unhedged.client import UnhedgedClient
from unhedged_tools.core.config import ConfigError

DEFAULT_UNHEDGED_KEY_ENV = "UNHEDGED_API_KEY"
DEFAULT_CMC_KEY_ENV = "CMC_API_KEY"


def configure_logging(*, verbose: bool = False) -> None:
    """Send timestamped log records to stderr; DEBUG when ``verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_settings_or_exit(
    config: Path | None,
    *,
    dry_run: bool = False,
    max_total_bets: int | None = None,
) -> Settings:
    """Load settings, turning configuration errors into a CLI error exit."""
    try:
        return load_settings(config, dry_run=dry_run, max_total_bets=max_total_bets)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def require_env(name: str) -> str:
    """Return the value of environment variable ``name`` or exit with an error."""
    value = os.environ.get(name, "").strip()
    if not value:
        typer.echo(f"Error: {name} environment variable is required.", err=True)
        raise typer.Exit(code=1)
    return value


def pick_proxy(env_name: str | None) -> str | None:
    """Pick one proxy URL from a comma-separated list in ``env_name``.

    Args:
        env_name: Environment variable holding the proxy list, or ``None``.

    Returns:
        A randomly chosen proxy URL, or ``None`` when unset or empty.

    """
    if not env_name:
        return None
    proxies = [p.strip() for p in os.environ.get(env_name, "").split(",") if p.strip()]
    if not proxies:
        return None
    return random.choice(proxies)  # noqa: S311


def build_unhedged_client(
    settings: Settings, api_key: str, proxy: str | None = None
) -> UnhedgedClient:
    """Build the Unhedged client with the configured request budget."""
    return UnhedgedClient(
        api_key,
        rate_limit=settings.rate_limit,
        server_retry=settings.server_retry,
        proxy=proxy,
    )


def build_price_feed(settings: Settings, cmc_key_env: str, proxy: str | None = None) -> PriceFeed:
    """Build the price feed; without an API key it yields no prices."""
    api_key = os.environ.get(cmc_key_env, "").strip()
    if not api_key:
        return PriceFeed(None)
    client = CoinMarketCapClient(
        api_key,
        rate_limit=settings.price_rate_limit,
        server_retry=settings.server_retry,
        proxy=proxy,
    )
    return PriceFeed(client)
