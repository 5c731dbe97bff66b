"""CLI command for listing active Unhedged markets."""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer

from unhedged_tools.apps.quest_bot.cli._helpers import (
    DEFAULT_UNHEDGED_KEY_ENV,
    build_unhedged_client,
    load_settings_or_exit,
    require_env,
)
from unhedged_tools.apps.quest_bot.settings import Settings
from unhedged_tools.clients.exceptions import ApiError, DataIncompleteError

_DEFAULT_LIMIT = 20
_MAX_QUESTION_LEN = 58


def markets(
    status: Annotated[str, typer.Option(help="Market status filter")] = "ACTIVE",
    limit: Annotated[int, typer.Option(help="Maximum number of results")] = _DEFAULT_LIMIT,
    unhedged_key_env: Annotated[
        str, typer.Option(help="Environment variable holding the Unhedged API key")
    ] = DEFAULT_UNHEDGED_KEY_ENV,
    config: Annotated[
        Path | None, typer.Option(help="YAML file merged over the default settings")
    ] = None,
) -> None:
    """List markets with their close time and status."""
    settings = load_settings_or_exit(config)
    api_key = require_env(unhedged_key_env)
    asyncio.run(_markets(settings=settings, api_key=api_key, status=status, limit=limit))


async def _markets(*, settings: Settings, api_key: str, status: str, limit: int) -> None:
    """Fetch and display markets.

    Args:
        settings: Loaded settings.
        api_key: Unhedged API key.
        status: Market status filter.
        limit: Maximum number of results to display.

    """
    try:
        async with build_unhedged_client(settings, api_key) as client:
            results = await client.list_markets(status=status, limit=limit)
    except (ApiError, DataIncompleteError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not results:
        typer.echo(f"No {status} markets found")
        return

    now = datetime.now(UTC).timestamp()
    typer.echo(f"\n{'Question':<60} {'Closes (UTC)':>17} {'Left':>7} {'Status':>10}")
    typer.echo("-" * 97)
    for market in results:
        question = market.question[:_MAX_QUESTION_LEN]
        closes = market.end_time.astimezone(UTC).strftime("%Y-%m-%d %H:%M")
        minutes_left = max(0, int(market.seconds_until_close(now) // 60))
        typer.echo(f"{question:<60} {closes:>17} {minutes_left:>6}m {market.status:>10}")
