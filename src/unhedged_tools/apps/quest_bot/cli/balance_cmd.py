"""CLI command for showing the account balance and equity."""

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer

from unhedged_tools.apps.quest_bot.cli._helpers import (
    DEFAULT_UNHEDGED_KEY_ENV,
    build_unhedged_client,
    load_settings_or_exit,
    require_env,
)
from unhedged_tools.apps.quest_bot.settings import Settings
from unhedged_tools.clients.exceptions import ApiError, DataIncompleteError
from unhedged_tools.clients.unhedged.models import Balance


def balance(
    unhedged_key_env: Annotated[
        str, typer.Option(help="Environment variable holding the Unhedged API key")
    ] = DEFAULT_UNHEDGED_KEY_ENV,
    config: Annotated[
        Path | None, typer.Option(help="YAML file merged over the default settings")
    ] = None,
) -> None:
    """Display the available balance and account equity."""
    settings = load_settings_or_exit(config)
    api_key = require_env(unhedged_key_env)
    asyncio.run(_balance(settings=settings, api_key=api_key))


async def _balance(*, settings: Settings, api_key: str) -> None:
    """Fetch and display balance and equity."""
    try:
        async with build_unhedged_client(settings, api_key) as client:
            bal = await client.get_balance()
            equity = await client.get_equity()
    except (ApiError, DataIncompleteError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _display_balance(bal, equity)


def _display_balance(bal: Balance, equity: dict[str, Any]) -> None:
    """Print the balance and any scalar equity fields."""
    typer.echo(f"\nAvailable: {bal.available} CC")
    typer.echo(f"Total:     {bal.total} CC")
    payload = equity.get("equity", equity)
    if isinstance(payload, dict):
        for key, value in payload.items():
            if isinstance(value, (str, int, float)):
                typer.echo(f"{key}: {value}")
