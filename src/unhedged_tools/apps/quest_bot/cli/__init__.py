"""CLI subpackage for the Unhedged quest bot.

Create the Typer application and register all command modules.
"""

import typer

from unhedged_tools.apps.quest_bot.cli.balance_cmd import balance
from unhedged_tools.apps.quest_bot.cli.markets_cmd import markets
from unhedged_tools.apps.quest_bot.cli.run_cmd import run

app = typer.Typer(help="Unhedged prediction market quest bot")

app.command()(run)
app.command()(markets)
app.command()(balance)

__all__ = ["app"]
