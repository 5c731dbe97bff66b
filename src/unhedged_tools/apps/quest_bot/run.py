"""CLI entry point for the Unhedged quest bot.

All command logic lives in the cli subpackage.
"""

from unhedged_tools.apps.quest_bot.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the quest bot CLI application."""
    app()


if __name__ == "__main__":
    main()
