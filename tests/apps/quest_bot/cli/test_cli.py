"""Tests for the quest bot CLI.

Network clients and the bot loop are patched out so no requests are made.
"""

import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from typer.testing import CliRunner

from unhedged_tools.apps.quest_bot.cli import app
from unhedged_tools.apps.quest_bot.cli._helpers import build_price_feed, pick_proxy, require_env
from unhedged_tools.apps.quest_bot.models import BotState, RunSummary
from unhedged_tools.apps.quest_bot.settings import Settings
from unhedged_tools.clients.exceptions import ClientOrAuthError
from unhedged_tools.clients.unhedged.models import Balance

_RUN_IMPL = "unhedged_tools.apps.quest_bot.cli.run_cmd._run"
_BUILD_CLIENT = "unhedged_tools.apps.quest_bot.cli.{module}.build_unhedged_client"


def _mock_client(**methods: AsyncMock) -> MagicMock:
    """Build a mock client usable as an async context manager."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    for name, method in methods.items():
        setattr(client, name, method)
    return client


class TestRunCommand:
    """Tests for the run command."""

    def test_missing_api_key_exits(self) -> None:
        """Test run exits with an error when the API key is not set."""
        result = CliRunner().invoke(app, ["run", "--dry-run"])
        assert result.exit_code == 1
        assert "UNHEDGED_API_KEY environment variable is required" in result.output

    def test_dry_run_prints_summary(self) -> None:
        """Test a completed run prints the banner and the summary."""
        summary = RunSummary(
            total_bets=3, dry_run=True, final_state=BotState.STOPPED, steps=7
        )
        with (
            patch.dict(os.environ, {"UNHEDGED_API_KEY": "key"}),
            patch(_RUN_IMPL, new=AsyncMock(return_value=summary)) as run_impl,
        ):
            result = CliRunner().invoke(app, ["run", "--dry-run", "--max-bets", "3"])

        assert result.exit_code == 0, result.output
        assert "DRY RUN" in result.output
        assert "Max bets: 3" in result.output
        assert "Bets placed: 3" in result.output
        assert "Final state: STOPPED" in result.output
        settings = run_impl.await_args.kwargs["settings"]
        assert settings.bot.dry_run
        assert settings.bot.betting.max_total_bets == 3

    def test_bad_config_file_exits(self) -> None:
        """Test a missing config file is reported as an error."""
        with patch.dict(os.environ, {"UNHEDGED_API_KEY": "key"}):
            result = CliRunner().invoke(app, ["run", "--config", "/nonexistent/bot.yaml"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_unknown_timezone_exits(self) -> None:
        """Test a misspelt timezone exits with an error before the bot starts."""
        with (
            patch.dict(os.environ, {"UNHEDGED_API_KEY": "key", "BOT_TIMEZONE": "Mars/Base"}),
            patch(_RUN_IMPL, new=AsyncMock()) as run_impl,
        ):
            result = CliRunner().invoke(app, ["run", "--dry-run"])
        assert result.exit_code == 1
        assert "timezone must be an IANA zone name" in result.output
        run_impl.assert_not_called()


class TestMarketsCommand:
    """Tests for the markets command."""

    def test_lists_markets(self) -> None:
        """Test markets are printed one per line."""
        market = MagicMock()
        market.question = "Will BTC be above $100,000?"
        market.status = "ACTIVE"
        market.end_time.astimezone.return_value.strftime.return_value = "2025-01-01 12:00"
        market.seconds_until_close.return_value = 600.0
        client = _mock_client(list_markets=AsyncMock(return_value=[market]))
        with (
            patch.dict(os.environ, {"UNHEDGED_API_KEY": "key"}),
            patch(_BUILD_CLIENT.format(module="markets_cmd"), return_value=client),
        ):
            result = CliRunner().invoke(app, ["markets", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert "Will BTC be above $100,000?" in result.output
        assert "10m" in result.output
        client.list_markets.assert_awaited_once_with(status="ACTIVE", limit=5)

    def test_api_error_exits(self) -> None:
        """Test an API failure exits with an error."""
        client = _mock_client(
            list_markets=AsyncMock(side_effect=ClientOrAuthError(msg="nope", status_code=401))
        )
        with (
            patch.dict(os.environ, {"UNHEDGED_API_KEY": "key"}),
            patch(_BUILD_CLIENT.format(module="markets_cmd"), return_value=client),
        ):
            result = CliRunner().invoke(app, ["markets"])
        assert result.exit_code == 1
        assert "[401] nope" in result.output


class TestBalanceCommand:
    """Tests for the balance command."""

    def test_shows_balance_and_equity(self) -> None:
        """Test balance and scalar equity fields are printed."""
        client = _mock_client(
            get_balance=AsyncMock(return_value=Balance(Decimal("12.5"), Decimal(20))),
            get_equity=AsyncMock(return_value={"equity": {"totalEquity": "20.0", "history": []}}),
        )
        with (
            patch.dict(os.environ, {"UNHEDGED_API_KEY": "key"}),
            patch(_BUILD_CLIENT.format(module="balance_cmd"), return_value=client),
        ):
            result = CliRunner().invoke(app, ["balance"])

        assert result.exit_code == 0, result.output
        assert "Available: 12.5 CC" in result.output
        assert "totalEquity: 20.0" in result.output
        assert "history" not in result.output


class TestHelpers:
    """Tests for shared CLI helpers."""

    def test_require_env(self) -> None:
        """Test require_env returns the stripped value or exits."""
        with patch.dict(os.environ, {"SOME_KEY": "  abc  "}):
            assert require_env("SOME_KEY") == "abc"
        with pytest.raises(typer.Exit):
            require_env("SOME_MISSING_KEY")

    def test_pick_proxy(self) -> None:
        """Test a proxy is picked from the comma-separated list."""
        proxies = {"PROXIES": "http://a:1, http://b:2,"}
        with patch.dict(os.environ, proxies):
            assert pick_proxy("PROXIES") in {"http://a:1", "http://b:2"}
        assert pick_proxy(None) is None
        assert pick_proxy("NO_SUCH_PROXIES") is None

    @pytest.mark.asyncio
    async def test_price_feed_without_key(self) -> None:
        """Test a missing price key yields a feed that returns no prices."""
        feed = build_price_feed(Settings(), "CMC_API_KEY")
        assert not feed.available
        assert await feed.get_price("BTC") is None

    @pytest.mark.asyncio
    async def test_price_feed_with_key(self) -> None:
        """Test a configured price key yields a live feed."""
        with patch.dict(os.environ, {"CMC_API_KEY": "cmc"}):
            feed = build_price_feed(Settings(), "CMC_API_KEY")
        assert feed.available
        await feed.close()
