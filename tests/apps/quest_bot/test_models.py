"""Tests for quest bot models."""

from decimal import Decimal

from unhedged_tools.apps.quest_bot.models import (
    BetDecision,
    BettingConfig,
    BotConfig,
    BotState,
    RunState,
)


class TestBettingConfig:
    """Test suite for BettingConfig."""

    def test_defaults(self) -> None:
        """Test defaults match the documented bot behaviour."""
        config = BettingConfig()
        assert config.window_minutes == 10
        assert config.majority_threshold == Decimal("0.80")
        assert config.min_pool_size == Decimal(3000)
        assert config.price_uncertainty_threshold == Decimal("0.001")
        assert config.cooldown_seconds == 2.5
        assert config.max_total_bets is None
        assert config.fallback_asset == "BTC"

    def test_derived_seconds(self) -> None:
        """Test window and horizon are exposed in seconds."""
        config = BettingConfig(window_minutes=5, market_horizon_minutes=60)
        assert config.window_seconds == 300.0
        assert config.horizon_seconds == 3600.0

    def test_bot_config_defaults(self) -> None:
        """Test BotConfig builds independent default sub-configs."""
        config = BotConfig()
        assert config.betting == BettingConfig()
        assert config.timezone == "UTC"
        assert not config.dry_run


class TestBetDecision:
    """Test suite for BetDecision."""

    def test_skip(self) -> None:
        """Test skip builds a negative, zero-stake decision."""
        decision = BetDecision.skip("Cooldown active")
        assert not decision.should_bet
        assert decision.reason == "Cooldown active"
        assert decision.amount == Decimal(0)
        assert decision.confidence == Decimal(0)


class TestRunState:
    """Test suite for RunState."""

    def test_drop_market_resets_window(self) -> None:
        """Test dropping the market clears the per-window counter only."""
        state = RunState(phase=BotState.BETTING_WINDOW, total_bets=4, bets_in_window=4)
        state.drop_market()
        assert state.market is None
        assert state.bets_in_window == 0
        assert state.total_bets == 4
