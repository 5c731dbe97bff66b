"""Data models for the Unhedged quest bot.

Define the configuration objects threaded through the bot's constructors,
the lifecycle phases, the per-tick betting decision, the mutable run state
owned by the lifecycle, and the summary returned when a run ends.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from unhedged_tools.clients.unhedged.models import ZERO, Market

_DEFAULT_WINDOW_MINUTES = 10
_DEFAULT_MAJORITY_WEIGHT = Decimal("0.6")
_DEFAULT_PRICE_DELTA_WEIGHT = Decimal("0.4")
_DEFAULT_MAJORITY_THRESHOLD = Decimal("0.80")
_DEFAULT_MIN_POOL_SIZE = Decimal(3000)
_DEFAULT_PRICE_UNCERTAINTY = Decimal("0.001")
_DEFAULT_COOLDOWN_SECONDS = 2.5
_DEFAULT_MARKET_HORIZON_MINUTES = 90
_DEFAULT_MARKET_LIST_LIMIT = 20
_DEFAULT_FALLBACK_ASSET = "BTC"


class BotState(Enum):
    """Phase of the market lifecycle state machine."""

    SEARCHING = "SEARCHING"
    AWAITING_WINDOW = "AWAITING_WINDOW"
    BETTING_WINDOW = "BETTING_WINDOW"
    AWAITING_RESOLUTION = "AWAITING_RESOLUTION"
    AWAITING_BALANCE = "AWAITING_BALANCE"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class BettingConfig:
    """Strategy and market-selection parameters.

    Args:
        window_minutes: Minutes before close when betting starts.
        majority_weight: Weight of the pool-majority signal.
        price_delta_weight: Weight of the price-direction signal.
        majority_threshold: Minimum majority pool share (0-1) to bet, and
            minimum implied probability for a market to be selected.
        min_pool_size: Minimum total pool for a market to be selected.
        price_uncertainty_threshold: Relative price distance from the target
            at or below which the market is considered too close to call.
        cooldown_seconds: Minimum spacing between accepted decisions, also
            the delay between betting-loop iterations.
        use_all_balance: Stake the whole available balance instead of the
            market minimum.
        min_payout_threshold: Minimum expected payout; ``0`` disables the gate.
        max_total_bets: Stop the bot after this many bets; ``None`` for no cap.
        market_horizon_minutes: Only markets closing within this many
            minutes are candidates.
        market_list_limit: Page size used when listing active markets.
        fallback_asset: Asset assumed when the question names none; ``None``
            disables the fallback.

    """

    window_minutes: int = _DEFAULT_WINDOW_MINUTES
    majority_weight: Decimal = _DEFAULT_MAJORITY_WEIGHT
    price_delta_weight: Decimal = _DEFAULT_PRICE_DELTA_WEIGHT
    majority_threshold: Decimal = _DEFAULT_MAJORITY_THRESHOLD
    min_pool_size: Decimal = _DEFAULT_MIN_POOL_SIZE
    price_uncertainty_threshold: Decimal = _DEFAULT_PRICE_UNCERTAINTY
    cooldown_seconds: float = _DEFAULT_COOLDOWN_SECONDS
    use_all_balance: bool = False
    min_payout_threshold: Decimal = ZERO
    max_total_bets: int | None = None
    market_horizon_minutes: int = _DEFAULT_MARKET_HORIZON_MINUTES
    market_list_limit: int = _DEFAULT_MARKET_LIST_LIMIT
    fallback_asset: str | None = _DEFAULT_FALLBACK_ASSET

    @property
    def window_seconds(self) -> float:
        """Return the betting window length in seconds."""
        return self.window_minutes * 60.0

    @property
    def horizon_seconds(self) -> float:
        """Return the market search horizon in seconds."""
        return self.market_horizon_minutes * 60.0


@dataclass(frozen=True)
class PollingConfig:
    """Wait intervals used by the lifecycle, all in seconds."""

    no_market_seconds: float = 60.0
    error_backoff_seconds: float = 30.0
    resolution_poll_seconds: float = 30.0
    incomplete_data_retry_seconds: float = 5.0
    balance_poll_seconds: float = 60.0
    max_sleep_seconds: float = 300.0
    rate_limit_idle_seconds: float = 2.0
    market_data_retry_seconds: float = 1.0


@dataclass(frozen=True)
class BotConfig:
    """Top-level bot configuration.

    Args:
        betting: Strategy and market-selection parameters.
        polling: Lifecycle wait intervals.
        dry_run: Log decisions instead of placing bets.
        timezone: IANA zone used when logging market close times.

    """

    betting: BettingConfig = field(default_factory=BettingConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    dry_run: bool = False
    timezone: str = "UTC"


@dataclass(frozen=True)
class BetDecision:
    """Outcome of one strategy evaluation.

    Args:
        should_bet: Whether a bet should be placed.
        reason: Human-readable explanation, logged on both paths.
        outcome_index: Outcome to back (meaningful only when betting).
        amount: Stake (zero when skipping).
        confidence: Decision confidence in ``[0, 1]``.

    """

    should_bet: bool
    reason: str
    outcome_index: int = 0
    amount: Decimal = ZERO
    confidence: Decimal = ZERO

    @classmethod
    def skip(cls, reason: str, outcome_index: int = 0) -> "BetDecision":
        """Build a negative decision carrying ``reason``."""
        return cls(should_bet=False, reason=reason, outcome_index=outcome_index)


@dataclass
class RunState:
    """Mutable state owned by the lifecycle for one bot run.

    Args:
        phase: Current lifecycle phase.
        market: Tracked market, if any.
        total_bets: Bets placed (or simulated) this run.
        bets_in_window: Bets placed in the current betting window.
        available_balance: Local mirror of the available balance.

    """

    phase: BotState = BotState.SEARCHING
    market: Market | None = None
    total_bets: int = 0
    bets_in_window: int = 0
    available_balance: Decimal = ZERO

    def drop_market(self) -> None:
        """Forget the tracked market and reset the window counter."""
        self.market = None
        self.bets_in_window = 0


@dataclass(frozen=True)
class RunSummary:
    """Summary of a completed bot run.

    Args:
        total_bets: Bets placed (or simulated) during the run.
        dry_run: Whether the run was a dry run.
        final_state: Phase the lifecycle ended in.
        steps: Number of scheduler steps executed.

    """

    total_bets: int
    dry_run: bool
    final_state: BotState
    steps: int
