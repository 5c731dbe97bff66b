"""Typed data models for Unhedged prediction market data.

Provide frozen dataclasses that insulate the rest of the codebase from the
untyped dictionaries returned by the Unhedged REST API. All monetary values
use ``Decimal`` for precision.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

ZERO = Decimal(0)

STATUS_ACTIVE = "ACTIVE"
STATUS_RESOLVED = "RESOLVED"
STATUS_VOIDED = "VOIDED"
TERMINAL_MARKET_STATUSES = frozenset({STATUS_RESOLVED, STATUS_VOIDED})

BET_PENDING = "PENDING"
BET_CONFIRMED = "CONFIRMED"
OUTSTANDING_BET_STATUSES: tuple[str, ...] = (BET_PENDING, BET_CONFIRMED)


@dataclass(frozen=True)
class Outcome:
    """One side of a market (e.g. ``YES`` or ``NO``).

    Args:
        index: Position of the outcome in the market's outcome list.
        label: Human-readable outcome label.

    """

    index: int
    label: str


@dataclass(frozen=True)
class Market:
    """Typed representation of an Unhedged prediction market.

    Args:
        market_id: Unique market identifier.
        question: Natural-language market question.
        outcomes: Outcomes in index order; binary markets have two.
        end_time: Timezone-aware close time.
        status: Market status (``ACTIVE``, ``RESOLVED``, ``VOIDED``, ...).
        minimum_bet: Smallest stake the market accepts.
        platform_fee_rate: Fee fraction taken from payouts, if reported.

    """

    market_id: str
    question: str
    outcomes: tuple[Outcome, ...]
    end_time: datetime
    status: str
    minimum_bet: Decimal
    platform_fee_rate: Decimal | None = None

    @property
    def is_terminal(self) -> bool:
        """Return True once the market is resolved or voided."""
        return self.status in TERMINAL_MARKET_STATUSES

    def seconds_until_close(self, now: float) -> float:
        """Return seconds from ``now`` (epoch seconds) until close; negative once closed."""
        return self.end_time.timestamp() - now

    def outcome_label(self, index: int) -> str:
        """Return the label of outcome ``index``, or a generic placeholder."""
        if 0 <= index < len(self.outcomes):
            return self.outcomes[index].label
        return f"outcome {index}"


@dataclass(frozen=True)
class OutcomeStats:
    """Pool statistics for a single outcome.

    Args:
        total_amount: Total stake wagered on the outcome.
        implied_probability: Platform-displayed probability (0-1).

    """

    total_amount: Decimal
    implied_probability: Decimal


@dataclass(frozen=True)
class MarketStats:
    """Point-in-time pool snapshot for a market.

    Args:
        outcome_stats: Per-outcome pools, in outcome index order.
        total_pool: Total stake across all outcomes as reported by the API.

    """

    outcome_stats: tuple[OutcomeStats, ...]
    total_pool: Decimal

    def pool(self, index: int) -> Decimal:
        """Return the pool of outcome ``index`` (zero when absent)."""
        if 0 <= index < len(self.outcome_stats):
            return self.outcome_stats[index].total_amount
        return ZERO

    def implied_probability(self, index: int) -> Decimal:
        """Return the implied probability of outcome ``index`` (zero when absent)."""
        if 0 <= index < len(self.outcome_stats):
            return self.outcome_stats[index].implied_probability
        return ZERO

    @property
    def max_implied_probability(self) -> Decimal:
        """Return the larger implied probability of the first two outcomes."""
        return max(self.implied_probability(0), self.implied_probability(1))


@dataclass(frozen=True)
class Bet:
    """A bet placed on a market.

    Args:
        bet_id: Unique bet identifier.
        market_id: Market the bet was placed on.
        outcome_index: Outcome backed by the bet.
        amount: Stake.
        status: Bet status (``PENDING``, ``CONFIRMED``, or a terminal value).

    """

    bet_id: str
    market_id: str
    outcome_index: int
    amount: Decimal
    status: str


@dataclass(frozen=True)
class Balance:
    """Account balance.

    Args:
        available: Funds available for new bets.
        total: Total funds including stakes in open bets.

    """

    available: Decimal
    total: Decimal
