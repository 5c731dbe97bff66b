"""Pool-majority plus price-direction scoring for binary markets.

Combine two signals into a single decision per betting tick:

* the pool majority, i.e. which outcome holds most of the staked money;
* the price direction, i.e. whether the live spot price already sits on the
  "yes" side of the question's target price.

Each gate short-circuits with a human-readable reason so the betting loop
can log why a tick was skipped.
"""

import logging
import time
from decimal import Decimal

from unhedged_tools.apps.quest_bot.models import BetDecision, BettingConfig
from unhedged_tools.apps.quest_bot.question_parser import (
    is_price_question,
    parse_price_target,
)
from unhedged_tools.clients._rate_limit import Clock
from unhedged_tools.clients.unhedged.models import ZERO, Market, MarketStats

logger = logging.getLogger(__name__)

_ONE = Decimal(1)
_TWO = Decimal(2)
_HALF = Decimal("0.5")
_HUNDRED = Decimal(100)
_MAJORITY_ON_FIRST = Decimal("0.9")
_MAJORITY_ON_SECOND = Decimal("0.1")
_PRICE_AGREES = Decimal("0.8")
_PRICE_DISAGREES = Decimal("0.2")
_BINARY_OUTCOMES = 2


class ScoringStrategy:
    """Decide whether, and on which outcome, to bet on a binary market.

    The only state is the time of the last accepted decision, used to
    enforce ``cooldown_seconds`` between bets. Everything else is a pure
    function of the inputs.

    Args:
        config: Strategy parameters.
        clock: Function returning the current epoch time in seconds.

    """

    def __init__(self, config: BettingConfig, clock: Clock = time.time) -> None:
        """Initialize the strategy with no cooldown pending."""
        self._config = config
        self._clock = clock
        self._last_accepted: float | None = None

    @property
    def config(self) -> BettingConfig:
        """Return the strategy parameters."""
        return self._config

    def decide(
        self,
        market: Market,
        stats: MarketStats,
        current_price: Decimal | None,
        available_balance: Decimal,
        min_bet: Decimal,
    ) -> BetDecision:
        """Evaluate one betting tick.

        Args:
            market: The tracked market.
            stats: Fresh pool statistics for the market.
            current_price: Latest spot price of the market's asset, or
                ``None`` when unavailable.
            available_balance: Funds available to stake.
            min_bet: Minimum stake accepted by the market.

        Returns:
            A positive decision with outcome, stake and confidence, or a
            skip carrying the reason.

        """
        now = self._clock()
        if (
            self._last_accepted is not None
            and now - self._last_accepted < self._config.cooldown_seconds
        ):
            return BetDecision.skip("Cooldown active")

        if available_balance < min_bet:
            return BetDecision.skip(
                f"Insufficient balance: {available_balance} CC < {min_bet} CC min bet"
            )

        amount = available_balance if self._config.use_all_balance else min_bet
        decision = self._score(market, stats, current_price, amount)
        if decision.should_bet:
            self._last_accepted = now
        return decision

    def _score(  # noqa: PLR0911
        self,
        market: Market,
        stats: MarketStats,
        current_price: Decimal | None,
        amount: Decimal,
    ) -> BetDecision:
        """Run the signal gates for a stake of ``amount``."""
        cfg = self._config
        if len(market.outcomes) != _BINARY_OUTCOMES:
            return BetDecision.skip("Not a binary market")

        pool_first = stats.pool(0)
        pool_second = stats.pool(1)
        total_pool = pool_first + pool_second
        majority_index = 0 if pool_first > pool_second else 1
        majority_share = (
            max(pool_first, pool_second) / total_pool if total_pool > ZERO else ZERO
        )

        if majority_share < cfg.majority_threshold:
            return BetDecision.skip(
                f"Majority too weak: {_pct(majority_share, 0)} pool / "
                f"{_pct(stats.max_implied_probability, 0)} implied "
                f"(need >={_pct(cfg.majority_threshold, 0)})"
            )

        if current_price is None or not is_price_question(market.question):
            return BetDecision.skip("No price data available")

        target = parse_price_target(market.question)
        if target is None:
            return BetDecision.skip("Could not parse target price")

        price_delta = current_price - target.price
        distance = abs(price_delta / target.price)
        if distance <= cfg.price_uncertainty_threshold:
            return BetDecision.skip(
                f"Price too tight: ${current_price:,.2f} vs ${target.price:,.2f} = "
                f"{_pct(distance, 2)} (need >={_pct(cfg.price_uncertainty_threshold, 1)})"
            )

        price_score, price_signal = _price_signal(
            is_above=target.is_above, price_delta=price_delta, distance=distance
        )
        majority_score = _MAJORITY_ON_FIRST if majority_index == 0 else _MAJORITY_ON_SECOND
        combined = majority_score * cfg.majority_weight + price_score * cfg.price_delta_weight
        final_index = 0 if combined > _HALF else 1
        confidence = abs(combined - _HALF) * _TWO

        outcome_pool = pool_first if final_index == 0 else pool_second
        multiple = _payout_multiple(total_pool, outcome_pool, amount, market.platform_fee_rate)
        expected_payout = amount * multiple
        if cfg.min_payout_threshold > ZERO and expected_payout < cfg.min_payout_threshold:
            return BetDecision.skip(
                f"Payout too low: {expected_payout:.2f} CC "
                f"(need >={cfg.min_payout_threshold:.2f} CC)",
                outcome_index=final_index,
            )

        reason = (
            f"Majority: {_pct(majority_share, 0)} on {market.outcome_label(majority_index)} | "
            f"{price_signal} | "
            f"Payout: {expected_payout:.2f} CC ({multiple:.2f}x) | "
            f"Combined: {_pct(combined, 0)}"
        )
        logger.debug("Accepted %s: %s", market.market_id, reason)
        return BetDecision(
            should_bet=True,
            reason=reason,
            outcome_index=final_index,
            amount=amount,
            confidence=confidence,
        )


def _price_signal(*, is_above: bool, price_delta: Decimal, distance: Decimal) -> tuple[Decimal, str]:
    """Score the first outcome from the spot price's side of the target.

    Returns:
        The price score for outcome 0 and a label for the reason string.

    """
    pct = _pct(distance, 2)
    if is_above:
        if price_delta > ZERO:
            return _PRICE_AGREES, f"Bullish: +{pct} above target"
        return _PRICE_DISAGREES, f"Bearish: -{pct} below target"
    if price_delta < ZERO:
        return _PRICE_AGREES, f"Bullish for BELOW: -{pct} below target"
    return _PRICE_DISAGREES, f"Bearish for BELOW: +{pct} above target"


def _payout_multiple(
    total_pool: Decimal,
    outcome_pool: Decimal,
    amount: Decimal,
    fee_rate: Decimal | None,
) -> Decimal:
    """Estimate the payout multiple after our own stake dilutes the pool."""
    denominator = outcome_pool + amount
    if denominator <= ZERO:
        return ZERO
    multiple = (total_pool + amount) / denominator
    if fee_rate is not None and fee_rate > ZERO:
        multiple *= _ONE - fee_rate
    return multiple


def _pct(value: Decimal, places: int) -> str:
    """Format a fraction as a percentage with ``places`` decimals."""
    return f"{value * _HUNDRED:.{places}f}%"
