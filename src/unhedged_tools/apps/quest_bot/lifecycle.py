"""Market lifecycle state machine for the Unhedged quest bot.

Drive one tracked market at a time through discovery, the pre-close wait,
the betting window, and resolution, then start over. A single scheduler
loop in ``QuestBot.run`` calls one phase handler per step; each handler
performs at most one unit of work, waits through the injected ``sleep``,
and returns the next phase.
"""

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, cast
from zoneinfo import ZoneInfo

from unhedged_tools.apps.quest_bot.idempotency import IdempotencyKeyFactory
from unhedged_tools.apps.quest_bot.models import (
    BetDecision,
    BotConfig,
    BotState,
    RunState,
    RunSummary,
)
from unhedged_tools.apps.quest_bot.price_feed import PriceFeed
from unhedged_tools.apps.quest_bot.question_parser import (
    classify_asset,
    is_binary_question,
    parse_price_target,
)
from unhedged_tools.apps.quest_bot.strategy import ScoringStrategy
from unhedged_tools.clients._rate_limit import Clock, Sleeper
from unhedged_tools.clients.exceptions import ApiError, DataIncompleteError
from unhedged_tools.clients.unhedged.client import UnhedgedClient
from unhedged_tools.clients.unhedged.models import (
    OUTSTANDING_BET_STATUSES,
    STATUS_ACTIVE,
    ZERO,
    Bet,
    Market,
)

logger = logging.getLogger(__name__)

_MIN_REMAINING_REQUESTS = 2
_PROGRESS_EVERY = 10
_RECOVERY_LIMIT = 10
_CLOSE_TIME_FORMAT = "%b %d, %Y %H:%M"


class QuestBot:
    """Scheduler and phase handlers for the betting lifecycle.

    Args:
        client: Unhedged API client.
        price_feed: Spot price source for the strategy.
        strategy: Decision function evaluated on every betting tick.
        config: Bot configuration.
        clock: Function returning the current epoch time in seconds.
        sleep: Awaitable sleep; every wait in the bot goes through it.
        key_factory: Idempotency key generator for bet submissions.

    """

    def __init__(  # noqa: PLR0913
        self,
        client: UnhedgedClient,
        price_feed: PriceFeed,
        strategy: ScoringStrategy,
        config: BotConfig,
        *,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
        key_factory: IdempotencyKeyFactory | None = None,
    ) -> None:
        """Initialize the bot in the SEARCHING phase."""
        self._client = client
        self._price_feed = price_feed
        self._strategy = strategy
        self._config = config
        self._betting = config.betting
        self._polling = config.polling
        self._clock = clock
        self._sleep = sleep
        self._keys = key_factory or IdempotencyKeyFactory(clock)
        self._tz = ZoneInfo(config.timezone)
        self._running = False
        self._stop_requested = False
        self.state = RunState()
        self._handlers = {
            BotState.SEARCHING: self._search,
            BotState.AWAITING_WINDOW: self._await_window,
            BotState.BETTING_WINDOW: self._betting_tick,
            BotState.AWAITING_RESOLUTION: self._await_resolution,
            BotState.AWAITING_BALANCE: self._await_balance,
        }

    @property
    def phase(self) -> BotState:
        """Return the current lifecycle phase."""
        return self.state.phase

    @property
    def is_running(self) -> bool:
        """Return True while the scheduler loop is active."""
        return self._running

    async def initialize(self) -> None:
        """Log the configuration, recover outstanding bets, and show quest progress."""
        cfg = self._betting
        logger.info("Unhedged quest bot initializing...")
        logger.info("Mode: %s", "DRY RUN" if self._config.dry_run else "LIVE TRADING")
        if cfg.max_total_bets is not None:
            logger.info("Max bets limit: %d", cfg.max_total_bets)
        logger.info("Price threshold: %.2f%%", cfg.price_uncertainty_threshold * 100)
        logger.info("Majority threshold: %.0f%%", cfg.majority_threshold * 100)
        logger.info("Min pool size: %s CC", cfg.min_pool_size)

        await self._recover()
        await self._log_achievement_progress()

    async def run(self, *, max_steps: int | None = None) -> RunSummary:
        """Run the scheduler until stopped, the bet cap is hit, or ``max_steps``.

        Any exception raised by a handler is logged and followed by an
        error backoff; the phase is kept so the step is retried. A stop
        requested earlier, e.g. during ``initialize``, returns at once.

        Args:
            max_steps: Stop after this many handler calls (``None`` for unlimited).

        Returns:
            Summary of the run.

        """
        self._running = not self._stop_requested
        steps = 0
        while self._running and self.state.phase is not BotState.STOPPED:
            if max_steps is not None and steps >= max_steps:
                break
            steps += 1
            try:
                self.state.phase = await self._handlers[self.state.phase]()
            except Exception:
                logger.exception("Error in %s cycle", self.state.phase.value)
                await self._pause(self._polling.error_backoff_seconds)

        self._running = False
        return RunSummary(
            total_bets=self.state.total_bets,
            dry_run=self._config.dry_run,
            final_state=self.state.phase,
            steps=steps,
        )

    def stop(self) -> None:
        """Ask the scheduler loop to exit after the current step, or never start."""
        self._stop_requested = True
        self._running = False
        logger.info("Bot stopped")

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    async def _recover(self) -> None:
        """Resume tracking the market of the first outstanding bet, if any."""
        logger.info("Checking for pending bets...")
        try:
            bets: list[Bet] = []
            for status in OUTSTANDING_BET_STATUSES:
                bets.extend(await self._client.list_bets(status=status, limit=_RECOVERY_LIMIT))
            logger.info("Found %d active bets (pending + confirmed)", len(bets))
            if not bets:
                return

            bet = bets[0]
            logger.info("Active bet market: %s, status: %s", bet.market_id, bet.status)
            market = await self._client.get_market(bet.market_id)
        except (ApiError, DataIncompleteError) as exc:
            logger.error("Error checking pending bets: %s", exc)
            self.state.drop_market()
            self.state.phase = BotState.SEARCHING
            return

        if market.is_terminal:
            logger.info("Market of outstanding bet already %s", market.status.lower())
            self.state.phase = BotState.SEARCHING
            return

        self.state.market = market
        if market.seconds_until_close(self._clock()) <= 0:
            self.state.phase = BotState.AWAITING_RESOLUTION
        else:
            self.state.phase = BotState.AWAITING_WINDOW
        logger.info("Resuming tracking: %s", market.question)

    async def _log_achievement_progress(self) -> None:
        """Log quest progress; the endpoint is optional, so failures stay at debug."""
        try:
            raw = await self._client.get_achievement_progress()
            lines = achievement_progress_lines(raw)
        except (ApiError, DataIncompleteError) as exc:
            logger.debug("Could not fetch achievement progress: %s", exc)
            return
        for line in lines:
            logger.info("%s", line)

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    async def _search(self) -> BotState:
        """Pick the soonest-closing favourable market, or wait and retry."""
        logger.info("Finding best short-term binary market...")
        market = await self._find_market()
        if market is None:
            logger.info(
                "No market available. Waiting %.0fs...", self._polling.no_market_seconds
            )
            await self._pause(self._polling.no_market_seconds)
            return BotState.SEARCHING

        self.state.market = market
        self.state.bets_in_window = 0
        return BotState.AWAITING_WINDOW

    async def _find_market(self) -> Market | None:
        """Return the first candidate market that clears the majority and pool gates."""
        cfg = self._betting
        markets = await self._client.list_markets(
            status=STATUS_ACTIVE, limit=cfg.market_list_limit
        )
        now = self._clock()
        candidates = sorted(
            (
                m
                for m in markets
                if is_binary_question(m.question)
                and 0 < m.seconds_until_close(now) <= cfg.horizon_seconds
            ),
            key=lambda m: m.end_time,
        )

        for market in candidates:
            if market.status != STATUS_ACTIVE:
                continue
            try:
                stats = await self._client.get_market_stats(market.market_id)
            except (ApiError, DataIncompleteError) as exc:
                logger.debug("Skipping %s, stats unavailable: %s", market.market_id, exc)
                continue

            majority = stats.max_implied_probability
            if majority >= cfg.majority_threshold and stats.total_pool >= cfg.min_pool_size:
                logger.info("Found favorable market: %s", market.question)
                logger.info(
                    "Majority: %.0f%% | Pool: %.0f CC", majority * 100, stats.total_pool
                )
                return market

        if candidates:
            logger.info("No favorable market found. Waiting for better conditions...")
        return None

    async def _await_window(self) -> BotState:  # noqa: PLR0911
        """Wait for the betting window of the tracked market."""
        market = self.state.market
        if market is None:
            return BotState.SEARCHING

        time_to_close = market.seconds_until_close(self._clock())
        if time_to_close <= 0:
            if await self._has_outstanding_bets_safe(market.market_id):
                logger.info("Market closed. Waiting for resolution...")
                return BotState.AWAITING_RESOLUTION
            self.state.drop_market()
            return BotState.SEARCHING

        logger.info("Market: %s", market.question)
        logger.info(
            "Closes at: %s (%s), %dm left",
            market.end_time.astimezone(self._tz).strftime(_CLOSE_TIME_FORMAT),
            self._config.timezone,
            int(time_to_close // 60),
        )
        logger.info("Min bet: %s CC", market.minimum_bet)
        await self._log_price_context(market)

        balance = await self._client.get_balance()
        self.state.available_balance = balance.available
        logger.info("Balance: %.2f CC", balance.available)
        if balance.available < market.minimum_bet:
            logger.warning("Low balance! Waiting for bets to resolve...")
            return BotState.AWAITING_BALANCE

        window = self._betting.window_seconds
        if time_to_close > window:
            wait = time_to_close - window
            logger.info(
                "Sleeping %dm until %dmin betting window...",
                int(wait // 60),
                self._betting.window_minutes,
            )
            await self._pause(wait)
            return BotState.AWAITING_WINDOW

        if self._cap_reached():
            return BotState.STOPPED

        await self._log_window_entry(market)
        self.state.bets_in_window = 0
        return BotState.BETTING_WINDOW

    async def _betting_tick(self) -> BotState:  # noqa: PLR0911
        """Evaluate the strategy once and bet when it says so."""
        market = self.state.market
        if market is None:
            return BotState.SEARCHING

        if market.seconds_until_close(self._clock()) <= 0:
            logger.info("Market closed!")
            return BotState.AWAITING_RESOLUTION
        if self._cap_reached():
            return BotState.STOPPED
        if self.state.available_balance < market.minimum_bet:
            logger.warning("Out of balance during betting window!")
            return BotState.AWAITING_RESOLUTION

        if self._client.remaining_requests() < _MIN_REMAINING_REQUESTS:
            logger.info("Rate limit buffer, waiting...")
            await self._pause(self._polling.rate_limit_idle_seconds)
            return BotState.BETTING_WINDOW

        try:
            stats = await self._client.get_market_stats(market.market_id)
            current_price = await self._current_price(market)
        except (ApiError, DataIncompleteError) as exc:
            logger.error("Failed to get market data: %s", exc)
            await self._pause(self._polling.market_data_retry_seconds)
            return BotState.BETTING_WINDOW

        decision = self._strategy.decide(
            market,
            stats,
            current_price,
            self.state.available_balance,
            market.minimum_bet,
        )
        if decision.should_bet:
            if market.seconds_until_close(self._clock()) <= 0:
                logger.info("Market closed while deciding, skipping bet")
                return BotState.AWAITING_RESOLUTION
            logger.info("Decision: %s (confidence %.2f)", decision.reason, decision.confidence)
            if await self._place_bet(market, decision):
                count = self.state.bets_in_window
                if count % _PROGRESS_EVERY == 0:
                    logger.info("Progress: %d bets in current window", count)
        else:
            logger.info("Skipped: %s", decision.reason)

        await self._pause(self._betting.cooldown_seconds)
        return BotState.BETTING_WINDOW

    async def _await_resolution(self) -> BotState:
        """Poll the tracked market until it resolves or is voided."""
        market = self.state.market
        if market is None:
            return BotState.SEARCHING

        try:
            current = await self._client.get_market(market.market_id)
        except DataIncompleteError:
            logger.info("Market data incomplete, retrying...")
            await self._pause(self._polling.incomplete_data_retry_seconds)
            return BotState.AWAITING_RESOLUTION
        except ApiError as exc:
            logger.error("Error checking market: %s", exc)
            await self._pause(self._polling.resolution_poll_seconds)
            return BotState.AWAITING_RESOLUTION

        if current.is_terminal:
            logger.info("Market %s!", current.status.lower())
            self.state.drop_market()
            return BotState.SEARCHING

        logger.info("Market status: %s, waiting...", current.status)
        await self._pause(self._polling.resolution_poll_seconds)
        return BotState.AWAITING_RESOLUTION

    async def _await_balance(self) -> BotState:
        """Wait until no bet is outstanding, then search with the freed balance."""
        if await self._has_outstanding_bets():
            logger.info(
                "Bets still outstanding, checking again in %.0fs...",
                self._polling.balance_poll_seconds,
            )
            await self._pause(self._polling.balance_poll_seconds)
            return BotState.AWAITING_BALANCE

        logger.info("All bets resolved!")
        balance = await self._client.get_balance()
        self.state.available_balance = balance.available
        logger.info("New balance: %s CC", balance.available)
        self.state.drop_market()
        return BotState.SEARCHING

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _place_bet(self, market: Market, decision: BetDecision) -> bool:
        """Submit (or, in dry run, log) a bet and update the run counters.

        Returns:
            True when the bet was placed or simulated.

        """
        label = market.outcome_label(decision.outcome_index)
        if self._config.dry_run:
            logger.info("[DRY RUN] Would bet %s CC on %s", decision.amount, label)
        else:
            try:
                await self._client.place_bet(
                    market_id=market.market_id,
                    outcome_index=decision.outcome_index,
                    amount=decision.amount,
                    idempotency_key=self._keys.new_key(),
                )
            except (ApiError, DataIncompleteError) as exc:
                logger.error("Bet failed: %s", exc)
                return False
            logger.info("Bet placed: %s CC on %s", decision.amount, label)

        self.state.total_bets += 1
        self.state.bets_in_window += 1
        self.state.available_balance -= decision.amount
        cap = self._betting.max_total_bets
        if cap is not None:
            logger.info("Progress: %d/%d bets", self.state.total_bets, cap)
        return True

    async def _current_price(self, market: Market) -> Decimal | None:
        """Return the spot price of the market's asset, if it has a price source."""
        asset = classify_asset(market.question, self._betting.fallback_asset)
        if asset is None:
            logger.info("Cannot fetch price for this asset type, using majority only")
            return None
        return await self._price_feed.get_price(asset)

    async def _log_price_context(self, market: Market) -> None:
        """Log the target price next to the current spot price."""
        target = parse_price_target(market.question)
        if target is None:
            return
        current = await self._current_price(market)
        if current is None:
            return
        delta_pct = (current - target.price) / target.price * 100
        logger.info(
            "Target: $%.2f | Current: $%.2f (%+.2f%%)", target.price, current, delta_pct
        )

    async def _log_window_entry(self, market: Market) -> None:
        """Log once, on entering the window, whether the market still looks favourable."""
        cfg = self._betting
        logger.info("Entering betting window")
        try:
            stats = await self._client.get_market_stats(market.market_id)
        except (ApiError, DataIncompleteError) as exc:
            logger.debug("Could not check market on window entry: %s", exc)
            return

        majority = stats.max_implied_probability
        reasons: list[str] = []
        if majority < cfg.majority_threshold:
            reasons.append(
                f"{majority * 100:.0f}% majority (need {cfg.majority_threshold * 100:.0f}%)"
            )
        if stats.total_pool < cfg.min_pool_size:
            reasons.append(f"{stats.total_pool:.0f} CC pool (need {cfg.min_pool_size})")
        if reasons:
            logger.info("Market unfavorable: %s, bets will likely be skipped", ", ".join(reasons))

    async def _has_outstanding_bets(self, market_id: str | None = None) -> bool:
        """Return True when a PENDING or CONFIRMED bet exists."""
        for status in OUTSTANDING_BET_STATUSES:
            bets = await self._client.list_bets(status=status, market_id=market_id, limit=1)
            if bets:
                return True
        return False

    async def _has_outstanding_bets_safe(self, market_id: str) -> bool:
        """Like ``_has_outstanding_bets`` but treat API failures as "none"."""
        try:
            return await self._has_outstanding_bets(market_id)
        except (ApiError, DataIncompleteError) as exc:
            logger.warning("Could not check bets for %s: %s", market_id, exc)
            return False

    def _cap_reached(self) -> bool:
        """Return True (and log) once the configured bet cap is reached."""
        cap = self._betting.max_total_bets
        if cap is not None and self.state.total_bets >= cap:
            logger.info("Reached max bets limit (%d). Stopping.", cap)
            return True
        return False

    async def _pause(self, seconds: float) -> None:
        """Sleep for ``seconds``, capped at ``max_sleep_seconds``."""
        await self._sleep(min(seconds, self._polling.max_sleep_seconds))


def achievement_progress_lines(raw: dict[str, Any]) -> list[str]:
    """Summarise the first quest in an achievement-progress payload.

    Args:
        raw: Payload of ``/api/v1/achievements/progress``.

    Returns:
        Log lines describing the quest; empty when there is no quest.

    Raises:
        DataIncompleteError: If the payload does not have the expected shape.

    """
    progress = raw.get("progress") or []
    if not isinstance(progress, list):
        msg = f"Achievement progress must be a list, got {type(progress).__name__}"
        raise DataIncompleteError(msg)
    if not progress:
        return []

    quest = _mapping(progress[0], "quest")
    achievement = _mapping(quest.get("achievement"), "achievement")
    steps = achievement.get("steps") or []
    if not isinstance(steps, list):
        msg = f"Achievement steps must be a list, got {type(steps).__name__}"
        raise DataIncompleteError(msg)
    steps = [_mapping(s, "step") for s in steps]
    completed = _int_field(quest, "completedStep")
    current_bets = _int_field(quest, "currentBets")
    current_volume = _decimal_field(quest, "currentVolume")

    lines = [
        f"Achievement: {achievement.get('name', 'quest')}: "
        f"Step {completed}/{len(steps)} complete",
        f"Progress: {current_bets} bets / {current_volume} CC",
    ]
    step = next((s for s in steps if _int_field(s, "stepNumber") == completed + 1), None)
    if step is None:
        lines.append("Quest complete!")
        return lines

    bets_needed = max(0, _int_field(step, "requiredBets") - current_bets)
    volume_needed = max(ZERO, _decimal_field(step, "requiredVolume") - current_volume)
    lines.append(
        f"Current: Step {step.get('stepNumber')}, need {bets_needed} more bets, "
        f"{volume_needed:.2f} more CC"
    )
    lines.append(f"Reward: {step.get('rewardAmount')} CC")
    return lines


def _mapping(value: Any, name: str) -> dict[str, Any]:
    """Return ``value`` as a dict or raise ``DataIncompleteError``."""
    if not isinstance(value, dict):
        msg = f"Achievement {name} must be an object, got {type(value).__name__}"
        raise DataIncompleteError(msg)
    return cast("dict[str, Any]", value)


def _int_field(data: dict[str, Any], key: str) -> int:
    """Read an integer field, defaulting to 0 when absent."""
    try:
        return int(data.get(key) or 0)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid {key}: {data.get(key)!r}"
        raise DataIncompleteError(msg) from exc


def _decimal_field(data: dict[str, Any], key: str) -> Decimal:
    """Read a Decimal field, defaulting to 0 when absent."""
    try:
        return Decimal(str(data.get(key) or "0"))
    except InvalidOperation as exc:
        msg = f"Invalid {key}: {data.get(key)!r}"
        raise DataIncompleteError(msg) from exc
