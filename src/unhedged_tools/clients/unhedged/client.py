"""Async client for the Unhedged prediction market REST API.

All calls go through ``RateLimitedClient`` so the per-minute budget and retry
policy apply to market discovery, stats polling, and bet placement alike.
Raw payloads are converted into the typed models in
``unhedged_tools.clients.unhedged.models``.
"""

import asyncio
import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from unhedged_tools.clients._http import RateLimitedClient, ServerRetryConfig
from unhedged_tools.clients._rate_limit import Clock, RateLimitConfig, Sleeper
from unhedged_tools.clients.exceptions import DataIncompleteError
from unhedged_tools.clients.unhedged.models import (
    ZERO,
    Balance,
    Bet,
    Market,
    MarketStats,
    Outcome,
    OutcomeStats,
)

_DEFAULT_MINIMUM_BET = Decimal("0.1")


class UnhedgedClient(RateLimitedClient):
    """Authenticated client for markets, bets, balance, and achievements.

    Args:
        api_key: Unhedged API key sent as a bearer token.
        base_url: Base URL for the Unhedged API.
        rate_limit: Request budget.
        server_retry: Retry policy for gateway errors.
        proxy: Optional proxy URL.
        clock: Function returning the current epoch time in seconds.
        sleep: Awaitable sleep used for rate-limit and retry waits.

    """

    BASE_URL = "https://api.unhedged.gg"

    def __init__(  # noqa: PLR0913
        self,
        api_key: str,
        *,
        base_url: str = BASE_URL,
        rate_limit: RateLimitConfig | None = None,
        server_retry: ServerRetryConfig | None = None,
        proxy: str | None = None,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the Unhedged client."""
        super().__init__(
            base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            rate_limit=rate_limit,
            server_retry=server_retry,
            proxy=proxy,
            clock=clock,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def list_markets(
        self,
        *,
        status: str = "ACTIVE",
        limit: int = 20,
        offset: int | None = None,
    ) -> list[Market]:
        """Fetch a page of markets filtered by status.

        Entries that cannot be parsed are skipped rather than failing the
        whole page.

        Args:
            status: Market status filter.
            limit: Maximum number of markets to return.
            offset: Pagination offset.

        Returns:
            Parsed markets in API order.

        """
        params: dict[str, Any] = {"status": status, "limit": limit}
        if offset is not None:
            params["offset"] = offset
        raw = await self.get("/api/v1/markets/", params=params)
        markets: list[Market] = []
        for item in _as_dict(raw).get("markets") or []:
            try:
                markets.append(_parse_market(item))
            except DataIncompleteError:
                continue
        return markets

    async def get_market(self, market_id: str) -> Market:
        """Fetch a single market.

        The API sometimes wraps the payload in ``{"market": ...}``; both forms
        are accepted.

        Raises:
            DataIncompleteError: If the payload lacks required fields.

        """
        raw = _as_dict(await self.get(f"/api/v1/markets/{market_id}"))
        payload = raw.get("market", raw)
        return _parse_market(_as_dict(payload))

    async def get_market_stats(self, market_id: str) -> MarketStats:
        """Fetch the current pool statistics of a market."""
        raw = _as_dict(await self.get(f"/api/v1/markets/{market_id}/stats"))
        stats = _as_dict(raw.get("stats", raw))
        outcome_stats = tuple(
            OutcomeStats(
                total_amount=_safe_decimal(item.get("totalAmount")),
                implied_probability=_safe_decimal(item.get("impliedProbability")),
            )
            for item in stats.get("outcomeStats") or []
            if isinstance(item, dict)
        )
        return MarketStats(
            outcome_stats=outcome_stats,
            total_pool=_safe_decimal(stats.get("totalPool")),
        )

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    async def list_bets(
        self,
        *,
        status: str | None = None,
        market_id: str | None = None,
        limit: int = 10,
    ) -> list[Bet]:
        """Fetch the account's bets.

        Args:
            status: Optional bet status filter (e.g. ``PENDING``).
            market_id: Optional market filter.
            limit: Maximum number of bets to return.

        """
        params: dict[str, Any] = {"limit": limit}
        if status is not None:
            params["status"] = status
        if market_id is not None:
            params["marketId"] = market_id
        raw = await self.get("/api/v1/bets/", params=params)
        return [_parse_bet(item) for item in _as_dict(raw).get("bets") or []]

    async def place_bet(
        self,
        *,
        market_id: str,
        outcome_index: int,
        amount: Decimal,
        idempotency_key: str,
    ) -> Bet:
        """Place a bet.

        The idempotency key lets the API discard duplicate submissions of
        the same attempt.

        Returns:
            The created bet as reported by the API.

        """
        raw = await self.post(
            "/api/v1/bets/",
            data={
                "marketId": market_id,
                "outcomeIndex": outcome_index,
                "amount": float(amount),
                "idempotencyKey": idempotency_key,
            },
        )
        payload = _as_dict(raw)
        bet = _as_dict(payload.get("bet", payload))
        bet.setdefault("marketId", market_id)
        bet.setdefault("outcomeIndex", outcome_index)
        bet.setdefault("amount", str(amount))
        return _parse_bet(bet)

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def get_balance(self) -> Balance:
        """Fetch the account balance."""
        raw = _as_dict(await self.get("/api/v1/balance/"))
        balance = _as_dict(raw.get("balance", raw))
        available = _safe_decimal(balance.get("available"))
        total = _safe_decimal(balance.get("total", balance.get("available")))
        return Balance(available=available, total=total)

    async def get_portfolio(self) -> dict[str, Any]:
        """Fetch the raw portfolio summary."""
        return _as_dict(await self.get("/api/v1/portfolio/me"))

    async def get_equity(self) -> dict[str, Any]:
        """Fetch the raw equity summary."""
        return _as_dict(await self.get("/api/v1/portfolio/me/equity"))

    async def get_achievements(self) -> dict[str, Any]:
        """Fetch the raw achievement catalogue."""
        return _as_dict(await self.get("/api/v1/achievements"))

    async def get_achievement_progress(self) -> dict[str, Any]:
        """Fetch the raw achievement progress for the account."""
        return _as_dict(await self.get("/api/v1/achievements/progress"))

    async def __aenter__(self) -> "UnhedgedClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def _as_dict(value: Any) -> dict[str, Any]:
    """Return ``value`` if it is a dict, else raise ``DataIncompleteError``."""
    if not isinstance(value, dict):
        msg = f"Expected a JSON object, got {type(value).__name__}"
        raise DataIncompleteError(msg)
    return dict(value)  # pyright: ignore[reportUnknownArgumentType]


def _safe_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert a value to Decimal, returning ``default`` for None/empty strings.

    Raises:
        DataIncompleteError: If the value is present but malformed.

    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        msg = f"Cannot convert {value!r} to Decimal"
        raise DataIncompleteError(msg) from exc
    if not result.is_finite():
        msg = f"Cannot convert {value!r} to a finite Decimal"
        raise DataIncompleteError(msg)
    return result


def _parse_time(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if not isinstance(value, str) or not value:
        msg = f"Missing or invalid end time: {value!r}"
        raise DataIncompleteError(msg)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        msg = f"Cannot parse end time {value!r}"
        raise DataIncompleteError(msg) from exc
    if parsed.tzinfo is None:
        msg = f"End time {value!r} has no timezone"
        raise DataIncompleteError(msg)
    return parsed


def _parse_outcomes(raw: Any) -> tuple[Outcome, ...]:
    """Parse the outcome list, accepting ``{"label": ...}`` dicts or bare strings."""
    outcomes: list[Outcome] = []
    for i, item in enumerate(raw or []):
        if isinstance(item, dict):
            label = str(item.get("label") or item.get("name") or f"outcome {i}")
        else:
            label = str(item)
        outcomes.append(Outcome(index=i, label=label))
    return tuple(outcomes)


def _parse_market(raw: dict[str, Any]) -> Market:
    """Convert a raw market dict into a typed ``Market``.

    Raises:
        DataIncompleteError: If the id, status, or end time is missing.

    """
    market_id = raw.get("id")
    status = raw.get("status")
    if not market_id or not status:
        msg = f"Market payload missing id or status: {sorted(raw)}"
        raise DataIncompleteError(msg)

    fee = raw.get("platformFeeRate")
    return Market(
        market_id=str(market_id),
        question=str(raw.get("question") or ""),
        outcomes=_parse_outcomes(raw.get("outcomes")),
        end_time=_parse_time(raw.get("endTime")),
        status=str(status),
        minimum_bet=_safe_decimal(raw.get("minimumBet"), _DEFAULT_MINIMUM_BET),
        platform_fee_rate=_safe_decimal(fee) if fee not in (None, "") else None,
    )


def _parse_bet(raw: Any) -> Bet:
    """Convert a raw bet dict into a typed ``Bet``."""
    data = _as_dict(raw)
    try:
        outcome_index = int(data.get("outcomeIndex", 0))
    except (TypeError, ValueError) as exc:
        msg = f"Invalid outcomeIndex: {data.get('outcomeIndex')!r}"
        raise DataIncompleteError(msg) from exc
    return Bet(
        bet_id=str(data.get("id", "")),
        market_id=str(data.get("marketId", "")),
        outcome_index=outcome_index,
        amount=_safe_decimal(data.get("amount")),
        status=str(data.get("status", "")),
    )
