"""Async client for the CoinMarketCap latest-quotes endpoint."""

import asyncio
import time
from decimal import Decimal, InvalidOperation
from typing import Any

from unhedged_tools.clients._http import RateLimitedClient, ServerRetryConfig
from unhedged_tools.clients._rate_limit import Clock, RateLimitConfig, Sleeper
from unhedged_tools.clients.exceptions import DataIncompleteError


class CoinMarketCapClient(RateLimitedClient):
    """Client for ``/v1/cryptocurrency/quotes/latest``.

    Runs its own request ledger, separate from the market API budget.

    Args:
        api_key: CoinMarketCap Pro API key.
        base_url: Base URL for the CoinMarketCap API.
        rate_limit: Request budget.
        server_retry: Retry policy for gateway errors.
        proxy: Optional proxy URL.
        clock: Function returning the current epoch time in seconds.
        sleep: Awaitable sleep used for rate-limit and retry waits.

    """

    BASE_URL = "https://pro-api.coinmarketcap.com"

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
        """Initialize the CoinMarketCap client."""
        super().__init__(
            base_url,
            headers={"X-CMC_PRO_API_KEY": api_key, "Accept": "application/json"},
            rate_limit=rate_limit,
            server_retry=server_retry,
            proxy=proxy,
            clock=clock,
            sleep=sleep,
        )

    async def get_latest_quote(self, symbol: str, convert: str = "USD") -> Decimal:
        """Fetch the latest price of ``symbol`` in ``convert``.

        Args:
            symbol: Ticker symbol, e.g. ``BTC``.
            convert: Quote currency.

        Returns:
            The latest price.

        Raises:
            DataIncompleteError: If the response has no usable price.

        """
        symbol = symbol.upper()
        raw = await self.get(
            "/v1/cryptocurrency/quotes/latest",
            params={"symbol": symbol, "convert": convert},
        )
        entry = _quote_entry(raw, symbol)
        quote = entry.get("quote")
        converted = quote.get(convert) if isinstance(quote, dict) else None
        price = converted.get("price") if isinstance(converted, dict) else None
        if price is None:
            msg = f"No {convert} price for {symbol}"
            raise DataIncompleteError(msg)
        try:
            value = Decimal(str(price))
        except (InvalidOperation, ValueError) as exc:
            msg = f"Invalid price for {symbol}: {price!r}"
            raise DataIncompleteError(msg) from exc
        if not value.is_finite() or value <= 0:
            msg = f"Invalid price for {symbol}: {price!r}"
            raise DataIncompleteError(msg)
        return value

    async def __aenter__(self) -> "CoinMarketCapClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def _quote_entry(raw: Any, symbol: str) -> dict[str, Any]:
    """Return the quote object for ``symbol``.

    ``data[symbol]`` is an object on the v1 endpoint and a list of matches
    on newer versions; the first match is used.
    """
    data = raw.get("data") if isinstance(raw, dict) else None
    entry = data.get(symbol) if isinstance(data, dict) else None
    if isinstance(entry, list):
        entry = entry[0] if entry else None
    if not isinstance(entry, dict):
        msg = f"No quote data for {symbol}"
        raise DataIncompleteError(msg)
    return entry
