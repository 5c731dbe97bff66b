"""Spot price lookup for the assets named in market questions."""

import logging
from decimal import Decimal

from unhedged_tools.clients.coinmarketcap.client import CoinMarketCapClient
from unhedged_tools.clients.exceptions import ApiError, DataIncompleteError

logger = logging.getLogger(__name__)


class PriceFeed:
    """Fetch the latest USD price of an asset, or ``None`` when unavailable.

    Price failures never interrupt the betting loop: a missing API key,
    a request error, or a malformed quote all yield ``None`` and the
    strategy skips the tick.

    Args:
        client: CoinMarketCap client, or ``None`` when no API key is configured.

    """

    def __init__(self, client: CoinMarketCapClient | None) -> None:
        """Initialize the feed."""
        self._client = client
        self._warned_missing_key = False

    @property
    def available(self) -> bool:
        """Return True when a price client is configured."""
        return self._client is not None

    async def get_price(self, symbol: str) -> Decimal | None:
        """Return the latest USD price of ``symbol``.

        Args:
            symbol: Ticker such as ``BTC``.

        Returns:
            The price, or ``None`` on any failure.

        """
        if self._client is None:
            if not self._warned_missing_key:
                logger.error("Price API key not set. Cannot fetch prices.")
                self._warned_missing_key = True
            return None
        try:
            return await self._client.get_latest_quote(symbol)
        except (ApiError, DataIncompleteError) as exc:
            logger.error("Failed to fetch %s price: %s", symbol, exc)
            return None

    async def close(self) -> None:
        """Close the underlying client, if any."""
        if self._client is not None:
            await self._client.close()
