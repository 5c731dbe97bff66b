"""CoinMarketCap quote client for spot crypto prices."""

from unhedged_tools.clients.coinmarketcap.client import CoinMarketCapClient

__all__ = ["CoinMarketCapClient"]
