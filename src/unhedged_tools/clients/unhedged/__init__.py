"""Unhedged prediction market client for markets, bets, and balance."""

from unhedged_tools.clients.unhedged.client import UnhedgedClient
from unhedged_tools.clients.unhedged.models import (
    Balance,
    Bet,
    Market,
    MarketStats,
    Outcome,
    OutcomeStats,
)

__all__ = [
    "Balance",
    "Bet",
    "Market",
    "MarketStats",
    "Outcome",
    "OutcomeStats",
    "UnhedgedClient",
]
