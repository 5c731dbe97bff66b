"""Best-effort parsing of free-text market questions.

Questions look like ``"Will BTC be above $98,000 at 8 PM?"``. Parsing is
heuristic, so every helper returns an explicit "unknown" value (``None``
or ``False``) instead of guessing when the text does not match.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from unhedged_tools.clients.unhedged.models import ZERO

_NUMBER = re.compile(r"\$?(\d[\d,]*(?:\.\d+)?)")
_PRICE_KEYWORDS = ("price", "above", "below", "btc", "eth", "bitcoin", "ethereum", "$")

# Checked in order; the first match wins.
_ASSET_PATTERNS: tuple[tuple[re.Pattern[str], str | None], ...] = (
    (re.compile(r"\b(?:bitcoin|btc)\b", re.IGNORECASE), "BTC"),
    (re.compile(r"\b(?:ethereum|eth)\b", re.IGNORECASE), "ETH"),
    (re.compile(r"\b(?:solana|sol)\b", re.IGNORECASE), "SOL"),
    # Canton Coin has no price source.
    (re.compile(r"\b(?:canton\s+coin|cc)\b", re.IGNORECASE), None),
)


@dataclass(frozen=True)
class PriceTarget:
    """Price threshold extracted from a question.

    Args:
        price: Target price.
        is_above: True for "above" questions, False otherwise.

    """

    price: Decimal
    is_above: bool


def is_binary_question(question: str) -> bool:
    """Return True when the question is an above/below threshold question."""
    lower = question.lower()
    return "above" in lower or "below" in lower


def is_price_question(question: str) -> bool:
    """Return True when the question mentions a price or a priced asset."""
    lower = question.lower()
    return any(keyword in lower for keyword in _PRICE_KEYWORDS)


def parse_price_target(question: str) -> PriceTarget | None:
    """Extract the first number in ``question`` as the target price.

    Thousands separators are accepted. Direction is "above" when the word
    appears anywhere in the question.

    Returns:
        The parsed target, or ``None`` when no positive number is present.

    """
    match = _NUMBER.search(question)
    if match is None:
        return None
    try:
        price = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    if price <= ZERO:
        return None
    return PriceTarget(price=price, is_above="above" in question.lower())


def classify_asset(question: str, fallback: str | None = "BTC") -> str | None:
    """Return the ticker the question is about.

    Args:
        question: Market question text.
        fallback: Ticker assumed when no known asset is named; ``None``
            disables the fallback.

    Returns:
        ``BTC``, ``ETH`` or ``SOL``; ``None`` for assets without a price
        source or when nothing matches and there is no fallback.

    """
    for pattern, asset in _ASSET_PATTERNS:
        if pattern.search(question):
            return asset
    return fallback
