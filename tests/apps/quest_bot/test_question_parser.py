"""Tests for market question parsing."""

from decimal import Decimal

import pytest

from unhedged_tools.apps.quest_bot.question_parser import (
    PriceTarget,
    classify_asset,
    is_binary_question,
    is_price_question,
    parse_price_target,
)


class TestIsBinaryQuestion:
    """Test suite for is_binary_question."""

    @pytest.mark.parametrize(
        ("question", "expected"),
        [
            ("Will BTC be above $98,000 at 8 PM?", True),
            ("Will ETH close BELOW $2,500?", True),
            ("Who wins the match?", False),
        ],
    )
    def test_detection(self, question: str, *, expected: bool) -> None:
        """Test above/below questions are binary, case-insensitively."""
        assert is_binary_question(question) is expected


class TestIsPriceQuestion:
    """Test suite for is_price_question."""

    def test_price_keywords(self) -> None:
        """Test assets, dollar signs and directions mark a price question."""
        assert is_price_question("Bitcoin price at noon?")
        assert is_price_question("Over $5 by Friday?")
        assert not is_price_question("Who wins the match?")


class TestParsePriceTarget:
    """Test suite for parse_price_target."""

    def test_dollar_amount_with_commas(self) -> None:
        """Test the first dollar amount is the target and direction is above."""
        target = parse_price_target("Will BTC be above $98,000 at 8 PM?")
        assert target == PriceTarget(price=Decimal(98000), is_above=True)

    def test_bare_decimal_below(self) -> None:
        """Test bare numbers with decimals parse and direction is below."""
        target = parse_price_target("Will ETH close below 2,500.50?")
        assert target == PriceTarget(price=Decimal("2500.50"), is_above=False)

    def test_no_number_is_unparseable(self) -> None:
        """Test a question without a number yields None."""
        assert parse_price_target("Will BTC close above the open?") is None

    def test_zero_is_unparseable(self) -> None:
        """Test a zero target yields None rather than a division hazard."""
        assert parse_price_target("Will BTC be above $0?") is None


class TestClassifyAsset:
    """Test suite for classify_asset."""

    @pytest.mark.parametrize(
        ("question", "expected"),
        [
            ("Will Bitcoin be above $100,000?", "BTC"),
            ("Will btc be above $100,000?", "BTC"),
            ("Will Ethereum be below $2,500?", "ETH"),
            ("Will SOL be above $150?", "SOL"),
            ("Will Canton Coin be above $0.15?", None),
            ("Will CC be above $0.15?", None),
        ],
    )
    def test_known_assets(self, question: str, expected: str | None) -> None:
        """Test known assets are recognised and Canton Coin has no price source."""
        assert classify_asset(question) == expected

    def test_whole_word_matching(self) -> None:
        """Test asset names inside other words do not match."""
        assert classify_asset("Will Bethany's solar index be above 50?", fallback=None) is None

    def test_fallback(self) -> None:
        """Test unknown assets use the configured fallback."""
        assert classify_asset("Will the index be above 5,000?") == "BTC"
        assert classify_asset("Will the index be above 5,000?", fallback="ETH") == "ETH"
        assert classify_asset("Will the index be above 5,000?", fallback=None) is None
