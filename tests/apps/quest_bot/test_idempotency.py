"""Tests for bet idempotency keys."""

import re

from fakes import FakeClock

from unhedged_tools.apps.quest_bot.idempotency import IdempotencyKeyFactory

_KEY_PATTERN = re.compile(r"^(\d+)-(\d+)-[0-9a-f]{8}$")


class TestIdempotencyKeyFactory:
    """Test suite for IdempotencyKeyFactory."""

    def test_key_format(self, fake_clock: FakeClock) -> None:
        """Test keys carry epoch millis, a sequence and random hex."""
        key = IdempotencyKeyFactory(fake_clock).new_key()
        match = _KEY_PATTERN.match(key)
        assert match is not None
        assert int(match.group(1)) == int(fake_clock.now * 1000)
        assert match.group(2) == "1"

    def test_same_millisecond_keys_differ(self, fake_clock: FakeClock) -> None:
        """Test two keys generated at the same instant are distinct."""
        factory = IdempotencyKeyFactory(fake_clock)
        first, second = factory.new_key(), factory.new_key()
        assert first != second
        assert first.split("-")[0] == second.split("-")[0]
