"""Idempotency keys for bet submissions."""

import secrets
import time

from unhedged_tools.clients._rate_limit import Clock


class IdempotencyKeyFactory:
    """Generate ``<epoch-ms>-<sequence>-<random hex>`` keys.

    The per-factory sequence keeps keys distinct even when two are
    generated within the same millisecond.

    Args:
        clock: Function returning the current epoch time in seconds.

    """

    def __init__(self, clock: Clock = time.time) -> None:
        """Initialize the factory with a zero sequence."""
        self._clock = clock
        self._sequence = 0

    def new_key(self) -> str:
        """Return a fresh key."""
        self._sequence += 1
        millis = int(self._clock() * 1000)
        return f"{millis}-{self._sequence}-{secrets.token_hex(4)}"
