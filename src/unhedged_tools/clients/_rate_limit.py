"""Sliding-window request budget shared by the HTTP clients.

Track request start times in a fixed-capacity ring buffer and block callers
so that no more than ``max_requests_per_minute - buffer_requests`` requests
start within any trailing 60-second window. On top of the hard cap, requests
are spaced at least ``60 / effective_cap`` seconds apart to flatten bursts.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

WINDOW_SECONDS = 60.0
_SAFETY_MARGIN_SECONDS = 0.1
_DEFAULT_MAX_PER_MINUTE = 30
_DEFAULT_BUFFER_REQUESTS = 5
_DEFAULT_RETRY_AFTER = 2.0


@dataclass(frozen=True)
class RateLimitConfig:
    """Request budget for one API.

    Args:
        max_requests_per_minute: Hard limit advertised by the API.
        buffer_requests: Requests kept in reserve below the hard limit.
        retry_after_seconds: Wait used after a 429 without ``Retry-After``.

    Raises:
        ValueError: If the buffer leaves no usable budget.

    """

    max_requests_per_minute: int = _DEFAULT_MAX_PER_MINUTE
    buffer_requests: int = _DEFAULT_BUFFER_REQUESTS
    retry_after_seconds: float = _DEFAULT_RETRY_AFTER

    def __post_init__(self) -> None:
        """Validate that at least one request per window is allowed."""
        if self.max_requests_per_minute - self.buffer_requests < 1:
            msg = (
                "max_requests_per_minute must exceed buffer_requests, got "
                f"{self.max_requests_per_minute} and {self.buffer_requests}"
            )
            raise ValueError(msg)

    @property
    def effective_cap(self) -> int:
        """Return the number of requests allowed per window."""
        return self.max_requests_per_minute - self.buffer_requests

    @property
    def min_interval(self) -> float:
        """Return the minimum spacing between requests in seconds."""
        return WINDOW_SECONDS / self.effective_cap


class RequestLedger:
    """Ring buffer of request timestamps inside the trailing window.

    Capacity equals the effective cap, so the buffer never grows beyond
    the number of requests that may legally be in flight per window.

    Args:
        capacity: Maximum number of timestamps retained.

    """

    def __init__(self, capacity: int) -> None:
        """Initialize an empty ledger.

        Args:
            capacity: Maximum number of timestamps retained.

        """
        self._entries: deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        """Return the number of retained timestamps."""
        return len(self._entries)

    def prune(self, now: float) -> None:
        """Drop timestamps that are 60 seconds old or older.

        Args:
            now: Current time in epoch seconds.

        """
        cutoff = now - WINDOW_SECONDS
        while self._entries and self._entries[0] <= cutoff:
            self._entries.popleft()

    def record(self, timestamp: float) -> None:
        """Append a request start time."""
        self._entries.append(timestamp)

    def count(self, now: float) -> int:
        """Return the number of requests started within the window.

        Args:
            now: Current time in epoch seconds.

        """
        self.prune(now)
        return len(self._entries)

    @property
    def oldest(self) -> float | None:
        """Return the oldest retained timestamp, if any."""
        return self._entries[0] if self._entries else None

    @property
    def latest(self) -> float | None:
        """Return the most recent timestamp, if any."""
        return self._entries[-1] if self._entries else None

    def snapshot(self) -> tuple[float, ...]:
        """Return the retained timestamps, oldest first."""
        return tuple(self._entries)


class RateLimiter:
    """Block callers until the request budget allows another send.

    Args:
        config: Request budget.
        clock: Function returning the current epoch time in seconds.
        sleep: Awaitable sleep used for every wait.

    """

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the limiter with an empty ledger."""
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self.ledger = RequestLedger(config.effective_cap)

    async def acquire(self) -> None:
        """Wait for budget, then record a request start at the current time."""
        now = self._clock()
        self.ledger.prune(now)

        oldest = self.ledger.oldest
        if len(self.ledger) >= self._config.effective_cap and oldest is not None:
            wait = WINDOW_SECONDS - (now - oldest) + _SAFETY_MARGIN_SECONDS
            if wait > 0:
                logger.info("Rate limit buffer: waiting %.1fs", wait)
                await self._sleep(wait)
                now = self._clock()
                self.ledger.prune(now)

        latest = self.ledger.latest
        if latest is not None:
            elapsed = now - latest
            if elapsed < self._config.min_interval:
                await self._sleep(self._config.min_interval - elapsed)

        self.ledger.record(self._clock())

    def remaining(self) -> int:
        """Return how many requests may still start in the current window."""
        return self._config.effective_cap - self.ledger.count(self._clock())
