"""Rate-governed, retrying async HTTP client.

Every outbound call to the market API and the price provider flows through
``RateLimitedClient``. It waits for request budget before each send, retries
HTTP 429 responses indefinitely (the limiter expects them), retries gateway
errors a bounded number of times, and maps every other failure onto the
``ApiError`` hierarchy.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from unhedged_tools.clients._rate_limit import (
    Clock,
    RateLimitConfig,
    RateLimiter,
    Sleeper,
)
from unhedged_tools.clients.exceptions import (
    ApiError,
    ClientOrAuthError,
    DataIncompleteError,
    RateLimitedError,
    ServerUnavailableError,
)

logger = logging.getLogger(__name__)

_HTTP_OK_MIN = 200
_HTTP_OK_MAX = 299
_HTTP_TOO_MANY_REQUESTS = 429
_GATEWAY_STATUSES = frozenset({502, 503, 504})
_SERVER_ERROR_BODY_LIMIT = 200
_ERROR_BODY_LIMIT = 500
_DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ServerRetryConfig:
    """Retry policy for 502/503/504 responses.

    Args:
        enabled: Retry gateway errors at all.
        max_retries: Retries allowed per call before the error surfaces.
        wait_seconds: Fixed backoff between retries.

    """

    enabled: bool = True
    max_retries: int = 3
    wait_seconds: float = 5.0


class RateLimitedClient:
    """Async HTTP client with a sliding-window budget and retry policy.

    Subclasses add endpoint methods on top of ``request``.

    Args:
        base_url: Base URL of the API.
        headers: Headers sent with every request (auth, content type).
        rate_limit: Request budget for this API.
        server_retry: Retry policy for gateway errors.
        timeout: Request timeout in seconds.
        proxy: Optional proxy URL for all requests.
        clock: Function returning the current epoch time in seconds.
        sleep: Awaitable sleep used for every wait.

    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        rate_limit: RateLimitConfig | None = None,
        server_retry: ServerRetryConfig | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        proxy: str | None = None,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the client and its request ledger."""
        self.base_url = base_url.rstrip("/")
        self.rate_limit = rate_limit or RateLimitConfig()
        self.server_retry = server_retry or ServerRetryConfig()
        self._sleep = sleep
        self._limiter = RateLimiter(self.rate_limit, clock=clock, sleep=sleep)
        self._http_client = httpx.AsyncClient(
            headers=headers,
            timeout=timeout,
            proxy=proxy,
        )

    def remaining_requests(self) -> int:
        """Return how many requests may still start in the current window."""
        return self._limiter.remaining()

    @property
    def request_times(self) -> tuple[float, ...]:
        """Return the start times of requests in the current window."""
        return self._limiter.ledger.snapshot()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request, honouring the budget and retry policy.

        Args:
            method: HTTP method.
            path: Request path relative to ``base_url``.
            params: Query parameters.
            json_body: JSON request body.

        Returns:
            Parsed JSON response.

        Raises:
            ServerUnavailableError: Gateway errors after the retry budget.
            ClientOrAuthError: Any other non-2xx response.
            ApiError: Transport failures (status code ``0``).
            DataIncompleteError: A 2xx response whose body is not JSON.

        """
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.base_url}{path}"

        server_retries = 0
        while True:
            await self._limiter.acquire()
            try:
                response = await self._http_client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                )
            except httpx.HTTPError as exc:
                raise ApiError(msg=f"HTTP request failed: {exc}", status_code=0) from exc

            try:
                return self._handle_response(response)
            except RateLimitedError as exc:
                logger.warning("Rate limited. Waiting %.1fs...", exc.retry_after)
                await self._sleep(exc.retry_after)
            except ServerUnavailableError as exc:
                if not self.server_retry.enabled or server_retries >= self.server_retry.max_retries:
                    raise
                server_retries += 1
                logger.warning(
                    "%s, retrying %d/%d in %.1fs...",
                    exc.msg,
                    server_retries,
                    self.server_retry.max_retries,
                    self.server_retry.wait_seconds,
                )
                await self._sleep(self.server_retry.wait_seconds)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Send a GET request and return parsed JSON."""
        return await self.request("GET", path, params=params)

    async def post(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Send a POST request with a JSON body and return parsed JSON."""
        return await self.request("POST", path, json_body=data)

    def _handle_response(self, response: httpx.Response) -> Any:
        """Parse a successful response or raise the matching error.

        Args:
            response: HTTP response to inspect.

        Returns:
            Parsed JSON body of a 2xx response.

        Raises:
            RateLimitedError: For 429 responses.
            ServerUnavailableError: For 502/503/504 responses.
            ClientOrAuthError: For any other non-2xx response.
            DataIncompleteError: When a 2xx body is not valid JSON.

        """
        status = response.status_code
        if status == _HTTP_TOO_MANY_REQUESTS:
            raise RateLimitedError(
                msg="Rate limited",
                status_code=status,
                retry_after=self._retry_after(response),
            )

        if status in _GATEWAY_STATUSES:
            text = response.text
            if "<!doctype html" in text.lower() or "<html" in text.lower():
                msg = f"Server error {status}"
            else:
                msg = text[:_SERVER_ERROR_BODY_LIMIT] or f"Server error {status}"
            raise ServerUnavailableError(msg=msg, status_code=status)

        if not _HTTP_OK_MIN <= status <= _HTTP_OK_MAX:
            body = response.text[:_ERROR_BODY_LIMIT]
            raise ClientOrAuthError(msg=body or f"HTTP {status}", status_code=status, body=body)

        try:
            return response.json()
        except ValueError as exc:
            msg = f"Response from {response.url} is not valid JSON"
            raise DataIncompleteError(msg) from exc

    def _retry_after(self, response: httpx.Response) -> float:
        """Read ``Retry-After`` seconds, falling back to the configured default."""
        header = response.headers.get("Retry-After")
        if header is None:
            return self.rate_limit.retry_after_seconds
        try:
            return max(float(header), 0.0)
        except (TypeError, ValueError):
            return self.rate_limit.retry_after_seconds

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()
