"""Tests for the rate-limited, retrying HTTP client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fakes import FakeClock

from unhedged_tools.clients._http import RateLimitedClient, ServerRetryConfig
from unhedged_tools.clients.exceptions import (
    ApiError,
    ClientOrAuthError,
    DataIncompleteError,
    ServerUnavailableError,
)

_STATUS_OK = 200
_STATUS_UNAUTHORIZED = 401
_STATUS_TOO_MANY = 429
_STATUS_BAD_GATEWAY = 502
_STATUS_UNAVAILABLE = 503


def _response(
    status: int,
    *,
    json_data: Any = None,
    text: str = "",
    headers: dict[str, str] | None = None,
) -> MagicMock:
    """Build a mock httpx response."""
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.headers = headers or {}
    response.json.return_value = json_data
    return response


class TestRateLimitedClient:
    """Test suite for RateLimitedClient."""

    @pytest.fixture
    def client(self, fake_clock: FakeClock) -> RateLimitedClient:
        """Create a client on the fake clock with one gateway retry."""
        return RateLimitedClient(
            "https://api.example.com/",
            server_retry=ServerRetryConfig(max_retries=1, wait_seconds=5.0),
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )

    def test_trailing_slash_stripped(self, client: RateLimitedClient) -> None:
        """Test trailing slash is stripped from base URL."""
        assert client.base_url == "https://api.example.com"

    @pytest.mark.asyncio
    async def test_get_returns_json_and_records_request(
        self, client: RateLimitedClient, fake_clock: FakeClock
    ) -> None:
        """Test a successful GET returns parsed JSON and uses budget."""
        mock_response = _response(_STATUS_OK, json_data={"ok": True})
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=mock_response)
        ) as mock_request:
            result = await client.get("v1/things", params={"a": 1})

        assert result == {"ok": True}
        assert mock_request.call_args.args == ("GET", "https://api.example.com/v1/things")
        assert mock_request.call_args.kwargs["params"] == {"a": 1}
        assert client.request_times == (fake_clock.now,)
        assert client.remaining_requests() == client.rate_limit.effective_cap - 1

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, client: RateLimitedClient) -> None:
        """Test POST forwards the body as JSON."""
        mock_response = _response(_STATUS_OK, json_data={})
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=mock_response)
        ) as mock_request:
            await client.post("/v1/things", data={"x": 1})

        assert mock_request.call_args.kwargs["json"] == {"x": 1}

    @pytest.mark.asyncio
    async def test_429_retries_after_header_delay(
        self, client: RateLimitedClient, fake_clock: FakeClock
    ) -> None:
        """Test a 429 waits for Retry-After and retries the same call."""
        responses = [
            _response(_STATUS_TOO_MANY, headers={"Retry-After": "3"}),
            _response(_STATUS_OK, json_data={"ok": True}),
        ]
        with patch.object(
            client._http_client, "request", new=AsyncMock(side_effect=responses)
        ) as mock_request:
            result = await client.get("/v1/things")

        assert result == {"ok": True}
        assert mock_request.await_count == 2
        assert fake_clock.sleeps == [3.0]

    @pytest.mark.asyncio
    async def test_429_without_header_uses_default(
        self, client: RateLimitedClient, fake_clock: FakeClock
    ) -> None:
        """Test a 429 without Retry-After falls back to the configured wait."""
        responses = [
            _response(_STATUS_TOO_MANY, headers={"Retry-After": "soon"}),
            _response(_STATUS_OK, json_data=[]),
        ]
        with patch.object(client._http_client, "request", new=AsyncMock(side_effect=responses)):
            await client.get("/v1/things")

        assert fake_clock.sleeps[0] == client.rate_limit.retry_after_seconds

    @pytest.mark.asyncio
    async def test_503_retries_once_then_raises(
        self, client: RateLimitedClient, fake_clock: FakeClock
    ) -> None:
        """Test three 503s with max_retries=1 give exactly one retry."""
        responses = [
            _response(_STATUS_UNAVAILABLE, text="down"),
            _response(_STATUS_UNAVAILABLE, text="down"),
            _response(_STATUS_UNAVAILABLE, text="down"),
        ]
        with (
            patch.object(
                client._http_client, "request", new=AsyncMock(side_effect=responses)
            ) as mock_request,
            pytest.raises(ServerUnavailableError, match="down") as exc_info,
        ):
            await client.get("/v1/things")

        assert mock_request.await_count == 2
        assert fake_clock.sleeps == [5.0]
        assert exc_info.value.status_code == _STATUS_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_503_recovers_within_budget(self, client: RateLimitedClient) -> None:
        """Test a single 503 followed by success returns the result."""
        responses = [
            _response(_STATUS_UNAVAILABLE, text="down"),
            _response(_STATUS_OK, json_data={"ok": True}),
        ]
        with patch.object(client._http_client, "request", new=AsyncMock(side_effect=responses)):
            assert await client.get("/v1/things") == {"ok": True}

    @pytest.mark.asyncio
    async def test_server_retry_disabled(self, fake_clock: FakeClock) -> None:
        """Test gateway errors surface immediately when retry is disabled."""
        client = RateLimitedClient(
            "https://api.example.com",
            server_retry=ServerRetryConfig(enabled=False),
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(_STATUS_UNAVAILABLE)),
            ) as mock_request,
            pytest.raises(ServerUnavailableError),
        ):
            await client.get("/v1/things")

        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_html_gateway_body_collapsed(self, fake_clock: FakeClock) -> None:
        """Test an HTML error page is reduced to a short message."""
        client = RateLimitedClient(
            "https://api.example.com",
            server_retry=ServerRetryConfig(max_retries=0),
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
        html = "<!DOCTYPE html><html><body>Bad gateway</body></html>"
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(_STATUS_BAD_GATEWAY, text=html)),
            ),
            pytest.raises(ServerUnavailableError) as exc_info,
        ):
            await client.get("/v1/things")

        assert exc_info.value.msg == "Server error 502"

    @pytest.mark.asyncio
    async def test_gateway_body_truncated(self, fake_clock: FakeClock) -> None:
        """Test a plain-text gateway body is truncated to 200 characters."""
        client = RateLimitedClient(
            "https://api.example.com",
            server_retry=ServerRetryConfig(max_retries=0),
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(_STATUS_BAD_GATEWAY, text="x" * 500)),
            ),
            pytest.raises(ServerUnavailableError) as exc_info,
        ):
            await client.get("/v1/things")

        assert len(exc_info.value.msg) == 200

    @pytest.mark.asyncio
    async def test_401_raises_without_retry(
        self, client: RateLimitedClient, fake_clock: FakeClock
    ) -> None:
        """Test an auth failure raises ClientOrAuthError and is not retried."""
        body = "unauthorized " * 100
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(_STATUS_UNAUTHORIZED, text=body)),
            ) as mock_request,
            pytest.raises(ClientOrAuthError) as exc_info,
        ):
            await client.get("/v1/things")

        assert mock_request.await_count == 1
        assert fake_clock.sleeps == []
        assert exc_info.value.status_code == _STATUS_UNAUTHORIZED
        assert len(exc_info.value.body) == 500

    @pytest.mark.asyncio
    async def test_empty_error_body_uses_status(self, client: RateLimitedClient) -> None:
        """Test an empty error body is replaced with the status code."""
        with (
            patch.object(
                client._http_client, "request", new=AsyncMock(return_value=_response(404))
            ),
            pytest.raises(ClientOrAuthError, match="HTTP 404"),
        ):
            await client.get("/v1/missing")

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_api_error(self, client: RateLimitedClient) -> None:
        """Test network failures raise ApiError with status 0."""
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(side_effect=httpx.ConnectError("boom")),
            ),
            pytest.raises(ApiError, match="HTTP request failed") as exc_info,
        ):
            await client.get("/v1/things")

        assert exc_info.value.status_code == 0

    @pytest.mark.asyncio
    async def test_non_json_success_raises_data_incomplete(
        self, client: RateLimitedClient
    ) -> None:
        """Test a 2xx body that is not JSON raises DataIncompleteError."""
        mock_response = _response(_STATUS_OK)
        mock_response.json.side_effect = ValueError("not json")
        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=mock_response)),
            pytest.raises(DataIncompleteError),
        ):
            await client.get("/v1/things")

    @pytest.mark.asyncio
    async def test_close_client(self, client: RateLimitedClient) -> None:
        """Test closing the client."""
        with patch.object(client._http_client, "aclose", new=AsyncMock()) as mock_close:
            await client.close()
            mock_close.assert_called_once()
