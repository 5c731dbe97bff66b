"""Exception hierarchy shared by the rate-limited HTTP clients.

Follow the same pattern as the other clients: a base API error that carries
a status code and message, with specialised subclasses so callers can tell
recoverable failures (rate limiting, server unavailability) from requests
the server rejected outright.
"""


class ApiError(Exception):
    """Error returned by, or raised while talking to, a remote API.

    Carry a human-readable message, the HTTP status code (``0`` when the
    request never produced a response), and the (truncated) response body.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code from the API response.
        body: Response body text, truncated for logging.

    """

    def __init__(self, msg: str, status_code: int, body: str = "") -> None:
        """Initialize the API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.
            body: Response body text, truncated for logging.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
        self.body = body


class RateLimitedError(ApiError):
    """HTTP 429 response.

    Always retried transparently by ``RateLimitedClient``; surfaced only
    to the client's own retry loop.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code (429).
        retry_after: Seconds the server asked us to wait.

    """

    def __init__(self, msg: str, status_code: int, retry_after: float) -> None:
        """Initialize the rate-limit error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code (429).
            retry_after: Seconds the server asked us to wait.

        """
        super().__init__(msg, status_code)
        self.retry_after = retry_after


class ServerUnavailableError(ApiError):
    """Gateway error (502/503/504) that outlived the retry budget."""


class ClientOrAuthError(ApiError):
    """Non-retryable rejection: any non-2xx status not handled above."""


class DataIncompleteError(ValueError):
    """Response payload is malformed or missing required fields.

    Polling loops treat this as transient and retry after a short delay.
    """
