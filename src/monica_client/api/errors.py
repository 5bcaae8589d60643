"""Error taxonomy for the Monica API client.

Every failure the client can surface maps onto one of these types:

- ``InvalidURLError``:      the configured endpoint cannot form a URL
- ``InvalidResponseError``: the server answered with something unusable
- ``UnauthorizedError``:    HTTP 401
- ``ServerError``:          any other 4xx/5xx, carries ``status_code``
- ``DecodingError``:        body is not the expected JSON shape
- ``NetworkError``:         transport failure or timeout, wraps ``cause``
"""

from __future__ import annotations

from typing import Optional


class APIError(Exception):
    """Base exception for Monica API errors."""

    message = "API error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class InvalidURLError(APIError):
    """The API base URL is not usable."""

    message = "Invalid API URL"


class InvalidResponseError(APIError):
    """Response was not a usable HTTP response."""

    message = "Invalid response from server"


class UnauthorizedError(APIError):
    """Token rejected (HTTP 401) or no authenticated client available."""

    message = "Invalid API token or unauthorized access"


class ServerError(APIError):
    """Non-2xx status other than 401."""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        self.status_code = int(status_code)
        super().__init__(message or f"Server error (code: {self.status_code})")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class DecodingError(APIError):
    """Response body did not match the expected shape."""

    message = "Failed to decode server response"


class NetworkError(APIError):
    """Transport-level failure (DNS, connection, timeout, TLS)."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Network error: {cause}")


__all__ = [
    "APIError",
    "InvalidURLError",
    "InvalidResponseError",
    "UnauthorizedError",
    "ServerError",
    "DecodingError",
    "NetworkError",
]
