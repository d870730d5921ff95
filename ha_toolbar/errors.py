"""Exceptions raised by the Home Assistant toolbar client."""

from __future__ import annotations


class HomeAssistantClientError(Exception):
    """Base class for client failures."""


class InvalidConfigurationError(HomeAssistantClientError):
    """Host or token missing, or a URL could not be built."""


class HandshakeError(HomeAssistantClientError):
    """The websocket authentication or subscription handshake failed."""


class NetworkFailureError(HomeAssistantClientError):
    """Transport-level failure (refused, reset, timeout)."""


class HTTPFailureError(HomeAssistantClientError):
    """The REST API answered with a non-200 status."""

    def __init__(self, status: int, url: str | None = None) -> None:
        """Initialise the error with the HTTP status code."""

        super().__init__(f"HTTP request failed (status={status})")
        self.status = status
        self.url = url


class DecodingFailureError(HomeAssistantClientError):
    """A REST response body could not be decoded."""


__all__ = [
    "DecodingFailureError",
    "HTTPFailureError",
    "HandshakeError",
    "HomeAssistantClientError",
    "InvalidConfigurationError",
    "NetworkFailureError",
]
