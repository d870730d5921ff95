"""Backend package exports."""
from __future__ import annotations

from typing import Any

from .events import EventListener, EventStream, EventSubscription
from .ws_health import WsHealthTracker

__all__ = [
    "ConnectionClosedError",
    "EventListener",
    "EventStream",
    "EventSubscription",
    "HandshakePhase",
    "HomeAssistantWSClient",
    "WsHealthTracker",
]


def __getattr__(name: str) -> Any:
    """Lazily import the websocket client to avoid circular imports."""

    if name in {"ConnectionClosedError", "HandshakePhase", "HomeAssistantWSClient"}:
        from . import ws_client

        value = getattr(ws_client, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
