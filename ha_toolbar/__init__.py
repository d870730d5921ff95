"""Realtime Home Assistant client for weather toolbars and widgets."""
from __future__ import annotations

from .api import RESTClient
from .backend.ws_client import HomeAssistantWSClient
from .domain import (
    ClientEvent,
    ConnectionConfiguration,
    ConnectionPhase,
    ConnectionState,
    ConnectionStateEvent,
    DisconnectionKind,
    DisconnectionReason,
    EntityStateSnapshot,
    PingEvent,
    StateChangedEvent,
)
from .errors import (
    DecodingFailureError,
    HandshakeError,
    HomeAssistantClientError,
    HTTPFailureError,
    InvalidConfigurationError,
    NetworkFailureError,
)
from .service import SensorService, ServiceStatus
from .settings import ToolbarSettings, load_settings, settings_from_mapping
from .supervisor import ReconnectSupervisor

__version__ = "0.1.0"

__all__ = [
    "ClientEvent",
    "ConnectionConfiguration",
    "ConnectionPhase",
    "ConnectionState",
    "ConnectionStateEvent",
    "DecodingFailureError",
    "DisconnectionKind",
    "DisconnectionReason",
    "EntityStateSnapshot",
    "HTTPFailureError",
    "HandshakeError",
    "HomeAssistantClientError",
    "HomeAssistantWSClient",
    "InvalidConfigurationError",
    "NetworkFailureError",
    "PingEvent",
    "RESTClient",
    "ReconnectSupervisor",
    "SensorService",
    "ServiceStatus",
    "StateChangedEvent",
    "ToolbarSettings",
    "load_settings",
    "settings_from_mapping",
]
