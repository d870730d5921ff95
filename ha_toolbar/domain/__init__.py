"""Domain-layer primitives for the Home Assistant toolbar client."""

from .config import ConnectionConfiguration
from .state import (
    ClientEvent,
    ConnectionPhase,
    ConnectionState,
    ConnectionStateEvent,
    DisconnectionKind,
    DisconnectionReason,
    EntityStateSnapshot,
    PingEvent,
    StateChangedEvent,
)

__all__ = [
    "ClientEvent",
    "ConnectionConfiguration",
    "ConnectionPhase",
    "ConnectionState",
    "ConnectionStateEvent",
    "DisconnectionKind",
    "DisconnectionReason",
    "EntityStateSnapshot",
    "PingEvent",
    "StateChangedEvent",
]
