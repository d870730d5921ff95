"""Connection state and event value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ConnectionPhase(str, Enum):
    """Coarse connection lifecycle of the realtime client."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    SUBSCRIBED = "subscribed"


class DisconnectionKind(str, Enum):
    """Why a session ended."""

    USER_INITIATED = "user_initiated"
    NETWORK_FAILURE = "network_failure"
    AUTHENTICATION_FAILED = "authentication_failed"


@dataclass(frozen=True, slots=True)
class DisconnectionReason:
    """Reason attached to a ``disconnected`` state."""

    kind: DisconnectionKind
    detail: str | None = None

    @classmethod
    def user_initiated(cls) -> DisconnectionReason:
        """Return the reason used for explicit disconnects."""

        return cls(DisconnectionKind.USER_INITIATED)

    @classmethod
    def network_failure(cls, detail: str) -> DisconnectionReason:
        """Return a transport failure reason."""

        return cls(DisconnectionKind.NETWORK_FAILURE, detail)

    @classmethod
    def authentication_failed(cls, detail: str) -> DisconnectionReason:
        """Return an authentication failure reason."""

        return cls(DisconnectionKind.AUTHENTICATION_FAILED, detail)

    @property
    def is_retryable(self) -> bool:
        """Return True when automatic reconnection is allowed."""

        return self.kind is DisconnectionKind.NETWORK_FAILURE

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind.value}: {self.detail}"
        return self.kind.value


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """Single source of truth for client usability."""

    phase: ConnectionPhase
    reason: DisconnectionReason | None = None

    @classmethod
    def disconnected(
        cls, reason: DisconnectionReason | None = None
    ) -> ConnectionState:
        return cls(ConnectionPhase.DISCONNECTED, reason)

    @classmethod
    def connecting(cls) -> ConnectionState:
        return cls(ConnectionPhase.CONNECTING)

    @classmethod
    def authenticated(cls) -> ConnectionState:
        return cls(ConnectionPhase.AUTHENTICATED)

    @classmethod
    def subscribed(cls) -> ConnectionState:
        return cls(ConnectionPhase.SUBSCRIBED)

    @property
    def is_disconnected(self) -> bool:
        return self.phase is ConnectionPhase.DISCONNECTED

    @property
    def is_subscribed(self) -> bool:
        return self.phase is ConnectionPhase.SUBSCRIBED

    @property
    def in_flight(self) -> bool:
        """Return True while a connect attempt is running or complete."""

        return self.phase in (
            ConnectionPhase.CONNECTING,
            ConnectionPhase.AUTHENTICATED,
            ConnectionPhase.SUBSCRIBED,
        )

    def __str__(self) -> str:
        if self.reason is not None:
            return f"{self.phase.value} ({self.reason})"
        return self.phase.value


@dataclass(frozen=True, slots=True)
class EntityStateSnapshot:
    """Entity state returned by the REST states API."""

    entity_id: str
    state: str
    last_changed: datetime | None = None
    last_updated: datetime | None = None
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class ConnectionStateEvent:
    """The client moved to a new connection state."""

    state: ConnectionState


@dataclass(frozen=True, slots=True)
class StateChangedEvent:
    """An entity reported a new state on the event bus."""

    entity_id: str
    state: str


@dataclass(frozen=True, slots=True)
class PingEvent:
    """A pong was received for ``round_trip_id``."""

    round_trip_id: int


ClientEvent = ConnectionStateEvent | StateChangedEvent | PingEvent


__all__ = [
    "ClientEvent",
    "ConnectionPhase",
    "ConnectionState",
    "ConnectionStateEvent",
    "DisconnectionKind",
    "DisconnectionReason",
    "EntityStateSnapshot",
    "PingEvent",
    "StateChangedEvent",
]
