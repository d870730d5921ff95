"""Pydantic models for Home Assistant websocket and REST payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..const import (
    EVENT_STATE_CHANGED,
    MSG_AUTH,
    MSG_PING,
    MSG_SUBSCRIBE_EVENTS,
)


class AuthMessage(BaseModel):
    """Client reply to ``auth_required``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["auth"] = MSG_AUTH
    access_token: str


class SubscribeEventsMessage(BaseModel):
    """Correlated request subscribing to an event type."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: Literal["subscribe_events"] = MSG_SUBSCRIBE_EVENTS
    event_type: str = EVENT_STATE_CHANGED


class PingMessage(BaseModel):
    """Application-level keepalive request."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ping"] = MSG_PING
    id: int


OutboundMessage = AuthMessage | SubscribeEventsMessage | PingMessage


class ErrorDetail(BaseModel):
    """Error object attached to unsuccessful ``result`` messages."""

    model_config = ConfigDict(extra="ignore")

    code: str | int | None = None
    message: str | None = None

    @field_validator("code", "message", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, (str, int)):
            return value
        return str(value)


class InboundEnvelope(BaseModel):
    """Routing envelope shared by every server message.

    Only ``type`` is strict. Side fields of an unexpected shape are coerced
    or cleared so a message is never lost because of its detail fields.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    id: int | None = None
    success: bool | None = None
    message: str | None = None
    ha_version: str | None = None
    error: ErrorDetail | None = None
    event: dict[str, Any] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _lenient_id(cls, value: Any) -> Any:
        """Accept integer ids, including numeric strings."""

        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return None

    @field_validator("success", mode="before")
    @classmethod
    def _strict_success(cls, value: Any) -> Any:
        """Only a literal boolean counts as a success flag."""

        return value if isinstance(value, bool) else None

    @field_validator("message", "ha_version", mode="before")
    @classmethod
    def _stringify_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        """Wrap non-object error values into an ``ErrorDetail``."""

        if value is None or isinstance(value, dict):
            return value
        return {"message": str(value)}

    @field_validator("event", mode="before")
    @classmethod
    def _drop_non_object_event(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


class NewState(BaseModel):
    """The ``new_state`` object of a ``state_changed`` event."""

    model_config = ConfigDict(extra="ignore")

    entity_id: str = Field(min_length=1)
    state: str


class StateChangedData(BaseModel):
    """The ``data`` object of a ``state_changed`` event."""

    model_config = ConfigDict(extra="ignore")

    entity_id: str | None = None
    new_state: NewState | None = None


class StateChangedPayload(BaseModel):
    """The ``event`` object of an ``event`` message."""

    model_config = ConfigDict(extra="ignore")

    event_type: str | None = None
    data: StateChangedData


class EntityStateResponse(BaseModel):
    """Body of ``GET /api/states/<entity_id>``."""

    model_config = ConfigDict(extra="ignore")

    entity_id: str
    state: str
    last_changed: datetime | None = None
    last_updated: datetime | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "AuthMessage",
    "EntityStateResponse",
    "ErrorDetail",
    "InboundEnvelope",
    "NewState",
    "OutboundMessage",
    "PingMessage",
    "StateChangedData",
    "StateChangedPayload",
    "SubscribeEventsMessage",
]
