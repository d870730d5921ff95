"""Codec helpers for the Home Assistant websocket and REST APIs."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from ..domain.state import EntityStateSnapshot, StateChangedEvent
from ..errors import DecodingFailureError
from .ha_models import (
    EntityStateResponse,
    InboundEnvelope,
    OutboundMessage,
    StateChangedPayload,
)

_LOGGER = logging.getLogger(__name__)


class FrameDecodeError(ValueError):
    """A websocket frame is not a JSON message envelope."""


def encode_message(message: OutboundMessage) -> str:
    """Serialise an outbound message to a compact JSON text frame."""

    return message.model_dump_json(exclude_none=True)


def decode_frame(text: str) -> list[InboundEnvelope]:
    """Decode a text frame into one or more message envelopes.

    Home Assistant may coalesce several messages into a JSON array; a single
    object yields a one-element list.
    """

    try:
        raw = json.loads(text)
    except ValueError as err:
        raise FrameDecodeError(f"invalid JSON: {err}") from err

    items: list[Any] = raw if isinstance(raw, list) else [raw]
    envelopes: list[InboundEnvelope] = []
    for item in items:
        if not isinstance(item, dict):
            raise FrameDecodeError(f"unexpected frame item {type(item).__name__}")
        try:
            envelopes.append(InboundEnvelope.model_validate(item))
        except ValidationError as err:
            raise FrameDecodeError(
                f"invalid envelope: {err.error_count()} error(s)"
            ) from err
    return envelopes


def extract_state_change(envelope: InboundEnvelope) -> StateChangedEvent | None:
    """Return the state change carried by an ``event`` envelope, if any."""

    if not isinstance(envelope.event, dict):
        return None
    try:
        payload = StateChangedPayload.model_validate(envelope.event)
    except ValidationError:
        _LOGGER.debug("WS: malformed state_changed payload dropped", exc_info=True)
        return None
    new_state = payload.data.new_state
    if new_state is None:
        # Entity removed; nothing to report.
        return None
    return StateChangedEvent(entity_id=new_state.entity_id, state=new_state.state)


def decode_entity_state(body: str | bytes) -> EntityStateSnapshot:
    """Validate a REST entity-state body into a snapshot."""

    try:
        model = EntityStateResponse.model_validate_json(body)
    except ValidationError as err:
        raise DecodingFailureError(
            f"Failed to decode entity state: {err.error_count()} error(s)"
        ) from err
    return EntityStateSnapshot(
        entity_id=model.entity_id,
        state=model.state,
        last_changed=model.last_changed,
        last_updated=model.last_updated,
        attributes=dict(model.attributes),
    )


__all__ = [
    "FrameDecodeError",
    "decode_entity_state",
    "decode_frame",
    "encode_message",
    "extract_state_change",
]
