"""Wire codecs for the Home Assistant APIs."""

from .ha_codec import (
    FrameDecodeError,
    decode_entity_state,
    decode_frame,
    encode_message,
    extract_state_change,
)
from .ha_models import AuthMessage, PingMessage, SubscribeEventsMessage

__all__ = [
    "AuthMessage",
    "FrameDecodeError",
    "PingMessage",
    "SubscribeEventsMessage",
    "decode_entity_state",
    "decode_frame",
    "encode_message",
    "extract_state_change",
]
