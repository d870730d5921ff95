"""Realtime websocket client for the Home Assistant event bus."""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import Awaitable, Callable
from contextlib import suppress
from enum import Enum
import logging
from typing import Any

import aiohttp

from ..api import RESTClient
from ..codecs.ha_codec import (
    FrameDecodeError,
    decode_frame,
    encode_message,
    extract_state_change,
)
from ..codecs.ha_models import (
    AuthMessage,
    InboundEnvelope,
    OutboundMessage,
    PingMessage,
    SubscribeEventsMessage,
)
from ..const import (
    HANDSHAKE_TIMEOUT,
    MSG_AUTH_INVALID,
    MSG_AUTH_OK,
    MSG_AUTH_REQUIRED,
    MSG_EVENT,
    MSG_PONG,
    MSG_RESULT,
    PING_INTERVAL,
    REST_TIMEOUT,
    WS_CLOSE_TIMEOUT,
    WS_CONNECT_TIMEOUT,
)
from ..domain.config import ConnectionConfiguration
from ..domain.state import (
    ConnectionState,
    ConnectionStateEvent,
    DisconnectionReason,
    EntityStateSnapshot,
    PingEvent,
)
from ..errors import HandshakeError, InvalidConfigurationError, NetworkFailureError
from .events import EventListener, EventStream, EventSubscription
from .sanitize import redact_text, token_hint
from .ws_health import WsHealthTracker

_LOGGER = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[Any]]


class HandshakePhase(str, Enum):
    """Strictly linear authentication/subscription progress."""

    AWAITING_AUTH_REQUIRED = "awaiting_auth_required"
    AWAITING_AUTH_OK = "awaiting_auth_ok"
    AWAITING_SUBSCRIPTION_ACK = "awaiting_subscription_ack"
    READY = "ready"


class ConnectionClosedError(RuntimeError):
    """The websocket stopped delivering frames."""


class HomeAssistantWSClient:
    """Own one websocket session against the Home Assistant event bus.

    All mutable state (handshake phase, message counter, socket handle and
    connection state) is only touched from the event loop thread, and every
    check-then-set sequence completes without an intermediate ``await``.
    A session generation counter invalidates work belonging to a previous
    socket, which makes the failure path idempotent.
    """

    def __init__(
        self,
        configuration: ConnectionConfiguration,
        *,
        session: aiohttp.ClientSession | None = None,
        rest_client: RESTClient | None = None,
        ping_interval: float = PING_INTERVAL,
        connect_timeout: float = WS_CONNECT_TIMEOUT,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        rest_timeout: float = REST_TIMEOUT,
        sleep: SleepCallable | None = None,
    ) -> None:
        """Initialise the client for ``configuration``."""
        self._configuration = configuration
        self._session = session
        self._owns_session = session is None
        self._rest = rest_client
        self._rest_timeout = rest_timeout
        self._ping_interval = ping_interval
        self._connect_timeout = connect_timeout
        self._handshake_timeout = handshake_timeout
        self._sleep = sleep or asyncio.sleep

        self._events = EventStream()
        self._health = WsHealthTracker(configuration.host)
        self._state = ConnectionState.disconnected()
        self._phase = HandshakePhase.AWAITING_AUTH_REQUIRED
        self._subscription_id: int | None = None
        self._next_message_id = 1
        self._ping_outstanding: int | None = None
        self._generation = 0

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._receive_task: asyncio.Task | None = None
        self._ping_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._send_lock = asyncio.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def configuration(self) -> ConnectionConfiguration:
        return self._configuration

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""

        return self._state

    @property
    def handshake_phase(self) -> HandshakePhase:
        return self._phase

    @property
    def health(self) -> WsHealthTracker:
        return self._health

    @property
    def pings_observed(self) -> int:
        """Return how many pings were answered by a matching pong."""

        return self._health.pings_observed

    def events(self) -> EventSubscription:
        """Attach to the shared event stream.

        The subscription only receives events emitted after this call and
        buffers a bounded number of them; close it when no longer reading.
        """

        return self._events.subscribe()

    def add_listener(self, listener: EventListener) -> Any:
        """Register a synchronous event callback and return its remover."""

        return self._events.add_listener(listener)

    def connect(self) -> ConnectionState:
        """Start a new session unless one is already in flight.

        Returns immediately after scheduling the transport connect; handshake
        progress is only observable through ``connection_state`` events.
        """

        if self._state.in_flight:
            _LOGGER.debug("WS: connect requested while %s", self._state.phase.value)
            return self._state
        if self._closed:
            msg = "client has been closed"
            raise InvalidConfigurationError(msg)
        if not self._configuration.is_complete:
            msg = "host and token are required before connecting"
            raise InvalidConfigurationError(msg)
        url = self._configuration.make_websocket_url()

        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._phase = HandshakePhase.AWAITING_AUTH_REQUIRED
        self._subscription_id = None
        self._next_message_id = 1
        self._ping_outstanding = None
        self._set_state(ConnectionState.connecting())

        _LOGGER.info("WS: opening Home Assistant websocket at %s", url)
        self._receive_task = loop.create_task(
            self._run_session(generation, url),
            name=f"ha-toolbar-ws-receive-{generation}",
        )
        return self._state

    def disconnect(
        self, reason: DisconnectionReason | None = None
    ) -> ConnectionState:
        """Tear down the session and move to ``disconnected(reason)``.

        Calling this on a disconnected client only re-emits the state.
        """

        reason = reason or DisconnectionReason.user_initiated()
        was_connected = not self._state.is_disconnected
        self._generation += 1
        self._stop_tasks()
        self._close_socket(reason=str(reason))
        self._phase = HandshakePhase.AWAITING_AUTH_REQUIRED
        self._subscription_id = None
        self._ping_outstanding = None
        if was_connected:
            _LOGGER.info("WS: disconnecting (%s)", self._redact(str(reason)))
            self._health.mark_disconnect(str(reason))
        self._set_state(ConnectionState.disconnected(reason))
        return self._state

    async def fetch_entity_state(self, entity_id: str) -> EntityStateSnapshot:
        """Fetch ``entity_id`` over REST, independent of the websocket."""

        return await self._rest_client().fetch_entity_state(entity_id)

    async def fetch_entity_states(
        self, entity_ids: list[str] | tuple[str, ...]
    ) -> dict[str, EntityStateSnapshot]:
        """Fetch several entities concurrently over REST."""

        return await self._rest_client().fetch_entity_states(entity_ids)

    async def aclose(self) -> None:
        """Disconnect, end the event stream and release the HTTP session."""

        if self._closed:
            return
        if not self._state.is_disconnected:
            self.disconnect()
        self._closed = True
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._events.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------
    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _rest_client(self) -> RESTClient:
        if self._rest is None:
            self._rest = RESTClient(
                self._ensure_session(),
                self._configuration,
                timeout=self._rest_timeout,
            )
        return self._rest

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        self._health.update_status(state.phase.value)
        self._events.publish(ConnectionStateEvent(state))

    def _next_identifier(self) -> int:
        identifier = self._next_message_id
        self._next_message_id += 1
        return identifier

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._state.is_disconnected

    def _redact(self, text: str) -> str:
        return redact_text(text, secrets=(self._configuration.token,))

    async def _run_session(self, generation: int, url: str) -> None:
        """Open the socket and consume frames until failure or cancellation."""

        session = self._ensure_session()
        try:
            async with asyncio.timeout(self._connect_timeout):
                ws = await session.ws_connect(
                    url,
                    heartbeat=None,
                    autoclose=False,
                    autoping=True,
                )
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            self._handle_failure(generation, "websocket connect timed out")
            return
        except (aiohttp.ClientError, OSError) as err:
            self._handle_failure(
                generation, f"{type(err).__name__}: {self._redact(str(err))}"
            )
            return

        if not self._is_current(generation):
            self._schedule_close(ws, reason="stale session")
            return
        self._ws = ws
        _LOGGER.debug("WS: transport connected; awaiting auth_required")

        try:
            await self._receive_loop(generation, ws)
        except asyncio.CancelledError:
            _LOGGER.debug("WS: receive loop cancelled")
            raise
        except HandshakeError as err:
            _LOGGER.warning("WS: handshake failed: %s", self._redact(str(err)))
            self._handle_failure(generation, str(err))
        except Exception as err:
            _LOGGER.info(
                "WS: receive loop failed (%s: %s)",
                type(err).__name__,
                self._redact(str(err)),
            )
            _LOGGER.debug("WS: receive loop failure details", exc_info=True)
            self._handle_failure(
                generation, f"{type(err).__name__}: {self._redact(str(err))}"
            )

    async def _receive_loop(
        self, generation: int, ws: aiohttp.ClientWebSocketResponse
    ) -> None:
        """Read frames until the session ends.

        Until the subscription is acknowledged every receive shares one
        deadline; the keepalive takes over liveness checks afterwards.
        """

        deadline = asyncio.get_running_loop().time() + self._handshake_timeout
        while self._is_current(generation):
            if self._phase is HandshakePhase.READY:
                msg = await ws.receive()
            else:
                try:
                    async with asyncio.timeout_at(deadline):
                        msg = await ws.receive()
                except TimeoutError as err:
                    detail = f"handshake timed out in phase {self._phase.value}"
                    raise HandshakeError(detail) from err
            text = self._frame_text(ws, msg)
            if text is None:
                continue
            self._health.mark_frame()
            await self._handle_text(generation, text)

    def _frame_text(self, ws: Any, msg: Any) -> str | None:
        """Return the text of a data frame or raise when the socket ended."""

        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            try:
                return codecs.decode(msg.data, "utf-8")
            except (UnicodeDecodeError, TypeError):
                _LOGGER.debug("WS: dropping undecodable binary frame")
                return None
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise ConnectionClosedError(f"websocket error: {ws.exception()}")
        if msg.type in {
            aiohttp.WSMsgType.CLOSE,
            aiohttp.WSMsgType.CLOSING,
            aiohttp.WSMsgType.CLOSED,
        }:
            raise ConnectionClosedError(
                f"websocket closed (code={getattr(ws, 'close_code', None)})"
            )
        return None

    async def _handle_text(self, generation: int, text: str) -> None:
        try:
            envelopes = decode_frame(text)
        except FrameDecodeError as err:
            _LOGGER.debug("WS: dropping undecodable frame (%s)", err)
            return
        for envelope in envelopes:
            if not self._is_current(generation):
                return
            await self._dispatch(generation, envelope)

    async def _dispatch(self, generation: int, envelope: InboundEnvelope) -> None:
        """Route one server message according to the handshake phase."""

        msg_type = envelope.type
        if msg_type == MSG_AUTH_REQUIRED:
            if self._phase is not HandshakePhase.AWAITING_AUTH_REQUIRED:
                _LOGGER.debug("WS: ignoring auth_required in phase %s", self._phase.value)
                return
            self._phase = HandshakePhase.AWAITING_AUTH_OK
            await self._send(AuthMessage(access_token=self._configuration.token))
            _LOGGER.debug(
                "WS: sent auth (token=%s)",
                token_hint(self._configuration.token),
            )
        elif msg_type == MSG_AUTH_OK:
            if self._phase is not HandshakePhase.AWAITING_AUTH_OK:
                _LOGGER.debug("WS: ignoring auth_ok in phase %s", self._phase.value)
                return
            self._set_state(ConnectionState.authenticated())
            identifier = self._next_identifier()
            self._phase = HandshakePhase.AWAITING_SUBSCRIPTION_ACK
            self._subscription_id = identifier
            await self._send(SubscribeEventsMessage(id=identifier))
            _LOGGER.info("WS: requested state_changed subscription (id=%s)", identifier)
        elif msg_type == MSG_AUTH_INVALID:
            message = envelope.message or "Authentication failed"
            _LOGGER.warning("WS: authentication rejected: %s", self._redact(message))
            self._teardown(generation, DisconnectionReason.authentication_failed(message))
        elif msg_type == MSG_RESULT:
            self._handle_result(generation, envelope)
        elif msg_type == MSG_EVENT:
            if self._phase is not HandshakePhase.READY:
                _LOGGER.debug("WS: ignoring event before subscription is ready")
                return
            change = extract_state_change(envelope)
            if change is None:
                _LOGGER.debug("WS: dropping event without a usable new_state")
                return
            self._health.mark_event()
            self._events.publish(change)
        elif msg_type == MSG_PONG:
            if envelope.id is None:
                _LOGGER.debug("WS: dropping pong without id")
                return
            if envelope.id == self._ping_outstanding:
                self._ping_outstanding = None
                self._health.mark_pong()
            self._events.publish(PingEvent(round_trip_id=envelope.id))
        else:
            _LOGGER.debug("WS: unhandled message type %s", msg_type)

    def _handle_result(self, generation: int, envelope: InboundEnvelope) -> None:
        """Complete the handshake or raise ``HandshakeError`` on rejection."""

        if (
            self._phase is not HandshakePhase.AWAITING_SUBSCRIPTION_ACK
            or envelope.id is None
            or envelope.id != self._subscription_id
        ):
            _LOGGER.debug("WS: ignoring result id=%s", envelope.id)
            return
        if envelope.success is not True:
            detail = envelope.error.message if envelope.error else None
            msg = f"subscription rejected: {detail or 'unknown error'}"
            raise HandshakeError(msg)
        self._phase = HandshakePhase.READY
        self._set_state(ConnectionState.subscribed())
        _LOGGER.info("WS: subscribed to state_changed events")
        self._start_keepalive(generation)

    async def _send(self, message: OutboundMessage) -> None:
        """Send a websocket text frame."""

        ws = self._ws
        if ws is None:
            raise NetworkFailureError("websocket not connected")
        payload = encode_message(message)
        async with self._send_lock:
            await ws.send_str(payload)

    # ------------------------------------------------------------------
    # Keepalive
    # ------------------------------------------------------------------
    def _start_keepalive(self, generation: int) -> None:
        if self._ping_task and not self._ping_task.done():
            self._ping_task.cancel()
        self._ping_task = asyncio.get_running_loop().create_task(
            self._keepalive_loop(generation),
            name=f"ha-toolbar-ws-ping-{generation}",
        )

    async def _keepalive_loop(self, generation: int) -> None:
        """Send a ping every interval; an unanswered ping is a lost connection."""

        while self._is_current(generation):
            await self._sleep(self._ping_interval)
            if not self._is_current(generation):
                return
            if self._ping_outstanding is not None:
                _LOGGER.warning(
                    "WS: ping %s timed out; treating connection as lost",
                    self._ping_outstanding,
                )
                self._handle_failure(
                    generation, f"ping timeout (id={self._ping_outstanding})"
                )
                return
            identifier = self._next_identifier()
            self._ping_outstanding = identifier
            try:
                await self._send(PingMessage(id=identifier))
            except asyncio.CancelledError:
                raise
            except Exception as err:
                _LOGGER.info("WS: failed to send ping (%s: %s)", type(err).__name__, err)
                self._handle_failure(generation, f"ping send failed: {err}")
                return
            self._health.mark_ping_sent()
            _LOGGER.debug("WS: sent ping id=%s", identifier)

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------
    def _handle_failure(self, generation: int, detail: str) -> None:
        """Route a transport or keepalive failure to ``networkFailure``."""

        self._teardown(generation, DisconnectionReason.network_failure(detail))

    def _teardown(self, generation: int, reason: DisconnectionReason) -> None:
        """Stop loops, close the socket and publish ``disconnected(reason)``.

        Only the first call for a session has an effect.
        """

        if not self._is_current(generation):
            return
        self._generation += 1
        self._stop_tasks()
        self._close_socket(reason=str(reason))
        self._phase = HandshakePhase.AWAITING_AUTH_REQUIRED
        self._subscription_id = None
        self._ping_outstanding = None
        self._health.mark_disconnect(str(reason))
        _LOGGER.info("WS: connection lost (%s)", self._redact(str(reason)))
        self._set_state(ConnectionState.disconnected(reason))

    def _stop_tasks(self) -> None:
        current = asyncio.current_task() if _loop_running() else None
        for task in (self._ping_task, self._receive_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._ping_task = None
        self._receive_task = None

    def _close_socket(self, *, reason: str) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            self._schedule_close(ws, reason=reason)

    def _schedule_close(self, ws: Any, *, reason: str) -> None:
        task = asyncio.get_running_loop().create_task(self._close_ws(ws, reason))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _close_ws(self, ws: Any, reason: str) -> None:
        with suppress(aiohttp.ClientError, RuntimeError, TimeoutError):
            async with asyncio.timeout(WS_CLOSE_TIMEOUT):
                await ws.close(
                    code=aiohttp.WSCloseCode.GOING_AWAY,
                    message=reason.encode()[:120],
                )


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


__all__ = ["ConnectionClosedError", "HandshakePhase", "HomeAssistantWSClient"]
