"""Reconnection and liveness supervision for the realtime client."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any, Protocol

from .const import (
    FOREGROUND_GRACE,
    NETWORK_RESTORED_GRACE,
    RECONNECT_DELAY,
    WAKE_GRACE,
)
from .domain.state import (
    ClientEvent,
    ConnectionPhase,
    ConnectionState,
    ConnectionStateEvent,
    DisconnectionKind,
    DisconnectionReason,
)
from .errors import HomeAssistantClientError

_LOGGER = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[Any]]


class SupervisedClient(Protocol):
    """Surface of the realtime client the supervisor drives."""

    @property
    def state(self) -> ConnectionState: ...

    def connect(self) -> ConnectionState: ...

    def disconnect(
        self, reason: DisconnectionReason | None = None
    ) -> ConnectionState: ...

    def add_listener(self, listener: Callable[[ClientEvent], Any]) -> Any: ...


class ReconnectSupervisor:
    """Reconnect after retryable failures and follow host lifecycle signals.

    At most one reconnect attempt is pending at any time; every connection
    state change cancels it, so bursts of failures schedule a single attempt.
    """

    def __init__(
        self,
        client: SupervisedClient,
        *,
        reconnect_delay: float = RECONNECT_DELAY,
        network_grace: float = NETWORK_RESTORED_GRACE,
        wake_grace: float = WAKE_GRACE,
        foreground_grace: float = FOREGROUND_GRACE,
        sleep: SleepCallable | None = None,
    ) -> None:
        self._client = client
        self._reconnect_delay = reconnect_delay
        self._network_grace = network_grace
        self._wake_grace = wake_grace
        self._foreground_grace = foreground_grace
        self._sleep = sleep or asyncio.sleep

        self._network_available = True
        self._suspended = False
        self._wants_connection = False
        self._pending: asyncio.Task | None = None
        self._remove_listener: Callable[[], None] | None = None

    @property
    def reconnect_pending(self) -> bool:
        """Return True while a reconnect attempt is scheduled."""

        return self._pending is not None and not self._pending.done()

    @property
    def network_available(self) -> bool:
        return self._network_available

    @property
    def suspended(self) -> bool:
        return self._suspended

    def start(self) -> None:
        """Begin observing the client's connection state."""

        if self._remove_listener is None:
            self._remove_listener = self._client.add_listener(self._on_event)

    async def stop(self) -> None:
        """Stop observing and drop any pending reconnect."""

        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        task = self._cancel_pending()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Host lifecycle signals
    # ------------------------------------------------------------------
    def network_changed(self, available: bool) -> None:
        """React to the host network going up or down."""

        was_available = self._network_available
        self._network_available = available
        if not available:
            self._cancel_pending()
            if not self._client.state.is_disconnected:
                _LOGGER.info("Network unavailable; dropping connection")
                self._client.disconnect(
                    DisconnectionReason.network_failure("network unavailable")
                )
            return
        if not was_available:
            _LOGGER.info("Network restored")
            self._schedule(self._network_grace)

    def system_will_sleep(self) -> None:
        self._suspend("system sleep")

    def system_did_wake(self) -> None:
        self._resume("system wake", self._wake_grace)

    def app_did_enter_background(self) -> None:
        self._suspend("entered background")

    def app_will_enter_foreground(self) -> None:
        self._resume("entering foreground", self._foreground_grace)

    def _suspend(self, detail: str) -> None:
        self._suspended = True
        self._cancel_pending()
        if not self._client.state.is_disconnected:
            _LOGGER.info("Suspending connection (%s)", detail)
            self._client.disconnect(DisconnectionReason.network_failure(detail))

    def _resume(self, detail: str, delay: float) -> None:
        self._suspended = False
        _LOGGER.debug("Resuming after %s", detail)
        self._schedule(delay)

    # ------------------------------------------------------------------
    # State observation
    # ------------------------------------------------------------------
    def _on_event(self, event: ClientEvent) -> None:
        if not isinstance(event, ConnectionStateEvent):
            return
        state = event.state
        self._cancel_pending()
        if state.phase in (ConnectionPhase.CONNECTING, ConnectionPhase.SUBSCRIBED):
            self._wants_connection = True
            return
        if not state.is_disconnected:
            return
        reason = state.reason
        if reason is None or reason.kind in (
            DisconnectionKind.USER_INITIATED,
            DisconnectionKind.AUTHENTICATION_FAILED,
        ):
            self._wants_connection = False
            return
        if reason.is_retryable:
            self._schedule(self._reconnect_delay)

    def _schedule(self, delay: float) -> None:
        if not self._wants_connection:
            return
        if self._suspended or not self._network_available:
            _LOGGER.debug("Reconnect deferred; host not ready")
            return
        self._cancel_pending()
        _LOGGER.info("Scheduling reconnect in %.1fs", delay)
        self._pending = asyncio.get_running_loop().create_task(
            self._fire(delay), name="ha-toolbar-reconnect"
        )

    def _cancel_pending(self) -> asyncio.Task | None:
        task, self._pending = self._pending, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def _fire(self, delay: float) -> None:
        await self._sleep(delay)
        self._pending = None
        if self._suspended or not self._network_available:
            return
        if not self._client.state.is_disconnected:
            return
        _LOGGER.info("Reconnecting to Home Assistant")
        try:
            self._client.connect()
        except HomeAssistantClientError as err:
            _LOGGER.warning("Reconnect failed: %s", err)


__all__ = ["ReconnectSupervisor", "SupervisedClient"]
