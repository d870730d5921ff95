"""Event consumer façade that turns client events into sensor readings."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
import logging
from typing import Any

import aiohttp

from .backend.events import EventSubscription
from .backend.ws_client import HomeAssistantWSClient
from .domain.state import (
    ClientEvent,
    ConnectionPhase,
    ConnectionState,
    ConnectionStateEvent,
    PingEvent,
    StateChangedEvent,
)
from .errors import HomeAssistantClientError, InvalidConfigurationError
from .sensors import MonitoredSensors, build_entity_index, parse_sensor_state
from .settings import ToolbarSettings
from .supervisor import ReconnectSupervisor

_LOGGER = logging.getLogger(__name__)

EntityCallback = Callable[[str, str], Any]
ClientFactory = Callable[[ToolbarSettings], HomeAssistantWSClient]


class ServiceStatus(str, Enum):
    """Coarse health shown to the user."""

    UNCONFIGURED = "unconfigured"
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HEALTHY = "healthy"


class SensorService:
    """Own one client and supervisor per configuration.

    ``configure`` replaces both whenever the settings change; nothing is
    shared between configurations except the HTTP session passed in.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        client_factory: ClientFactory | None = None,
        sensors: MonitoredSensors | None = None,
    ) -> None:
        self._session = session
        self._client_factory = client_factory or self._default_client
        self._sensors = sensors or MonitoredSensors()

        self._settings = ToolbarSettings()
        self._entity_index: dict[str, tuple[str, ...]] = {}
        self._client: HomeAssistantWSClient | None = None
        self._supervisor: ReconnectSupervisor | None = None
        self._connection_state = ConnectionState.disconnected()
        self._has_loaded_initial_state = False
        self._entity_listeners: dict[str, list[EntityCallback]] = {}

        self._consumer_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

        self.total_events_processed = 0
        self.total_pings = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def settings(self) -> ToolbarSettings:
        return self._settings

    @property
    def client(self) -> HomeAssistantWSClient | None:
        return self._client

    @property
    def supervisor(self) -> ReconnectSupervisor | None:
        return self._supervisor

    @property
    def sensors(self) -> MonitoredSensors:
        return self._sensors

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        """Return True once authenticated, before or after subscribing."""

        return self._connection_state.phase in (
            ConnectionPhase.AUTHENTICATED,
            ConnectionPhase.SUBSCRIBED,
        )

    @property
    def status(self) -> ServiceStatus:
        """Distinguish never configured, configured but down, and healthy."""

        if self._client is None:
            return ServiceStatus.UNCONFIGURED
        phase = self._connection_state.phase
        if phase is ConnectionPhase.SUBSCRIBED:
            return ServiceStatus.HEALTHY
        if phase in (ConnectionPhase.CONNECTING, ConnectionPhase.AUTHENTICATED):
            return ServiceStatus.CONNECTING
        return ServiceStatus.DISCONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def configure(self, settings: ToolbarSettings) -> bool:
        """Apply ``settings``, replacing any existing client.

        Returns False and stays unconfigured when host or token is missing.
        """

        await self._dispose()
        self._settings = settings
        self._entity_index = build_entity_index(settings.entities)
        if not settings.is_configured:
            _LOGGER.info("Settings incomplete; service left unconfigured")
            return False
        self._client = self._client_factory(settings)
        self._supervisor = ReconnectSupervisor(
            self._client, reconnect_delay=settings.reconnect_delay
        )
        _LOGGER.info(
            "Configured for %s (%d mapped entities)",
            settings.host,
            len(self._entity_index),
        )
        return True

    def connect(self) -> ConnectionState:
        """Start consuming events and ask the client to connect."""

        client = self._client
        if client is None:
            msg = "service is not configured"
            raise InvalidConfigurationError(msg)
        loop = asyncio.get_running_loop()
        if self._consumer_task is None or self._consumer_task.done():
            subscription = client.events()
            self._consumer_task = loop.create_task(
                self._consume(subscription), name="ha-toolbar-consumer"
            )
        if self._supervisor is not None:
            self._supervisor.start()
        if self._settings.refresh_interval > 0 and (
            self._refresh_task is None or self._refresh_task.done()
        ):
            self._refresh_task = loop.create_task(
                self._refresh_loop(self._settings.refresh_interval),
                name="ha-toolbar-refresh",
            )
        return client.connect()

    def disconnect(self) -> ConnectionState:
        """Disconnect on behalf of the user; no automatic reconnect follows."""

        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        if self._client is None:
            return self._connection_state
        return self._client.disconnect()

    async def aclose(self) -> None:
        """Release the client, supervisor and background tasks."""

        await self._dispose()

    async def _dispose(self) -> None:
        tasks = [task for task in (self._refresh_task, *self._tasks) if task]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._tasks.clear()

        if self._supervisor is not None:
            await self._supervisor.stop()
            self._supervisor = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._consumer_task is not None:
            # The closed stream ends the consumer on its own.
            await asyncio.gather(self._consumer_task, return_exceptions=True)
            self._consumer_task = None
        self._connection_state = ConnectionState.disconnected()
        self._has_loaded_initial_state = False

    # ------------------------------------------------------------------
    # Host lifecycle forwarding
    # ------------------------------------------------------------------
    def network_changed(self, available: bool) -> None:
        if self._supervisor is not None:
            self._supervisor.network_changed(available)

    def system_will_sleep(self) -> None:
        if self._supervisor is not None:
            self._supervisor.system_will_sleep()

    def system_did_wake(self) -> None:
        if self._supervisor is not None:
            self._supervisor.system_did_wake()

    def app_did_enter_background(self) -> None:
        if self._supervisor is not None:
            self._supervisor.app_did_enter_background()

    def app_will_enter_foreground(self) -> None:
        if self._supervisor is not None:
            self._supervisor.app_will_enter_foreground()

    # ------------------------------------------------------------------
    # Entity dispatch
    # ------------------------------------------------------------------
    def add_entity_listener(
        self, entity_id: str, callback: EntityCallback
    ) -> Callable[[], None]:
        """Call ``callback(entity_id, state)`` for every update of ``entity_id``."""

        listeners = self._entity_listeners.setdefault(entity_id, [])
        listeners.append(callback)

        def _remove() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return _remove

    async def load_sensor_data(self) -> int:
        """Fetch every mapped entity over REST and apply the results.

        Returns the number of entities that were fetched successfully.
        """

        client = self._client
        if client is None or not self._entity_index:
            return 0
        snapshots = await client.fetch_entity_states(list(self._entity_index))
        for entity_id, snapshot in snapshots.items():
            _LOGGER.debug("Initial state for %s: %s", entity_id, snapshot.state)
            self._apply(entity_id, snapshot.state)
        return len(snapshots)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _default_client(self, settings: ToolbarSettings) -> HomeAssistantWSClient:
        return HomeAssistantWSClient(
            settings.connection_configuration(),
            session=self._session,
            ping_interval=settings.ping_interval,
        )

    async def _consume(self, subscription: EventSubscription) -> None:
        async for event in subscription:
            self._handle(event)

    def _handle(self, event: ClientEvent) -> None:
        if isinstance(event, ConnectionStateEvent):
            self._handle_connection_state(event.state)
        elif isinstance(event, StateChangedEvent):
            self.total_events_processed += 1
            _LOGGER.debug("Streaming update %s -> %s", event.entity_id, event.state)
            self._apply(event.entity_id, event.state)
        elif isinstance(event, PingEvent):
            self.total_pings += 1

    def _handle_connection_state(self, state: ConnectionState) -> None:
        self._connection_state = state
        if state.phase is ConnectionPhase.SUBSCRIBED:
            if not self._has_loaded_initial_state:
                self._has_loaded_initial_state = True
                self._spawn(self._backfill())
        elif state.phase is not ConnectionPhase.AUTHENTICATED:
            self._has_loaded_initial_state = False

    def _apply(self, entity_id: str, state: str) -> None:
        for name in self._entity_index.get(entity_id, ()):
            value = parse_sensor_state(name, state)
            if value is None:
                _LOGGER.debug("Ignoring %s state %r for %s", entity_id, state, name)
                continue
            if self._sensors.update(name, value):
                _LOGGER.debug("Sensor %s -> %s", name, value)
        for callback in list(self._entity_listeners.get(entity_id, ())):
            try:
                callback(entity_id, state)
            except Exception:
                _LOGGER.exception("Entity listener for %s failed", entity_id)

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _backfill(self) -> None:
        try:
            count = await self.load_sensor_data()
        except HomeAssistantClientError as err:
            _LOGGER.warning("Initial state load failed: %s", err)
            return
        _LOGGER.info("Loaded initial state for %d entities", count)

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                count = await self.load_sensor_data()
            except HomeAssistantClientError as err:
                _LOGGER.warning("Periodic refresh failed: %s", err)
                continue
            _LOGGER.debug("Periodic refresh updated %d entities", count)


__all__ = ["SensorService", "ServiceStatus"]
