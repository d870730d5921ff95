"""Tests for the sensor service façade."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from conftest import (
    FakeResponse,
    FakeSession,
    entity_body,
    handshake,
    state_changed,
    wait_until,
)
from ha_toolbar.backend.ws_client import HomeAssistantWSClient
from ha_toolbar.domain.state import DisconnectionKind
from ha_toolbar.errors import InvalidConfigurationError
from ha_toolbar.service import SensorService, ServiceStatus
from ha_toolbar.settings import ToolbarSettings, settings_from_mapping

BASE = "https://ha.local:443/api/states/"


def _settings(**overrides: Any) -> ToolbarSettings:
    data: dict[str, Any] = {
        "host": "ha.local",
        "token": "secret-token-1234",
        "entities": {
            "outside_temperature": "sensor.outside_temperature",
            "humidity": "sensor.humidity",
            "wind_direction": "sensor.wind_dir",
        },
        "reconnect_delay": 0.01,
        "refresh_interval": 0,
    }
    data.update(overrides)
    return settings_from_mapping(data)


def _session() -> FakeSession:
    session = FakeSession()
    session.responses[BASE + "sensor.outside_temperature"] = FakeResponse(
        200, entity_body("sensor.outside_temperature", "71.4")
    )
    session.responses[BASE + "sensor.humidity"] = FakeResponse(
        200, entity_body("sensor.humidity", "unavailable")
    )
    session.responses[BASE + "sensor.wind_dir"] = FakeResponse(
        200, entity_body("sensor.wind_dir", "NW")
    )
    return session


def _service(session: FakeSession) -> SensorService:
    def factory(settings: ToolbarSettings) -> HomeAssistantWSClient:
        return HomeAssistantWSClient(
            settings.connection_configuration(),
            session=session,
            ping_interval=settings.ping_interval,
        )

    return SensorService(session=session, client_factory=factory)


@pytest.mark.asyncio
async def test_unconfigured_service_refuses_to_connect() -> None:
    """Missing host or token leaves the service unconfigured without I/O."""

    session = _session()
    service = _service(session)
    assert service.status is ServiceStatus.UNCONFIGURED

    assert await service.configure(_settings(token="")) is False
    assert service.status is ServiceStatus.UNCONFIGURED
    assert service.client is None
    with pytest.raises(InvalidConfigurationError):
        service.connect()
    assert session.ws_connect_calls == []


@pytest.mark.asyncio
async def test_connect_backfills_and_maps_updates() -> None:
    """Subscribing loads REST state once, then pushes update the readings."""

    session = _session()
    service = _service(session)
    assert await service.configure(_settings()) is True
    assert service.status is ServiceStatus.DISCONNECTED

    service.connect()
    await wait_until(lambda: service.status is ServiceStatus.CONNECTING)
    ws = await handshake(session)
    await wait_until(lambda: service.status is ServiceStatus.HEALTHY)
    await wait_until(lambda: service.sensors.get("wind_direction") == "NW")

    assert service.is_connected
    assert service.sensors.get("outside_temperature") == 71.4
    assert service.sensors.get("humidity") is None
    assert len(session.get_calls) == 3

    ws.feed(state_changed("sensor.outside_temperature", "72.5"))
    ws.feed(state_changed("sensor.humidity", "48"))
    ws.feed(state_changed("sensor.unmapped", "1"))
    ws.feed({"id": 9, "type": "pong"})
    await wait_until(lambda: service.total_pings == 1)

    assert service.total_events_processed == 3
    assert service.sensors.get("outside_temperature") == 72.5
    assert service.sensors.get("humidity") == 48.0
    assert len(session.get_calls) == 3
    await service.aclose()
    assert service.status is ServiceStatus.UNCONFIGURED


@pytest.mark.asyncio
async def test_reconnect_after_failure_backfills_again() -> None:
    """The supervisor reconnects and the next subscription reloads state."""

    session = _session()
    service = _service(session)
    await service.configure(_settings())
    service.connect()
    ws = await handshake(session)
    await wait_until(lambda: len(session.get_calls) == 3)

    ws.feed_close()
    await wait_until(lambda: len(session.sockets) == 2)
    await handshake(session)
    await wait_until(lambda: service.status is ServiceStatus.HEALTHY)
    await wait_until(lambda: len(session.get_calls) == 6)
    await service.aclose()


@pytest.mark.asyncio
async def test_user_disconnect_does_not_reconnect() -> None:
    session = _session()
    service = _service(session)
    await service.configure(_settings())
    service.connect()
    await handshake(session)
    await wait_until(lambda: service.status is ServiceStatus.HEALTHY)

    service.disconnect()
    await wait_until(lambda: service.status is ServiceStatus.DISCONNECTED)
    reason = service.connection_state.reason
    assert reason is not None and reason.kind is DisconnectionKind.USER_INITIATED
    assert not service.is_connected
    await asyncio.sleep(0.05)
    assert len(session.sockets) == 1
    await service.aclose()


@pytest.mark.asyncio
async def test_entity_listeners_receive_push_and_rest_values() -> None:
    session = _session()
    service = _service(session)
    await service.configure(_settings())
    seen: list[tuple[str, str]] = []
    remove = service.add_entity_listener("sensor.wind_dir", lambda e, s: seen.append((e, s)))

    service.connect()
    ws = await handshake(session)
    await wait_until(lambda: seen == [("sensor.wind_dir", "NW")])
    ws.feed(state_changed("sensor.wind_dir", "SE"))
    await wait_until(lambda: len(seen) == 2)
    assert seen[-1] == ("sensor.wind_dir", "SE")
    assert service.sensors.get("wind_direction") == "SE"

    remove()
    ws.feed(state_changed("sensor.wind_dir", "S"))
    await wait_until(lambda: service.sensors.get("wind_direction") == "S")
    assert len(seen) == 2
    await service.aclose()


@pytest.mark.asyncio
async def test_periodic_refresh_fetches_mapped_entities() -> None:
    """The refresh loop polls REST on its own schedule."""

    session = _session()
    service = _service(session)
    await service.configure(_settings(refresh_interval=0.01))
    service.connect()

    await wait_until(lambda: len(session.get_calls) >= 6)
    assert service.sensors.get("outside_temperature") == 71.4
    await service.aclose()


@pytest.mark.asyncio
async def test_reconfigure_replaces_client() -> None:
    session = _session()
    service = _service(session)
    await service.configure(_settings())
    first = service.client
    service.connect()
    await handshake(session)
    await wait_until(lambda: service.status is ServiceStatus.HEALTHY)

    assert await service.configure(_settings(host="other.local")) is True
    assert service.client is not first
    assert first is not None and first.state.is_disconnected
    assert service.status is ServiceStatus.DISCONNECTED

    assert await service.configure(_settings(host="")) is False
    assert service.status is ServiceStatus.UNCONFIGURED


@pytest.mark.asyncio
async def test_lifecycle_signals_are_forwarded() -> None:
    session = _session()
    service = _service(session)
    await service.configure(_settings())
    service.connect()
    await handshake(session)
    await wait_until(lambda: service.status is ServiceStatus.HEALTHY)

    service.network_changed(False)
    await wait_until(lambda: service.status is ServiceStatus.DISCONNECTED)
    assert service.supervisor is not None
    assert not service.supervisor.network_available

    service.network_changed(True)
    await wait_until(lambda: len(session.sockets) == 2, timeout=3.0)

    service.app_did_enter_background()
    assert service.supervisor.suspended
    service.app_will_enter_foreground()
    assert not service.supervisor.suspended
    await service.aclose()
