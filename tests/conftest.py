# ruff: noqa: D100,D101,D102,D103,D104,D105,D106,D107,INP001,E402
from __future__ import annotations

import asyncio
import inspect
import json
from types import SimpleNamespace
from typing import Any, Callable

import aiohttp
import pytest

from ha_toolbar.domain.config import ConnectionConfiguration


def pytest_configure(config: pytest.Config) -> None:
    """Register custom pytest markers used across the suite."""

    if not config.pluginmanager.hasplugin("pytest_asyncio"):
        config.addinivalue_line(
            "markers", "asyncio: mark test as requiring asyncio event loop support."
        )


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async tests when pytest-asyncio is unavailable."""

    if pyfuncitem.config.pluginmanager.hasplugin("pytest_asyncio"):
        return None

    testfunction = pyfuncitem.obj
    if not inspect.iscoroutinefunction(testfunction):
        return None

    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None

    with asyncio.Runner(debug=False) as runner:
        runner.run(testfunction(**pyfuncitem.funcargs))
    return True


def make_config(**overrides: Any) -> ConnectionConfiguration:
    """Return a complete connection configuration for tests."""

    values: dict[str, Any] = {"host": "ha.local", "token": "secret-token-1234"}
    values.update(overrides)
    return ConnectionConfiguration(**values)


def text_frame(payload: Any) -> SimpleNamespace:
    """Return a TEXT websocket message carrying ``payload`` as JSON."""

    data = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)


def binary_frame(data: bytes) -> SimpleNamespace:
    return SimpleNamespace(type=aiohttp.WSMsgType.BINARY, data=data, extra=None)


class FakeWebSocket:
    """In-memory websocket fed from an ``asyncio.Queue``."""

    def __init__(self) -> None:
        self._incoming: asyncio.Queue[SimpleNamespace] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_message: bytes | None = None
        self.close_calls = 0
        self.send_error: BaseException | None = None

    def feed(self, payload: Any) -> None:
        """Queue a JSON text frame for the client to receive."""

        self._incoming.put_nowait(text_frame(payload))

    def feed_message(self, message: SimpleNamespace) -> None:
        self._incoming.put_nowait(message)

    def feed_close(self) -> None:
        self._incoming.put_nowait(
            SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None, extra=None)
        )

    async def receive(self) -> SimpleNamespace:
        return await self._incoming.get()

    async def send_str(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)

    async def close(self, *, code: int = 1000, message: bytes = b"") -> bool:
        self.close_calls += 1
        if self.closed:
            return False
        self.closed = True
        self.close_code = code
        self.close_message = message
        self.feed_close()
        return True

    def exception(self) -> BaseException | None:
        return None

    def sent_messages(self) -> list[dict[str, Any]]:
        """Return every sent frame decoded from JSON."""

        return [json.loads(item) for item in self.sent]

    def sent_types(self) -> list[str]:
        return [item["type"] for item in self.sent_messages()]


class FakeResponse:
    """Async context manager mimicking an aiohttp response."""

    def __init__(
        self,
        status: int = 200,
        body: str = "",
        *,
        text_exc: BaseException | None = None,
    ) -> None:
        self.status = status
        self._body = body
        self._text_exc = text_exc

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def text(self) -> str:
        if self._text_exc is not None:
            raise self._text_exc
        return self._body


class FakeSession:
    """Stand-in for ``aiohttp.ClientSession`` used by the client under test."""

    def __init__(self) -> None:
        self.sockets: list[FakeWebSocket] = []
        self.ws_connect_calls: list[tuple[str, dict[str, Any]]] = []
        self.ws_connect_error: BaseException | None = None
        self.get_calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, FakeResponse | BaseException] = {}
        self.default_response: FakeResponse | BaseException = FakeResponse(404, "")
        self.closed = False

    async def ws_connect(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.ws_connect_calls.append((url, kwargs))
        if self.ws_connect_error is not None:
            raise self.ws_connect_error
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.get_calls.append((url, kwargs))
        response = self.responses.get(url, self.default_response)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True

    @property
    def last_socket(self) -> FakeWebSocket:
        return self.sockets[-1]


def entity_body(entity_id: str, state: str, **extra: Any) -> str:
    """Return a REST states body for ``entity_id``."""

    payload: dict[str, Any] = {
        "entity_id": entity_id,
        "state": state,
        "last_changed": "2024-01-01T00:00:00Z",
        "last_updated": "2024-01-01T00:00:00Z",
        "attributes": {},
    }
    payload.update(extra)
    return json.dumps(payload)


def state_changed(entity_id: str, state: str) -> dict[str, Any]:
    """Return a ``state_changed`` event message."""

    return {
        "type": "event",
        "event": {
            "event_type": "state_changed",
            "data": {
                "entity_id": entity_id,
                "new_state": {"entity_id": entity_id, "state": state},
            },
        },
    }


async def wait_until(
    predicate: Callable[[], bool], *, timeout: float = 1.0, interval: float = 0.001
) -> None:
    """Poll ``predicate`` until it returns True or fail after ``timeout``."""

    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(interval)


async def handshake(session: FakeSession, *, subscription_id: int = 1) -> FakeWebSocket:
    """Drive the latest socket through auth and subscription."""

    await wait_until(lambda: bool(session.sockets))
    ws = session.last_socket
    ws.feed({"type": "auth_required", "ha_version": "2024.1.0"})
    await wait_until(lambda: "auth" in ws.sent_types())
    ws.feed({"type": "auth_ok", "ha_version": "2024.1.0"})
    await wait_until(lambda: "subscribe_events" in ws.sent_types())
    ws.feed({"id": subscription_id, "type": "result", "success": True, "result": None})
    return ws


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


class ManualTicker:
    """Replacement for ``asyncio.sleep`` that waits for explicit ticks."""

    def __init__(self) -> None:
        self._ticks: asyncio.Queue[None] = asyncio.Queue()
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        await self._ticks.get()

    def tick(self) -> None:
        self._ticks.put_nowait(None)

    @property
    def waiting(self) -> int:
        """Return how many sleeps have started."""

        return len(self.delays)
