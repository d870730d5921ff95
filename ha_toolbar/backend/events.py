"""Broadcast stream for realtime client events."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Any

from ..const import EVENT_QUEUE_SIZE
from ..domain.state import ClientEvent

_LOGGER = logging.getLogger(__name__)

EventListener = Callable[[ClientEvent], Any]

_CLOSED = object()


class EventSubscription:
    """Async iterator over events published after it was attached.

    At most ``maxsize`` events are buffered; when a reader falls behind the
    oldest events are dropped. Call ``close`` when done reading.
    """

    def __init__(self, stream: EventStream, maxsize: int = EVENT_QUEUE_SIZE) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._detached = False
        self.dropped = 0

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> ClientEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item

    def pending(self) -> list[ClientEvent]:
        """Return and remove every event queued so far without waiting."""

        items: list[ClientEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._closed = True
                break
            items.append(item)
        return items

    def close(self) -> None:
        """Detach from the stream and end iteration."""

        if self._detached:
            return
        self._detached = True
        self._stream._detach(self)
        self._put(_CLOSED)

    def _deliver(self, event: ClientEvent) -> None:
        self._put(event)

    def _finish(self) -> None:
        self._detached = True
        self._put(_CLOSED)

    def _put(self, item: Any) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            if self.dropped == 1 or self.dropped % self._queue.maxsize == 0:
                _LOGGER.warning(
                    "Event subscription is not being read; dropped %d event(s)",
                    self.dropped,
                )
        self._queue.put_nowait(item)


class EventStream:
    """Fan out client events to subscriptions and synchronous listeners.

    There is no replay buffer: a subscription only sees events published
    after it was created.
    """

    def __init__(self) -> None:
        self._subscriptions: list[EventSubscription] = []
        self._listeners: list[EventListener] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, maxsize: int = EVENT_QUEUE_SIZE) -> EventSubscription:
        """Attach a new subscription buffering up to ``maxsize`` events."""

        subscription = EventSubscription(self, maxsize)
        if self._closed:
            subscription._finish()
        else:
            self._subscriptions.append(subscription)
        return subscription

    def add_listener(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def publish(self, event: ClientEvent) -> None:
        """Deliver ``event`` to every listener and subscription in order."""

        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("Event listener %r failed", listener)
        for subscription in list(self._subscriptions):
            subscription._deliver(event)

    def close(self) -> None:
        """End every subscription and drop all listeners."""

        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._finish()
        self._subscriptions.clear()
        self._listeners.clear()

    def _detach(self, subscription: EventSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


__all__ = ["EventListener", "EventStream", "EventSubscription"]
