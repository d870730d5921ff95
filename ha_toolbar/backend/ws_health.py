"""Websocket health tracking primitives."""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Any

_HEALTHY_STATUS = "subscribed"


@dataclass
class WsHealthTracker:
    """Track connection status, keepalive round trips and event counters."""

    host: str
    status: str = "disconnected"
    healthy_since: float | None = None
    last_status_at: float | None = None
    last_frame_at: float | None = None
    last_event_at: float | None = None
    last_ping_at: float | None = None
    last_pong_at: float | None = None
    frames_total: int = 0
    events_total: int = 0
    pings_sent: int = 0
    pings_observed: int = 0
    disconnects_total: int = 0
    last_disconnect_reason: str | None = None

    def update_status(self, status: str, *, timestamp: float | None = None) -> bool:
        """Update the tracked status and return True if it changed."""

        now = timestamp or time.time()
        if status == self.status:
            return False
        self.status = status
        self.last_status_at = now
        if status == _HEALTHY_STATUS:
            self.healthy_since = now
        else:
            self.healthy_since = None
        return True

    def mark_frame(self, *, timestamp: float | None = None) -> None:
        """Record receipt of any websocket frame."""

        self.frames_total += 1
        self.last_frame_at = timestamp or time.time()

    def mark_event(self, *, timestamp: float | None = None) -> None:
        """Record a delivered ``state_changed`` event."""

        self.events_total += 1
        self.last_event_at = timestamp or time.time()

    def mark_ping_sent(self, *, timestamp: float | None = None) -> None:
        """Record an outbound keepalive ping."""

        self.pings_sent += 1
        self.last_ping_at = timestamp or time.time()

    def mark_pong(self, *, timestamp: float | None = None) -> None:
        """Record a pong answering the outstanding ping."""

        self.pings_observed += 1
        self.last_pong_at = timestamp or time.time()

    def mark_disconnect(self, reason: str, *, timestamp: float | None = None) -> None:
        """Record the end of a session."""

        self.disconnects_total += 1
        self.last_disconnect_reason = reason
        self.update_status("disconnected", timestamp=timestamp)

    @property
    def is_healthy(self) -> bool:
        """Return True while the event stream is live."""

        return self.status == _HEALTHY_STATUS

    def healthy_minutes(self, *, now: float | None = None) -> int:
        """Return the number of minutes spent subscribed."""

        if self.healthy_since is None:
            return 0
        current = now or time.time()
        if current <= self.healthy_since:
            return 0
        return int((current - self.healthy_since) / 60)

    def snapshot(self, *, now: float | None = None) -> dict[str, Any]:
        """Return a serializable snapshot of the tracker state."""

        current = now or time.time()
        return {
            "host": self.host,
            "status": self.status,
            "healthy_since": self.healthy_since,
            "healthy_minutes": self.healthy_minutes(now=current),
            "last_status_at": self.last_status_at,
            "last_event_at": self.last_event_at,
            "last_ping_at": self.last_ping_at,
            "last_pong_at": self.last_pong_at,
            "frames_total": self.frames_total,
            "events_total": self.events_total,
            "pings_sent": self.pings_sent,
            "pings_observed": self.pings_observed,
            "disconnects_total": self.disconnects_total,
            "last_disconnect_reason": self.last_disconnect_reason,
        }


__all__ = ["WsHealthTracker"]
