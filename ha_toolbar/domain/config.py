"""Connection configuration for a Home Assistant instance."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlunsplit

from ..const import DEFAULT_PORT, DEFAULT_USE_TLS, STATES_PATH, WEBSOCKET_PATH
from ..errors import InvalidConfigurationError


@dataclass(frozen=True, slots=True)
class ConnectionConfiguration:
    """Describe how to reach a Home Assistant server."""

    host: str
    token: str
    port: int = DEFAULT_PORT
    use_tls: bool = DEFAULT_USE_TLS
    websocket_path: str = WEBSOCKET_PATH
    rest_states_path: str = STATES_PATH

    @property
    def is_complete(self) -> bool:
        """Return True when both host and token are present."""

        return bool(self.host.strip()) and bool(self.token.strip())

    def make_websocket_url(self) -> str:
        """Return the ``ws(s)://`` URL of the websocket API."""

        return self._make_url(
            self.websocket_path, scheme="wss" if self.use_tls else "ws"
        )

    def make_rest_states_url(self, entity_id: str | None = None) -> str:
        """Return the states API URL, optionally for a single entity."""

        path = self.rest_states_path.rstrip("/") or "/"
        if entity_id is not None:
            entity = entity_id.strip()
            if not entity:
                msg = "entity_id must not be empty"
                raise InvalidConfigurationError(msg)
            path = f"{path.rstrip('/')}/{quote(entity, safe='')}"
        return self._make_url(path, scheme="https" if self.use_tls else "http")

    def _make_url(self, path: str, *, scheme: str) -> str:
        host = self.host.strip()
        if not host:
            msg = f"Unable to build URL for {path}: host is empty"
            raise InvalidConfigurationError(msg)
        if any(char in host for char in "/?#@ "):
            msg = f"Unable to build URL for {path}: invalid host {host!r}"
            raise InvalidConfigurationError(msg)
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            msg = f"Unable to build URL for {path}: invalid port {self.port!r}"
            raise InvalidConfigurationError(msg)
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        normalized_path = path if path.startswith("/") else f"/{path}"
        return urlunsplit((scheme, f"{host}:{self.port}", normalized_path, "", ""))


__all__ = ["ConnectionConfiguration"]
