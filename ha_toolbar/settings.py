"""User settings for the toolbar client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
import json
import logging
import os
from pathlib import Path
from typing import Any

import voluptuous as vol

from .const import (
    CONF_ENTITIES,
    CONF_HOST,
    CONF_PING_INTERVAL,
    CONF_PORT,
    CONF_RECONNECT_DELAY,
    CONF_REFRESH_INTERVAL,
    CONF_TOKEN,
    CONF_USE_TLS,
    DEFAULT_PORT,
    DEFAULT_USE_TLS,
    ENV_HOST,
    ENV_TOKEN,
    PING_INTERVAL,
    RECONNECT_DELAY,
    REFRESH_INTERVAL,
    SENSOR_KEYS,
)
from .domain.config import ConnectionConfiguration
from .errors import InvalidConfigurationError

_LOGGER = logging.getLogger(__name__)

_ENTITY_ID = vol.Any(None, vol.All(str, vol.Strip))

SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_HOST, default=""): vol.All(str, vol.Strip),
        vol.Optional(CONF_TOKEN, default=""): vol.All(str, vol.Strip),
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_USE_TLS, default=DEFAULT_USE_TLS): vol.Boolean(),
        vol.Optional(CONF_ENTITIES, default=dict): {vol.In(SENSOR_KEYS): _ENTITY_ID},
        vol.Optional(CONF_PING_INTERVAL, default=PING_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=0.01)
        ),
        vol.Optional(CONF_RECONNECT_DELAY, default=RECONNECT_DELAY): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_REFRESH_INTERVAL, default=REFRESH_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
    }
)


@dataclass(frozen=True, slots=True)
class ToolbarSettings:
    """Validated connection details, entity mapping and tunables."""

    host: str = ""
    token: str = field(default="", repr=False)
    port: int = DEFAULT_PORT
    use_tls: bool = DEFAULT_USE_TLS
    entities: dict[str, str] = field(default_factory=dict)
    ping_interval: float = PING_INTERVAL
    reconnect_delay: float = RECONNECT_DELAY
    refresh_interval: float = REFRESH_INTERVAL

    @property
    def is_configured(self) -> bool:
        """Return True when a host and token are both present."""

        return bool(self.host) and bool(self.token)

    def connection_configuration(self) -> ConnectionConfiguration:
        return ConnectionConfiguration(
            host=self.host,
            token=self.token,
            port=self.port,
            use_tls=self.use_tls,
        )

    def entity_id(self, sensor: str) -> str | None:
        """Return the entity id mapped to ``sensor``, if any."""

        return self.entities.get(sensor) or None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data[CONF_ENTITIES] = dict(self.entities)
        return data


def settings_from_mapping(data: Mapping[str, Any] | None) -> ToolbarSettings:
    """Validate ``data`` against the settings schema."""

    try:
        validated = SETTINGS_SCHEMA(dict(data or {}))
    except vol.Invalid as err:
        msg = f"Invalid settings: {err}"
        raise InvalidConfigurationError(msg) from err
    entities = {
        name: entity_id
        for name, entity_id in validated[CONF_ENTITIES].items()
        if entity_id
    }
    return ToolbarSettings(
        host=validated[CONF_HOST],
        token=validated[CONF_TOKEN],
        port=validated[CONF_PORT],
        use_tls=validated[CONF_USE_TLS],
        entities=entities,
        ping_interval=validated[CONF_PING_INTERVAL],
        reconnect_delay=validated[CONF_RECONNECT_DELAY],
        refresh_interval=validated[CONF_REFRESH_INTERVAL],
    )


def load_settings(path: str | os.PathLike[str]) -> ToolbarSettings:
    """Read and validate a JSON settings file."""

    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as err:
        msg = f"Unable to read settings file {file_path}: {err}"
        raise InvalidConfigurationError(msg) from err
    except ValueError as err:
        msg = f"Settings file {file_path} is not valid JSON: {err}"
        raise InvalidConfigurationError(msg) from err
    if not isinstance(raw, dict):
        msg = f"Settings file {file_path} must contain a JSON object"
        raise InvalidConfigurationError(msg)
    _LOGGER.debug("Loaded settings from %s", file_path)
    return settings_from_mapping(raw)


def override_settings(settings: ToolbarSettings, **changes: Any) -> ToolbarSettings:
    """Return ``settings`` with non-``None`` ``changes`` applied and revalidated."""

    data = settings.as_dict()
    data.update({key: value for key, value in changes.items() if value is not None})
    return settings_from_mapping(data)


def apply_environment(
    settings: ToolbarSettings, environ: Mapping[str, str] | None = None
) -> ToolbarSettings:
    """Apply ``HA_TOOLBAR_HOST`` / ``HA_TOOLBAR_TOKEN`` overrides."""

    env = os.environ if environ is None else environ
    host = env.get(ENV_HOST) or None
    token = env.get(ENV_TOKEN) or None
    if host is None and token is None:
        return settings
    return override_settings(settings, host=host, token=token)


__all__ = [
    "SETTINGS_SCHEMA",
    "ToolbarSettings",
    "apply_environment",
    "load_settings",
    "override_settings",
    "settings_from_mapping",
]
