"""Tests for settings validation and loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ha_toolbar.domain.config import ConnectionConfiguration
from ha_toolbar.errors import InvalidConfigurationError
from ha_toolbar.settings import (
    ToolbarSettings,
    apply_environment,
    load_settings,
    override_settings,
    settings_from_mapping,
)


def test_defaults_are_unconfigured() -> None:
    settings = settings_from_mapping({})
    assert settings == ToolbarSettings()
    assert not settings.is_configured
    assert settings.port == 443
    assert settings.use_tls is True
    assert settings.refresh_interval == 900.0


def test_mapping_is_validated_and_normalised() -> None:
    """Strings are stripped, numbers coerced and blank entity ids dropped."""

    settings = settings_from_mapping(
        {
            "host": "  ha.local ",
            "token": "abc",
            "port": "8123",
            "use_tls": "false",
            "entities": {
                "outside_temperature": " sensor.outside_temperature ",
                "humidity": "",
                "pm25": None,
            },
            "refresh_interval": 0,
        }
    )
    assert settings.host == "ha.local"
    assert settings.port == 8123
    assert settings.use_tls is False
    assert settings.entities == {"outside_temperature": "sensor.outside_temperature"}
    assert settings.entity_id("outside_temperature") == "sensor.outside_temperature"
    assert settings.entity_id("humidity") is None
    assert settings.refresh_interval == 0.0
    assert settings.is_configured
    assert settings.connection_configuration() == ConnectionConfiguration(
        host="ha.local", token="abc", port=8123, use_tls=False
    )


@pytest.mark.parametrize(
    "data",
    [
        {"port": 0},
        {"port": "abc"},
        {"entities": {"unknown_sensor": "sensor.x"}},
        {"ping_interval": 0},
        {"reconnect_delay": -1},
        {"extra": True},
    ],
)
def test_invalid_settings_raise(data: dict) -> None:
    with pytest.raises(InvalidConfigurationError):
        settings_from_mapping(data)


def test_token_hidden_from_repr() -> None:
    settings = settings_from_mapping({"host": "ha", "token": "super-secret"})
    assert "super-secret" not in repr(settings)


def test_load_settings(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"host": "ha.local", "token": "abc"}), encoding="utf-8")
    assert load_settings(path).host == "ha.local"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_load_settings_rejects_bad_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(InvalidConfigurationError):
        load_settings(path)


def test_load_settings_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        load_settings(tmp_path / "missing.json")


def test_apply_environment_overrides_host_and_token() -> None:
    base = settings_from_mapping({"host": "file-host", "token": "file-token", "port": 8123})
    updated = apply_environment(
        base, {"HA_TOOLBAR_HOST": "env-host", "HA_TOOLBAR_TOKEN": "env-token"}
    )
    assert updated.host == "env-host"
    assert updated.token == "env-token"
    assert updated.port == 8123
    assert apply_environment(base, {}) is base
    assert apply_environment(base, {"HA_TOOLBAR_HOST": ""}) is base


def test_override_settings_ignores_none() -> None:
    base = settings_from_mapping({"host": "ha", "token": "t"})
    updated = override_settings(base, host=None, port=8443, use_tls=False)
    assert updated.host == "ha"
    assert updated.port == 8443
    assert updated.use_tls is False
