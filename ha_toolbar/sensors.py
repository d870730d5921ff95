"""In-memory readings for the monitored weather sensors."""

from __future__ import annotations

from collections.abc import Mapping
import math
import time
from typing import Any

from .const import NUMERIC_SENSORS, SENSOR_KEYS, TEXT_SENSORS

SensorValue = float | str


def parse_sensor_state(name: str, state: str | None) -> SensorValue | None:
    """Return the typed reading for ``state`` or ``None`` when unusable.

    Numeric sensors accept anything ``float`` parses to a finite value, so
    ``unavailable`` and ``unknown`` are dropped. Text sensors keep the raw
    state unless it is empty.
    """

    if state is None:
        return None
    if name in TEXT_SENSORS:
        text = state.strip()
        return text or None
    if name not in NUMERIC_SENSORS:
        return None
    try:
        value = float(state)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def build_entity_index(entities: Mapping[str, str | None]) -> dict[str, tuple[str, ...]]:
    """Map each configured entity id to the sensor names it feeds."""

    index: dict[str, list[str]] = {}
    for name, entity_id in entities.items():
        if name not in SENSOR_KEYS or not entity_id:
            continue
        index.setdefault(entity_id, []).append(name)
    return {entity_id: tuple(names) for entity_id, names in index.items()}


class MonitoredSensors:
    """Hold the latest reading of each named sensor."""

    def __init__(self) -> None:
        self._values: dict[str, SensorValue] = {}
        self._updated_at: dict[str, float] = {}

    def update(
        self, name: str, value: SensorValue, *, timestamp: float | None = None
    ) -> bool:
        """Store ``value`` for ``name`` and return True when it changed."""

        if name not in SENSOR_KEYS:
            msg = f"unknown sensor {name!r}"
            raise KeyError(msg)
        self._updated_at[name] = timestamp or time.time()
        if self._values.get(name) == value and name in self._values:
            return False
        self._values[name] = value
        return True

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def updated_at(self, name: str) -> float | None:
        return self._updated_at.get(name)

    def as_dict(self) -> dict[str, SensorValue]:
        """Return a copy of every known reading."""

        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()
        self._updated_at.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)


__all__ = [
    "MonitoredSensors",
    "SensorValue",
    "build_entity_index",
    "parse_sensor_state",
]
