"""Constants for the Home Assistant toolbar client."""

from __future__ import annotations

from typing import Final

# Connection defaults
DEFAULT_PORT: Final = 443
DEFAULT_USE_TLS: Final = True
WEBSOCKET_PATH: Final = "/api/websocket"
STATES_PATH: Final = "/api/states"

# Timing (seconds)
PING_INTERVAL: Final = 10.0
WS_CONNECT_TIMEOUT: Final = 15.0
HANDSHAKE_TIMEOUT: Final = 30.0
WS_CLOSE_TIMEOUT: Final = 10.0
REST_TIMEOUT: Final = 15.0
RECONNECT_DELAY: Final = 5.0
NETWORK_RESTORED_GRACE: Final = 2.0
WAKE_GRACE: Final = 2.0
FOREGROUND_GRACE: Final = 1.0
REFRESH_INTERVAL: Final = 900.0

# Events buffered per unread subscription before the oldest are dropped
EVENT_QUEUE_SIZE: Final = 1000

# Websocket message types
MSG_AUTH: Final = "auth"
MSG_AUTH_REQUIRED: Final = "auth_required"
MSG_AUTH_OK: Final = "auth_ok"
MSG_AUTH_INVALID: Final = "auth_invalid"
MSG_SUBSCRIBE_EVENTS: Final = "subscribe_events"
MSG_RESULT: Final = "result"
MSG_EVENT: Final = "event"
MSG_PING: Final = "ping"
MSG_PONG: Final = "pong"

EVENT_STATE_CHANGED: Final = "state_changed"

# Settings keys
CONF_HOST: Final = "host"
CONF_PORT: Final = "port"
CONF_USE_TLS: Final = "use_tls"
CONF_TOKEN: Final = "token"
CONF_ENTITIES: Final = "entities"
CONF_PING_INTERVAL: Final = "ping_interval"
CONF_RECONNECT_DELAY: Final = "reconnect_delay"
CONF_REFRESH_INTERVAL: Final = "refresh_interval"

ENV_HOST: Final = "HA_TOOLBAR_HOST"
ENV_TOKEN: Final = "HA_TOOLBAR_TOKEN"

# Monitored sensors
SENSOR_OUTSIDE_TEMPERATURE: Final = "outside_temperature"
SENSOR_WIND_SPEED: Final = "wind_speed"
SENSOR_RAIN_AMOUNT: Final = "rain_amount"
SENSOR_TEMPERATURE_MAX: Final = "temperature_max"
SENSOR_TEMPERATURE_MIN: Final = "temperature_min"
SENSOR_HUMIDITY: Final = "humidity"
SENSOR_WIND_SPEED_MAX: Final = "wind_speed_max"
SENSOR_PM25: Final = "pm25"
SENSOR_LIGHT_LEVEL: Final = "light_level"
SENSOR_AQI: Final = "aqi"
SENSOR_WIND_DIRECTION: Final = "wind_direction"
SENSOR_PRESSURE: Final = "pressure"

NUMERIC_SENSORS: Final = (
    SENSOR_OUTSIDE_TEMPERATURE,
    SENSOR_WIND_SPEED,
    SENSOR_RAIN_AMOUNT,
    SENSOR_TEMPERATURE_MAX,
    SENSOR_TEMPERATURE_MIN,
    SENSOR_HUMIDITY,
    SENSOR_WIND_SPEED_MAX,
    SENSOR_PM25,
    SENSOR_LIGHT_LEVEL,
    SENSOR_AQI,
    SENSOR_PRESSURE,
)
TEXT_SENSORS: Final = (SENSOR_WIND_DIRECTION,)
SENSOR_KEYS: Final = NUMERIC_SENSORS + TEXT_SENSORS
