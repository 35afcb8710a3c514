"""Bridge configuration for xbot_monitor."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from xbot_monitor._constants import (
    ACTION_TOPIC,
    CMD_VEL_TOPIC,
    DISCOVERY_INTERVAL_S,
    MAP_OVERLAY_TOPIC,
    MAP_TOPIC,
    REGISTER_ACTIONS_SERVICE,
    ROBOT_STATE_TOPIC,
    SENSOR_DATA_TOPIC,
    SENSOR_INFO_PATTERN,
)
from xbot_monitor.exceptions import MonitorConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise MonitorConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Bridge configuration.

    Parameters
    ----------
    mqtt_enabled : bool
        Connect to the MQTT broker. When disabled, pushes are dropped and
        only the pull interface is served.
    mqtt_host : str
        Broker host name.
    mqtt_port : int
        Broker TCP port.
    mqtt_client_id : str
        Client id presented to the broker.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    topic_prefix : str
        Prefix prepended to every outgoing push topic (e.g. ``"robot1/"``).
    http_enabled : bool
        Serve the pull interface.
    http_host : str
        Bind address of the pull interface.
    http_port : int
        Port of the pull interface.
    discovery_interval : float
        Seconds between two sensor discovery polls.
    sensor_info_pattern : str
        Regular expression (full match) selecting sensor metadata topics.
    sensor_data_topic : str
        Template of the per-sensor data topic, formatted with ``sensor_id``.
    robot_state_topic, map_topic, map_overlay_topic : str
        Bus topics carrying robot status, map and map overlay.
    cmd_vel_topic : str
        Bus topic receiving velocity commands decoded from teleop.
    action_topic : str
        Bus topic receiving action ids to execute.
    register_actions_service : str
        Bus service name accepting action registrations.
    """

    mqtt_enabled: bool = True
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = 1883
    mqtt_client_id: str = "xbot_monitoring"
    mqtt_keepalive: int = 60
    topic_prefix: str = ""
    http_enabled: bool = True
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    discovery_interval: float = DISCOVERY_INTERVAL_S
    sensor_info_pattern: str = SENSOR_INFO_PATTERN
    sensor_data_topic: str = SENSOR_DATA_TOPIC
    robot_state_topic: str = ROBOT_STATE_TOPIC
    map_topic: str = MAP_TOPIC
    map_overlay_topic: str = MAP_OVERLAY_TOPIC
    cmd_vel_topic: str = CMD_VEL_TOPIC
    action_topic: str = ACTION_TOPIC
    register_actions_service: str = REGISTER_ACTIONS_SERVICE

    def __post_init__(self) -> None:
        if self.discovery_interval <= 0:
            raise MonitorConfigError("discovery_interval must be positive")
        if "{sensor_id}" not in self.sensor_data_topic:
            raise MonitorConfigError("sensor_data_topic must contain a {sensor_id} placeholder")

    @classmethod
    def from_env(cls, **overrides: Any) -> MonitorConfig:
        """Create configuration from ``XBOT_MONITOR_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "XBOT_MONITOR_MQTT_HOST": "mqtt_host",
            "XBOT_MONITOR_MQTT_CLIENT_ID": "mqtt_client_id",
            "XBOT_MONITOR_TOPIC_PREFIX": "topic_prefix",
            "XBOT_MONITOR_HTTP_HOST": "http_host",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "XBOT_MONITOR_MQTT_PORT": ("mqtt_port", int),
            "XBOT_MONITOR_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "XBOT_MONITOR_HTTP_PORT": ("http_port", int),
            "XBOT_MONITOR_DISCOVERY_INTERVAL": ("discovery_interval", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("XBOT_MONITOR_MQTT_ENABLED"), True)
        if "http_enabled" not in overrides:
            config_kwargs["http_enabled"] = _env_bool(env.get("XBOT_MONITOR_HTTP_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
