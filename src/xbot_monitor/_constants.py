"""Internal constants shared across the package."""

from __future__ import annotations

from enum import StrEnum

# ------------------------------------------------------------------
# Message bus naming
# ------------------------------------------------------------------

SENSOR_INFO_PATTERN = r"/xbot_monitoring/sensors/.*/info"
SENSOR_DATA_TOPIC = "xbot_monitoring/sensors/{sensor_id}/data"
ROBOT_STATE_TOPIC = "xbot_monitoring/robot_state"
MAP_TOPIC = "xbot_monitoring/map"
MAP_OVERLAY_TOPIC = "xbot_monitoring/map_overlay"
CMD_VEL_TOPIC = "xbot_monitoring/remote_cmd_vel"
ACTION_TOPIC = "xbot/action"
REGISTER_ACTIONS_SERVICE = "xbot/register_actions"

# Sensor discovery runs at 10 Hz.
DISCOVERY_INTERVAL_S = 0.1

# ------------------------------------------------------------------
# Push sink naming
# ------------------------------------------------------------------

TELEOP_TOPIC = "teleop"
ACTION_INVOKE_TOPIC = "action"

QOS_BEST_EFFORT = 0
QOS_AT_LEAST_ONCE = 1


class Resource(StrEnum):
    """Logical resources fanned out to the push sink and the snapshot cache."""

    SENSOR_INFOS = "sensor_infos"
    SENSOR_VALUE = "sensors"
    ROBOT_STATE = "robot_state"
    MAP = "map"
    MAP_OVERLAY = "map_overlay"
    ACTIONS = "actions"

    @property
    def retained(self) -> bool:
        return self in _RETAINED

    @property
    def qos(self) -> int:
        return QOS_AT_LEAST_ONCE if self.retained else QOS_BEST_EFFORT

    def cache_key(self, key: str | None = None) -> str:
        """Snapshot cache key; per-sensor values are keyed ``sensors/<id>``."""
        if self is Resource.SENSOR_VALUE:
            if not key:
                raise ValueError("sensor values need a sensor id")
            return f"{self.value}/{key}"
        return self.value

    def topics(self, key: str | None = None) -> tuple[str, str]:
        """Return the (text, binary) push topics for this resource."""
        base = self.cache_key(key)
        if self is Resource.SENSOR_VALUE:
            return f"{base}/data", f"{base}/bin"
        return f"{base}/json", f"{base}/bin"


_RETAINED = frozenset(
    {
        Resource.SENSOR_INFOS,
        Resource.MAP,
        Resource.MAP_OVERLAY,
        Resource.ACTIONS,
    }
)

# Empty representations served by the pull interface before the first publish.
EMPTY_LIST_TEXT = "[]"
EMPTY_OBJECT_TEXT = "{}"
