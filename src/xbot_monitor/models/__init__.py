"""Data models for bus messages and pushed resources."""

from xbot_monitor.models._base import MonitorBaseModel, MonitorEnum
from xbot_monitor.models.action import ActionInfo, RegisterActionsRequest
from xbot_monitor.models.map import Map, MapArea, MapOverlay, OverlayPolygon, Point
from xbot_monitor.models.robot_state import RobotPose, RobotState
from xbot_monitor.models.sensor import SensorInfo, ValueDescription, ValueType
from xbot_monitor.models.teleop import TeleopCommand, VelocityCommand

__all__ = [
    "ActionInfo",
    "Map",
    "MapArea",
    "MapOverlay",
    "MonitorBaseModel",
    "MonitorEnum",
    "OverlayPolygon",
    "Point",
    "RegisterActionsRequest",
    "RobotPose",
    "RobotState",
    "SensorInfo",
    "TeleopCommand",
    "ValueDescription",
    "ValueType",
    "VelocityCommand",
]
