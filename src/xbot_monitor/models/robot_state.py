"""Robot status model."""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from xbot_monitor.models._base import MonitorBaseModel


class RobotPose(MonitorBaseModel):
    """Absolute pose with accuracy estimates."""

    x: float = 0.0
    y: float = 0.0
    heading: float = Field(default=0.0, validation_alias=AliasChoices("heading", "vehicle_heading"))
    pos_accuracy: float = Field(default=0.0, validation_alias=AliasChoices("pos_accuracy", "position_accuracy"))
    heading_accuracy: float = Field(
        default=0.0, validation_alias=AliasChoices("heading_accuracy", "orientation_accuracy")
    )
    heading_valid: bool = Field(default=False, validation_alias=AliasChoices("heading_valid", "orientation_valid"))

    @model_validator(mode="before")
    @classmethod
    def _flatten_position(cls, values: Any) -> Any:
        """Accept the nested ``pose.pose.position`` layout used on the bus."""
        if not isinstance(values, dict):
            return values
        outer = values.get("pose")
        if not isinstance(outer, dict):
            return values
        inner = outer.get("pose", outer)
        position = inner.get("position", inner) if isinstance(inner, dict) else {}
        merged = {k: v for k, v in values.items() if k != "pose"}
        if isinstance(position, dict):
            for axis in ("x", "y"):
                value = position.get(axis)
                if isinstance(value, (int, float)) and math.isfinite(value):
                    merged.setdefault(axis, value)
        return merged


class RobotState(MonitorBaseModel):
    """Periodic robot status."""

    battery_percentage: float = 0.0
    gps_percentage: float = 0.0
    current_action_progress: float = 0.0
    current_state: str = ""
    current_sub_state: str = ""
    robot_pose: RobotPose = Field(
        default_factory=RobotPose, validation_alias=AliasChoices("robot_pose", "pose")
    )

    def to_wire(self) -> dict[str, Any]:
        pose = self.robot_pose
        return {
            "battery_percentage": self.battery_percentage,
            "gps_percentage": self.gps_percentage,
            "current_action_progress": self.current_action_progress,
            "current_state": self.current_state,
            "current_sub_state": self.current_sub_state,
            "pose": {
                "x": pose.x,
                "y": pose.y,
                "heading": pose.heading,
                "pos_accuracy": pose.pos_accuracy,
                "heading_accuracy": pose.heading_accuracy,
                "heading_valid": pose.heading_valid,
            },
        }
