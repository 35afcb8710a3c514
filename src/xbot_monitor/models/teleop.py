"""Remote control models."""

from __future__ import annotations

from pydantic import Field

from xbot_monitor.models._base import MonitorBaseModel


class TeleopCommand(MonitorBaseModel):
    """Joystick input received from the push sink."""

    vx: float
    """Linear velocity (m/s)."""
    vz: float
    """Angular velocity (rad/s)."""

    def to_velocity(self) -> VelocityCommand:
        return VelocityCommand(linear_x=self.vx, angular_z=self.vz)


class VelocityCommand(MonitorBaseModel):
    """Planar velocity command forwarded to the drive."""

    linear_x: float = Field(default=0.0)
    angular_z: float = Field(default=0.0)
