"""Action registration models."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from xbot_monitor.models._base import MonitorBaseModel


class ActionInfo(MonitorBaseModel):
    """An action a node offers for remote execution."""

    action_id: str = Field(min_length=1)
    action_name: str = ""
    enabled: bool = True

    def to_wire(self) -> dict[str, str | bool]:
        return {
            "action_id": self.action_id,
            "action_name": self.action_name,
            "enabled": self.enabled,
        }


class RegisterActionsRequest(MonitorBaseModel):
    """Service request replacing every action of one node prefix."""

    node_prefix: str = Field(min_length=1, validation_alias=AliasChoices("node_prefix", "prefix"))
    actions: list[ActionInfo] = Field(default_factory=list)
