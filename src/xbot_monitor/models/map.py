"""Map and map overlay models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from xbot_monitor.models._base import MonitorBaseModel


class Point(MonitorBaseModel):
    x: float = 0.0
    y: float = 0.0

    def to_wire(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


def _unwrap_points(value: Any) -> Any:
    """Polygons arrive either as point lists or as ``{"points": [...]}``."""
    if isinstance(value, dict):
        return value.get("points", [])
    return value


class MapArea(MonitorBaseModel):
    """Named area: an outline polygon plus obstacle polygons."""

    name: str = ""
    outline: list[Point] = Field(default_factory=list, validation_alias=AliasChoices("outline", "area"))
    obstacles: list[list[Point]] = Field(default_factory=list)

    @field_validator("outline", mode="before")
    @classmethod
    def _unwrap_outline(cls, value: Any) -> Any:
        return _unwrap_points(value)

    @field_validator("obstacles", mode="before")
    @classmethod
    def _unwrap_obstacles(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [_unwrap_points(poly) for poly in value]

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "outline": [pt.to_wire() for pt in self.outline],
            "obstacles": [[pt.to_wire() for pt in poly] for poly in self.obstacles],
        }


class Map(MonitorBaseModel):
    """Recorded map: docking pose, extents and areas."""

    dock_x: float = Field(default=0.0, validation_alias=AliasChoices("dock_x", "dockX"))
    dock_y: float = Field(default=0.0, validation_alias=AliasChoices("dock_y", "dockY"))
    dock_heading: float = Field(default=0.0, validation_alias=AliasChoices("dock_heading", "dockHeading"))
    map_width: float = Field(default=0.0, validation_alias=AliasChoices("map_width", "mapWidth"))
    map_height: float = Field(default=0.0, validation_alias=AliasChoices("map_height", "mapHeight"))
    map_center_x: float = Field(default=0.0, validation_alias=AliasChoices("map_center_x", "mapCenterX"))
    map_center_y: float = Field(default=0.0, validation_alias=AliasChoices("map_center_y", "mapCenterY"))
    working_areas: list[MapArea] = Field(
        default_factory=list, validation_alias=AliasChoices("working_areas", "workingArea")
    )
    navigation_areas: list[MapArea] = Field(
        default_factory=list, validation_alias=AliasChoices("navigation_areas", "navigationAreas")
    )

    def to_wire(self) -> dict[str, Any]:
        return {
            "docking_pose": {"x": self.dock_x, "y": self.dock_y, "heading": self.dock_heading},
            "meta": {
                "mapWidth": self.map_width,
                "mapHeight": self.map_height,
                "mapCenterX": self.map_center_x,
                "mapCenterY": self.map_center_y,
            },
            "working_areas": [area.to_wire() for area in self.working_areas],
            "navigation_areas": [area.to_wire() for area in self.navigation_areas],
        }


class OverlayPolygon(MonitorBaseModel):
    """A polygon or polyline drawn on top of the map."""

    poly: list[Point] = Field(default_factory=list)
    is_closed: bool = True
    line_width: float = 0.1
    color: str = ""

    @field_validator("poly", mode="before")
    @classmethod
    def _unwrap_poly(cls, value: Any) -> Any:
        return _unwrap_points(value)

    def to_wire(self) -> dict[str, Any]:
        return {
            "poly": [pt.to_wire() for pt in self.poly],
            "is_closed": self.is_closed,
            "line_width": self.line_width,
            "color": self.color,
        }


class MapOverlay(MonitorBaseModel):
    polygons: list[OverlayPolygon] = Field(default_factory=list, validation_alias=AliasChoices("polygons", "polygon"))

    def to_wire(self) -> dict[str, Any]:
        return {"polygons": [poly.to_wire() for poly in self.polygons]}
