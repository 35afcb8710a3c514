"""Sensor metadata model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from xbot_monitor.models._base import MonitorBaseModel, MonitorEnum


class ValueType(MonitorEnum):
    """Kind of value a sensor publishes."""

    UNKNOWN = -1
    STRING = 1
    DOUBLE = 2
    # Aliases
    TEXT = 1
    NUMERIC = 2


class ValueDescription(MonitorEnum):
    """Physical meaning of a sensor value."""

    UNKNOWN = -1
    TEMPERATURE = 1
    VELOCITY = 2
    ACCELERATION = 3
    VOLTAGE = 4
    CURRENT = 5
    PERCENT = 6
    # Aliases
    UNSPECIFIED = -1


class SensorInfo(MonitorBaseModel):
    """Descriptor received once on a sensor's metadata topic."""

    sensor_id: str = Field(min_length=1)
    """Stable id, used to derive the data topic."""
    sensor_name: str = ""
    """Human readable name."""
    value_type: ValueType = ValueType.UNKNOWN
    value_description: ValueDescription = ValueDescription.UNKNOWN
    unit: str = ""
    has_min_max: bool = False
    min_value: float = Field(default=0.0, validation_alias=AliasChoices("min_value", "min"))
    max_value: float = Field(default=0.0, validation_alias=AliasChoices("max_value", "max"))
    has_critical_low: bool = False
    lower_critical_value: float = 0.0
    has_critical_high: bool = False
    upper_critical_value: float = 0.0

    @field_validator("sensor_id", mode="before")
    @classmethod
    def _strip_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("value_type", mode="before")
    @classmethod
    def _parse_value_type(cls, value: Any) -> ValueType:
        return ValueType.parse(value)  # type: ignore[return-value]

    @field_validator("value_description", mode="before")
    @classmethod
    def _parse_value_description(cls, value: Any) -> ValueDescription:
        return ValueDescription.parse(value)  # type: ignore[return-value]

    @property
    def is_numeric(self) -> bool:
        return self.value_type == ValueType.DOUBLE

    @property
    def has_valid_type(self) -> bool:
        """Whether a data subscription can be opened for this sensor."""
        return self.value_type != ValueType.UNKNOWN

    def coerce_value(self, value: Any) -> float | str:
        """Convert a data payload to the sensor's declared value type.

        Raises :class:`ValueError` when the payload does not fit.
        """
        if isinstance(value, dict):
            if "data" not in value:
                raise ValueError("sensor data payload has no 'data' key")
            value = value["data"]
        if self.is_numeric:
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise ValueError(f"not a numeric sensor value: {value!r}")
            return float(value)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        if value is None:
            raise ValueError("text sensor value is missing")
        return str(value)

    def to_wire(self) -> dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "sensor_name": self.sensor_name,
            "value_type": self.value_type.name,
            "value_description": self.value_description.name,
            "unit": self.unit,
            "has_min_max": self.has_min_max,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "has_critical_low": self.has_critical_low,
            "lower_critical_value": self.lower_critical_value,
            "has_critical_high": self.has_critical_high,
            "upper_critical_value": self.upper_critical_value,
        }
