"""Base model and enum for bus messages.

Every message model inherits from :class:`MonitorBaseModel` which
provides frozen instances, tolerant parsing (unknown keys ignored,
``None`` and NaN/infinite floats dropped so field defaults apply) and
population by either field name or alias. Non-finite numbers never reach
a model, so every ``to_wire()`` result is valid JSON.

Closed enums inherit from :class:`MonitorEnum`, which adds an
``UNKNOWN`` member at ``-1``, resolves unmapped codes to it through
``_missing_`` and accepts member names as well as numeric codes.
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class MonitorEnum(enum.IntEnum):
    """Base for closed metadata enums.

    Every subclass **must** define ``UNKNOWN = -1``. Aliases (extra
    names sharing a value) are allowed and resolve to the canonical
    member, whose ``name`` is used on the wire.
    """

    @classmethod
    def _missing_(cls, value: object) -> MonitorEnum:
        # pylint: disable=no-member
        unknown: MonitorEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown

    @classmethod
    def parse(cls, value: Any) -> MonitorEnum:
        """Resolve a numeric code or a (case-insensitive) member name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls._missing_(value)
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, float) and value.is_integer():
            return cls(int(value))
        if isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                return cls(int(text))
            member = cls.__members__.get(text.upper())
            if member is not None:
                return member
        return cls._missing_(value)


class MonitorBaseModel(BaseModel):
    """Base for bus message models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        allow_inf_nan=False,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_missing(cls, values: Any) -> Any:
        """Drop ``None`` and non-finite floats so the field default is used instead."""
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, float) and not math.isfinite(value):
                continue
            cleaned[key] = value
        return cleaned
