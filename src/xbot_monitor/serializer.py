"""Wire codec for pushed resources.

Every resource has two wire forms: a JSON text form and a compact
msgpack binary form. The binary form wraps the value in a ``{"d": ...}``
envelope so scalar values still decode to a document.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import msgpack

from xbot_monitor.exceptions import SerializationError

_ENVELOPE_KEY = "d"


@dataclass(frozen=True)
class WirePayload:
    """Both wire forms of one value."""

    text: str
    binary: bytes


def _raw_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


class WireCodec:
    """Stateless encoder/decoder for the push and pull wire forms."""

    def encode(self, value: Any, *, raw_text: bool = False, resource: str = "") -> WirePayload:
        """Serialize *value* into its text and binary forms.

        With ``raw_text`` scalars are rendered as plain text (``23.5``,
        ``idle``) instead of JSON literals; this is the form used for
        per-sensor readings. *resource* only labels the raised
        :class:`SerializationError`.
        """
        try:
            text = _raw_text(value) if raw_text else json.dumps(value, separators=(",", ":"), allow_nan=False)
            binary = msgpack.packb({_ENVELOPE_KEY: value}, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as exc:
            raise SerializationError(
                f"Cannot serialize {type(value).__name__}: {exc}", resource=resource
            ) from exc
        return WirePayload(text=text, binary=binary)

    def decode_binary(self, payload: bytes) -> Any:
        """Decode a binary payload; the ``d`` envelope is unwrapped when present."""
        try:
            decoded = msgpack.unpackb(payload, raw=False)
        except (ValueError, TypeError, msgpack.UnpackException) as exc:
            raise SerializationError(f"Undecodable binary payload: {exc}") from exc
        if isinstance(decoded, dict) and set(decoded) == {_ENVELOPE_KEY}:
            return decoded[_ENVELOPE_KEY]
        return decoded

    def decode_text(self, payload: bytes | str) -> Any:
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            return json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SerializationError(f"Undecodable text payload: {exc}") from exc
