"""Thread-safe last-known-value cache read by the pull interface.

Each resource key owns a slot with its own lock. A short-held index lock
only guards slot lookup/creation, so readers and writers of different
resources never wait on each other for longer than one dict access.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from xbot_monitor._constants import EMPTY_LIST_TEXT, EMPTY_OBJECT_TEXT, Resource
from xbot_monitor.serializer import WirePayload


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheEntry:
    """Last value written for one resource key."""

    text: str
    binary: bytes
    sequence: int
    updated_at: datetime


class _Slot:
    __slots__ = ("entry", "lock", "next_sequence")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entry: CacheEntry | None = None
        self.next_sequence = 0


class SnapshotCache:
    """Per-resource snapshot store.

    Writers first :meth:`reserve` a sequence number, then :meth:`put` the
    value. A put carrying an older sequence than the stored entry is
    discarded, so for every key the observed values are a subsequence of
    the reservation order. Entries are never removed.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._index_lock = threading.Lock()
        self._slots: dict[str, _Slot] = {}

    def _slot(self, key: str) -> _Slot:
        with self._index_lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = _Slot()
                self._slots[key] = slot
            return slot

    def _existing_slot(self, key: str) -> _Slot | None:
        with self._index_lock:
            return self._slots.get(key)

    def reserve(self, key: str) -> int:
        """Hand out the next write sequence number for *key*."""
        slot = self._slot(key)
        with slot.lock:
            slot.next_sequence += 1
            return slot.next_sequence

    def put(self, key: str, payload: WirePayload, sequence: int | None = None) -> bool:
        """Store *payload* for *key*; return False if a newer write already landed."""
        slot = self._slot(key)
        with slot.lock:
            if sequence is None:
                slot.next_sequence += 1
                sequence = slot.next_sequence
            else:
                slot.next_sequence = max(slot.next_sequence, sequence)
            current = slot.entry
            if current is not None and current.sequence > sequence:
                return False
            slot.entry = CacheEntry(
                text=payload.text,
                binary=payload.binary,
                sequence=sequence,
                updated_at=self._clock(),
            )
            return True

    def accepts(self, key: str, sequence: int) -> bool:
        """Whether a write with *sequence* would still be applied."""
        entry = self.get(key)
        return entry is None or entry.sequence <= sequence

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for *key*, or ``None`` when nothing was written yet."""
        slot = self._existing_slot(key)
        if slot is None:
            return None
        with slot.lock:
            return slot.entry

    def is_present(self, key: str) -> bool:
        return self.get(key) is not None

    def keys(self) -> list[str]:
        """Keys that hold a value."""
        with self._index_lock:
            slots = list(self._slots.items())
        present: list[str] = []
        for key, slot in slots:
            with slot.lock:
                if slot.entry is not None:
                    present.append(key)
        return present

    # ------------------------------------------------------------------
    # Typed readers used by the pull interface
    # ------------------------------------------------------------------

    def _text_or(self, key: str, default: str) -> str:
        entry = self.get(key)
        return entry.text if entry is not None else default

    def sensor_infos(self) -> str:
        return self._text_or(Resource.SENSOR_INFOS.cache_key(), EMPTY_LIST_TEXT)

    def sensor_value(self, sensor_id: str) -> str | None:
        entry = self.get(Resource.SENSOR_VALUE.cache_key(sensor_id))
        return entry.text if entry is not None else None

    def robot_state(self) -> str:
        return self._text_or(Resource.ROBOT_STATE.cache_key(), EMPTY_OBJECT_TEXT)

    def map(self) -> str:
        return self._text_or(Resource.MAP.cache_key(), EMPTY_OBJECT_TEXT)

    def map_overlay(self) -> str:
        return self._text_or(Resource.MAP_OVERLAY.cache_key(), EMPTY_OBJECT_TEXT)

    def actions(self) -> str:
        return self._text_or(Resource.ACTIONS.cache_key(), EMPTY_LIST_TEXT)
