"""Fan-out of domain events to the push sink and the snapshot cache.

:class:`FanoutPublisher` is the single choke point for state changes:
every resource update is serialized once, pushed in both wire forms and
written to the cache. The cache write happens even when the push fails.

Publications of one resource key are serialized by a per-key publish
lock held across the staleness check, the push and the cache write, so
the sink and the cache see the same order. Different keys never wait on
each other.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from xbot_monitor._constants import Resource
from xbot_monitor._redact import summarize_for_log
from xbot_monitor.cache import SnapshotCache
from xbot_monitor.exceptions import SerializationError
from xbot_monitor.mqtt import PushSink
from xbot_monitor.serializer import WireCodec, WirePayload

_logger = logging.getLogger(__name__)


class FanoutPublisher:
    """Serialize once, push to the sink, update the snapshot cache."""

    def __init__(
        self,
        sink: PushSink,
        cache: SnapshotCache,
        *,
        codec: WireCodec | None = None,
    ) -> None:
        self._sink = sink
        self._cache = cache
        self._codec = codec or WireCodec()
        self._locks_guard = threading.Lock()
        self._publish_locks: dict[str, threading.Lock] = {}

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    def set_sink(self, sink: PushSink) -> None:
        """Swap the push sink (e.g. once the MQTT client is started)."""
        self._sink = sink

    def _publish_lock(self, cache_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._publish_locks.get(cache_key)
            if lock is None:
                lock = threading.Lock()
                self._publish_locks[cache_key] = lock
            return lock

    def publish(
        self,
        resource: Resource,
        value: Any,
        *,
        key: str | None = None,
        sequence: int | None = None,
    ) -> bool:
        """Publish *value* for *resource* (``key`` is the sensor id for sensor values).

        Aggregates rendered by a caller (sensor list, action list) pass their
        own ``sequence``; a value older than the cached one is skipped.

        Returns False when the value was skipped or could not be serialized;
        nothing is pushed or cached in that case. Push failures are dropped.
        """
        cache_key = resource.cache_key(key)
        try:
            payload = self._codec.encode(
                value,
                raw_text=resource is Resource.SENSOR_VALUE,
                resource=cache_key,
            )
        except SerializationError:
            _logger.exception("Skipping publish of %s: serialization failed", cache_key)
            return False

        with self._publish_lock(cache_key):
            if sequence is None:
                sequence = self._cache.reserve(cache_key)
            elif not self._cache.accepts(cache_key, sequence):
                _logger.debug("Skipping stale publish of %s sequence=%s", cache_key, sequence)
                return False
            if resource.retained:
                _logger.debug("Publishing %s: %s", cache_key, summarize_for_log(value))
            self._push(resource, key, payload)
            self._cache.put(cache_key, payload, sequence)
        return True

    def republish_retained(self) -> int:
        """Push every cached retained resource again; returns the number pushed."""
        pushed = 0
        for resource in Resource:
            if not resource.retained:
                continue
            cache_key = resource.cache_key()
            with self._publish_lock(cache_key):
                entry = self._cache.get(cache_key)
                if entry is None:
                    continue
                self._push(resource, None, WirePayload(text=entry.text, binary=entry.binary))
            pushed += 1
        return pushed

    def _push(self, resource: Resource, key: str | None, payload: WirePayload) -> None:
        text_topic, binary_topic = resource.topics(key)
        for topic, data in ((text_topic, payload.text), (binary_topic, payload.binary)):
            try:
                self._sink.publish(topic, data, qos=resource.qos, retain=resource.retained)
            except Exception as exc:
                # Reconnection is the sink's own business; the message is dropped.
                _logger.debug("Push to %s dropped: %s", topic, exc)
