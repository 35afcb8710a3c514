"""Sensor subscription lifecycle.

Each discovered metadata topic moves through
``UNKNOWN -> INFO_PENDING -> INFO_RECEIVED -> DATA_ACTIVE`` exactly once.
The registry lock only guards record lookup and mutation; bus calls and
publishes happen after it is released.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from xbot_monitor._constants import SENSOR_DATA_TOPIC, Resource
from xbot_monitor.bus import MessageBus, Subscription
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.models.sensor import SensorInfo

_logger = logging.getLogger(__name__)


class SubscriptionState(enum.IntEnum):
    """Lifecycle of a discovered sensor; ordered, never regresses."""

    UNKNOWN = 0
    INFO_PENDING = 1
    INFO_RECEIVED = 2
    DATA_ACTIVE = 3


@dataclass
class _Record:
    topic: str
    state: SubscriptionState = SubscriptionState.UNKNOWN
    info: SensorInfo | None = None
    info_subscription: Subscription | None = None
    data_subscription: Subscription | None = None
    data_topic: str | None = None
    # metadata topic that already owns this sensor_id, when rejected as a duplicate
    duplicate_of: str | None = None

    def advance(self, state: SubscriptionState) -> None:
        if state <= self.state:
            raise RuntimeError(f"{self.topic}: cannot move from {self.state.name} to {state.name}")
        self.state = state


@dataclass(frozen=True)
class SubscriptionRecord:
    """Read-only view of one registry entry."""

    topic: str
    state: SubscriptionState
    info: SensorInfo | None
    data_topic: str | None
    has_info_subscription: bool
    has_data_subscription: bool
    duplicate_of: str | None = None


class SubscriptionRegistry:
    """Tracks discovered sensor metadata topics and their subscriptions."""

    def __init__(
        self,
        bus: MessageBus,
        fanout: FanoutPublisher,
        *,
        data_topic_template: str = SENSOR_DATA_TOPIC,
    ) -> None:
        self._bus = bus
        self._fanout = fanout
        self._data_topic_template = data_topic_template
        self._lock = threading.Lock()
        self._records: dict[str, _Record] = {}
        # sensor_id -> metadata topic owning its data channel
        self._data_owners: dict[str, str] = {}
        self._infos_generation = 0

    def __contains__(self, topic: object) -> bool:
        with self._lock:
            return topic in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def state(self, topic: str) -> SubscriptionState:
        with self._lock:
            record = self._records.get(topic)
            return record.state if record is not None else SubscriptionState.UNKNOWN

    def snapshot(self) -> list[SubscriptionRecord]:
        with self._lock:
            return [
                SubscriptionRecord(
                    topic=rec.topic,
                    state=rec.state,
                    info=rec.info,
                    data_topic=rec.data_topic,
                    has_info_subscription=rec.info_subscription is not None,
                    has_data_subscription=rec.data_subscription is not None,
                    duplicate_of=rec.duplicate_of,
                )
                for rec in self._records.values()
            ]

    def sensor_infos(self) -> list[SensorInfo]:
        """Received descriptors in discovery order, rejected duplicates excluded."""
        with self._lock:
            return [
                rec.info
                for rec in self._records.values()
                if rec.info is not None and rec.duplicate_of is None
            ]

    # ------------------------------------------------------------------
    # UNKNOWN -> INFO_PENDING
    # ------------------------------------------------------------------

    def discover(self, topic: str) -> bool:
        """Claim *topic* and subscribe to its metadata.

        Returns False when the topic is already known or the subscription
        could not be opened; in the latter case the claim is released so a
        later discovery pass retries the topic.
        """
        with self._lock:
            if topic in self._records:
                return False
            record = _Record(topic=topic)
            record.advance(SubscriptionState.INFO_PENDING)
            self._records[topic] = record

        _logger.info("Found new sensor topic %s", topic)
        try:
            subscription = self._bus.subscribe(topic, lambda message: self.handle_sensor_info(topic, message))
        except Exception:
            _logger.exception("Subscribing to sensor info on %s failed", topic)
            with self._lock:
                self._records.pop(topic, None)
            return False
        self._attach_info_subscription(topic, subscription)
        return True

    def _attach_info_subscription(self, topic: str, subscription: Subscription) -> None:
        with self._lock:
            record = self._records[topic]
            # Metadata may already have arrived while subscribe() was running.
            keep = record.state == SubscriptionState.INFO_PENDING
            if keep:
                record.info_subscription = subscription
        if not keep:
            subscription.unsubscribe()

    # ------------------------------------------------------------------
    # INFO_PENDING -> INFO_RECEIVED -> DATA_ACTIVE
    # ------------------------------------------------------------------

    def handle_sensor_info(self, topic: str, message: Any) -> None:
        """Metadata callback for *topic*; only the first valid message counts."""
        try:
            info = message if isinstance(message, SensorInfo) else SensorInfo.model_validate(message)
        except ValidationError as exc:
            _logger.warning("Dropping malformed sensor info on topic %s: %s", topic, exc)
            return

        with self._lock:
            record = self._records.get(topic)
            if record is None or record.state != SubscriptionState.INFO_PENDING:
                _logger.debug("Ignoring repeated sensor info on topic %s", topic)
                return
            record.info = info
            record.advance(SubscriptionState.INFO_RECEIVED)
            info_subscription = record.info_subscription
            record.info_subscription = None

            owner = self._data_owners.get(info.sensor_id)
            collision = owner is not None and owner != topic
            if collision:
                record.duplicate_of = owner
            open_data = info.has_valid_type and not collision
            if open_data:
                self._data_owners[info.sensor_id] = topic

        if info_subscription is not None:
            info_subscription.unsubscribe()

        _logger.info("Got sensor info for sensor %s on topic %s", info.sensor_name or info.sensor_id, topic)
        if not info.has_valid_type:
            _logger.error("Invalid sensor data type for sensor %s on topic %s", info.sensor_id, topic)
        elif collision:
            _logger.warning(
                "Sensor id %s on topic %s is already served by %s; not subscribing or listing it",
                info.sensor_id,
                topic,
                owner,
            )
        else:
            self._open_data_subscription(topic, info)

        self.publish_sensor_infos()

    def _open_data_subscription(self, topic: str, info: SensorInfo) -> None:
        data_topic = self._data_topic_template.format(sensor_id=info.sensor_id)
        _logger.info("Subscribing to sensor data for sensor %s on %s", info.sensor_id, data_topic)
        try:
            subscription = self._bus.subscribe(data_topic, lambda message: self.handle_sensor_data(info, message))
        except Exception:
            _logger.exception("Subscribing to %s failed", data_topic)
            with self._lock:
                self._data_owners.pop(info.sensor_id, None)
            return

        with self._lock:
            record = self._records[topic]
            record.data_subscription = subscription
            record.data_topic = data_topic
            record.advance(SubscriptionState.DATA_ACTIVE)

    def handle_sensor_data(self, info: SensorInfo, message: Any) -> None:
        try:
            value = info.coerce_value(message)
        except (TypeError, ValueError) as exc:
            _logger.warning("Dropping malformed data for sensor %s: %s", info.sensor_id, exc)
            return
        self._fanout.publish(Resource.SENSOR_VALUE, value, key=info.sensor_id)

    def publish_sensor_infos(self) -> bool:
        """Republish the full sensor metadata list."""
        with self._lock:
            self._infos_generation += 1
            generation = self._infos_generation
            infos = [
                rec.info.to_wire()
                for rec in self._records.values()
                if rec.info is not None and rec.duplicate_of is None
            ]
        if not infos:
            return False
        return self._fanout.publish(Resource.SENSOR_INFOS, infos, sequence=generation)
