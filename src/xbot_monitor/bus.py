"""Robot message bus interface and an in-process implementation.

The bridge only needs four primitives from the robot's bus: enumerate
topics, subscribe, publish and serve a request/response call.
:class:`LocalBus` provides them in-process; it delivers messages
synchronously on the publisher's thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

_logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], None]
ServiceHandler = Callable[[Any], Any]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class MessageBus(Protocol):
    """Structural bus interface used by the bridge components."""

    def topics(self) -> list[str]: ...

    def subscribe(self, topic: str, callback: MessageCallback) -> Subscription: ...

    def publish(self, topic: str, message: Any) -> None: ...

    def advertise_service(self, name: str, handler: ServiceHandler) -> None: ...


class _LocalSubscription:
    def __init__(self, bus: LocalBus, topic: str, callback: MessageCallback) -> None:
        self.topic = topic
        self.callback = callback
        self._bus = bus
        self.active = True

    def unsubscribe(self) -> None:
        self._bus._remove(self)  # noqa: SLF001


class LocalBus:
    """Thread-safe in-process bus."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._advertised: dict[str, None] = {}
        self._subscriptions: dict[str, list[_LocalSubscription]] = {}
        self._services: dict[str, ServiceHandler] = {}

    def advertise(self, topic: str) -> None:
        """Make *topic* visible to :meth:`topics` without publishing on it."""
        with self._lock:
            self._advertised.setdefault(topic, None)

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._advertised)

    def subscribe(self, topic: str, callback: MessageCallback) -> _LocalSubscription:
        subscription = _LocalSubscription(self, topic, callback)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)
        return subscription

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, []))

    def _remove(self, subscription: _LocalSubscription) -> None:
        with self._lock:
            subscription.active = False
            pending = self._subscriptions.get(subscription.topic)
            if pending is None:
                return
            remaining = [cand for cand in pending if cand is not subscription]
            if remaining:
                self._subscriptions[subscription.topic] = remaining
            else:
                self._subscriptions.pop(subscription.topic, None)

    def publish(self, topic: str, message: Any) -> None:
        with self._lock:
            self._advertised.setdefault(topic, None)
            targets = list(self._subscriptions.get(topic, []))
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.callback(message)
            except Exception:
                _logger.exception("Subscriber callback failed on topic=%s", topic)

    def advertise_service(self, name: str, handler: ServiceHandler) -> None:
        with self._lock:
            self._services[name] = handler

    def call(self, name: str, request: Any) -> Any:
        """Invoke a service; raises :class:`KeyError` for unknown services."""
        with self._lock:
            handler = self._services[name]
        return handler(request)
