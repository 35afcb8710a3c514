"""Periodic discovery of sensor metadata topics."""

from __future__ import annotations

import logging
import re
import threading

from xbot_monitor._constants import DISCOVERY_INTERVAL_S, SENSOR_INFO_PATTERN
from xbot_monitor.bus import MessageBus
from xbot_monitor.registry import SubscriptionRegistry

_logger = logging.getLogger(__name__)


class DiscoveryLoop:
    """Poll the bus for new metadata topics on a dedicated thread."""

    def __init__(
        self,
        bus: MessageBus,
        registry: SubscriptionRegistry,
        *,
        pattern: str = SENSOR_INFO_PATTERN,
        interval: float = DISCOVERY_INTERVAL_S,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._pattern = re.compile(pattern)
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def poll_once(self) -> list[str]:
        """Run one discovery pass; returns the topics claimed by this pass."""
        claimed: list[str] = []
        for topic in self._bus.topics():
            if not self._pattern.fullmatch(topic):
                continue
            if topic in self._registry:
                continue
            if self._registry.discover(topic):
                claimed.append(topic)
        return claimed

    def run(self) -> None:
        """Poll until :meth:`stop` is called."""
        _logger.debug("Sensor discovery running every %.3fs", self._interval)
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                _logger.exception("Sensor discovery pass failed")
            self._stop.wait(self._interval)
        _logger.debug("Sensor discovery stopped")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="xbot-monitor-discovery", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout)
