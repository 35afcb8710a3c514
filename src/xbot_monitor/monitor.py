"""Composition of the bridge components."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import ValidationError

from xbot_monitor._constants import Resource
from xbot_monitor.actions import ActionRegistry
from xbot_monitor.bus import MessageBus, Subscription
from xbot_monitor.cache import SnapshotCache
from xbot_monitor.config import MonitorConfig
from xbot_monitor.discovery import DiscoveryLoop
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.models._base import MonitorBaseModel
from xbot_monitor.models.map import Map, MapOverlay
from xbot_monitor.models.robot_state import RobotState
from xbot_monitor.models.teleop import TeleopCommand
from xbot_monitor.mqtt import MqttPushSink, NullPushSink, PushSink
from xbot_monitor.pull import PullInterface, PullServer
from xbot_monitor.registry import SubscriptionRegistry
from xbot_monitor.serializer import WireCodec

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=MonitorBaseModel)


class XbotMonitor:
    """Bridge between the robot bus, the MQTT broker and the pull interface.

    Usage::

        with XbotMonitor(MonitorConfig.from_env(), bus) as monitor:
            ...

    Pass ``sink`` to use a custom push sink instead of the MQTT client.
    """

    def __init__(
        self,
        config: MonitorConfig,
        bus: MessageBus,
        *,
        sink: PushSink | None = None,
        codec: WireCodec | None = None,
    ) -> None:
        self._config = config
        self._bus = bus
        self._codec = codec or WireCodec()
        self._external_sink = sink is not None

        self.cache = SnapshotCache()
        self.fanout = FanoutPublisher(sink or NullPushSink(), self.cache, codec=self._codec)
        self.registry = SubscriptionRegistry(
            bus,
            self.fanout,
            data_topic_template=config.sensor_data_topic,
        )
        self.discovery = DiscoveryLoop(
            bus,
            self.registry,
            pattern=config.sensor_info_pattern,
            interval=config.discovery_interval,
        )
        self.actions = ActionRegistry(self.fanout, self._forward_action)
        self.pull = PullInterface(self.cache, self.actions.execute)

        self._mqtt: MqttPushSink | None = None
        self._pull_server: PullServer | None = None
        self._subscriptions: list[Subscription] = []
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> XbotMonitor:
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()

    def start(self) -> None:
        """Start every component.

        Raises :class:`~xbot_monitor.exceptions.SinkConnectError` when the
        MQTT client cannot be created.
        """
        if self._started:
            return

        if not self._external_sink and self._config.mqtt_enabled:
            mqtt_sink = MqttPushSink(
                host=self._config.mqtt_host,
                port=self._config.mqtt_port,
                client_id=self._config.mqtt_client_id,
                keepalive=self._config.mqtt_keepalive,
                topic_prefix=self._config.topic_prefix,
                codec=self._codec,
                on_connected=self.fanout.republish_retained,
                on_teleop=self._forward_teleop,
                on_action=self.actions.execute,
            )
            mqtt_sink.start()
            self._mqtt = mqtt_sink
            self.fanout.set_sink(mqtt_sink)

        self._subscriptions = [
            self._bus.subscribe(self._config.robot_state_topic, self.handle_robot_state),
            self._bus.subscribe(self._config.map_topic, self.handle_map),
            self._bus.subscribe(self._config.map_overlay_topic, self.handle_map_overlay),
        ]
        self._bus.advertise_service(self._config.register_actions_service, self.actions.handle_register_request)
        self.discovery.start()

        if self._config.http_enabled:
            server = PullServer(self.pull, host=self._config.http_host, port=self._config.http_port)
            try:
                server.start()
            except OSError:
                _logger.error("Continuing without pull interface")
            else:
                self._pull_server = server

        self._started = True
        _logger.info("xbot monitor started")

    def stop(self) -> None:
        self.discovery.stop()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        if self._pull_server is not None:
            self._pull_server.stop()
            self._pull_server = None
        if self._mqtt is not None:
            self._mqtt.stop()
            self._mqtt = None
            self.fanout.set_sink(NullPushSink())
        if self._started:
            _logger.info("xbot monitor stopped")
        self._started = False

    # ------------------------------------------------------------------
    # Bus callbacks
    # ------------------------------------------------------------------

    def _parse(self, model: type[M], message: Any, what: str) -> M | None:
        if isinstance(message, model):
            return message
        try:
            return model.model_validate(message)
        except ValidationError as exc:
            _logger.warning("Dropping malformed %s message: %s", what, exc)
            return None

    def handle_robot_state(self, message: Any) -> None:
        state = self._parse(RobotState, message, "robot state")
        if state is not None:
            self.fanout.publish(Resource.ROBOT_STATE, state.to_wire())

    def handle_map(self, message: Any) -> None:
        map_ = self._parse(Map, message, "map")
        if map_ is not None:
            self.fanout.publish(Resource.MAP, map_.to_wire())

    def handle_map_overlay(self, message: Any) -> None:
        overlay = self._parse(MapOverlay, message, "map overlay")
        if overlay is not None:
            self.fanout.publish(Resource.MAP_OVERLAY, overlay.to_wire())

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _forward_teleop(self, command: TeleopCommand) -> None:
        self._bus.publish(self._config.cmd_vel_topic, command.to_velocity())

    def _forward_action(self, action_id: str) -> None:
        self._bus.publish(self._config.action_topic, action_id)
