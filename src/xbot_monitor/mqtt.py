"""MQTT push sink: retained/best-effort publishing and inbound remote control."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from xbot_monitor._constants import ACTION_INVOKE_TOPIC, QOS_BEST_EFFORT, TELEOP_TOPIC
from xbot_monitor.exceptions import SerializationError, SinkConnectError, SinkError
from xbot_monitor.models.teleop import TeleopCommand
from xbot_monitor.serializer import WireCodec


class PushSink(Protocol):
    """Fire-and-forget publish primitive.

    Implementations raise :class:`SinkError` (or any exception) on failure;
    callers are expected to drop the message.
    """

    def publish(self, topic: str, payload: str | bytes, *, qos: int = 0, retain: bool = False) -> None: ...


class NullPushSink:
    """Sink used when MQTT is disabled; every message is dropped."""

    def publish(self, topic: str, payload: str | bytes, *, qos: int = 0, retain: bool = False) -> None:
        return None


class MqttPushSink:
    """Threaded paho-mqtt client publishing resources and receiving remote control.

    The client reconnects on its own; after every successful (re)connect the
    inbound topics are subscribed again and ``on_connected`` is invoked so
    retained resources can be pushed again.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        client_id: str,
        keepalive: int = 60,
        topic_prefix: str = "",
        codec: WireCodec | None = None,
        on_connected: Callable[[], None] | None = None,
        on_teleop: Callable[[TeleopCommand], None] | None = None,
        on_action: Callable[[str], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._client_id = client_id
        self._keepalive = keepalive
        self._topic_prefix = topic_prefix
        self._codec = codec or WireCodec()
        self._on_connected = on_connected
        self._on_teleop = on_teleop
        self._on_action = on_action
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    def _topic(self, suffix: str) -> str:
        return f"{self._topic_prefix}{suffix}"

    def start(self) -> None:
        """Create the client and start connecting in the background.

        Raises :class:`SinkConnectError` when the client cannot be created.
        """
        self.stop()
        self._logger.debug(
            "MQTT sink start requested host=%s port=%s client_id=%s",
            self._host,
            self._port,
            self._client_id,
        )
        try:
            client = mqtt.Client(
                callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
                client_id=self._client_id,
                protocol=mqtt.MQTTv311,
                clean_session=True,
            )
            client.enable_logger(self._logger)
            client.max_inflight_messages_set(10)
            client.reconnect_delay_set(min_delay=1, max_delay=30)

            client.on_connect = self._on_connect
            client.on_message = self._on_message
            client.on_disconnect = self._on_disconnect

            client.connect_async(self._host, self._port, keepalive=self._keepalive)
            client.loop_start()
        except (OSError, ValueError) as exc:
            raise SinkConnectError(f"MQTT client could not be initialized: {exc}") from exc

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: str | bytes, *, qos: int = QOS_BEST_EFFORT, retain: bool = False) -> None:
        client = self._client
        full_topic = self._topic(topic)
        if client is None:
            raise SinkError("MQTT sink is not running", topic=full_topic)
        info = client.publish(full_topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise SinkError(f"MQTT publish failed: {mqtt.error_string(info.rc)}", topic=full_topic)

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.is_failure:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._logger.info("MQTT connected to %s:%s", self._host, self._port)
        client.subscribe(self._topic(TELEOP_TOPIC), qos=0)
        client.subscribe(self._topic(ACTION_INVOKE_TOPIC), qos=0)
        if self._on_connected is not None:
            try:
                self._on_connected()
            except Exception:
                self._logger.exception("MQTT on_connected callback failed")

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        self.handle_message(msg.topic, msg.payload)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if self._running:
            self._logger.info("MQTT disconnected: %s", reason_code)

    # ------------------------------------------------------------------
    # Inbound dispatch
    # ------------------------------------------------------------------

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Dispatch an inbound message; malformed payloads are logged and dropped."""
        if topic == self._topic(TELEOP_TOPIC):
            self._handle_teleop(payload)
        elif topic == self._topic(ACTION_INVOKE_TOPIC):
            self._handle_action(payload)
        else:
            self._logger.debug("Ignoring MQTT message on unexpected topic=%s", topic)

    def _handle_teleop(self, payload: bytes) -> None:
        try:
            decoded = self._codec.decode_binary(payload)
            command = TeleopCommand.model_validate(decoded)
        except (SerializationError, ValidationError) as exc:
            self._logger.error("Error decoding teleop payload: %s", exc)
            return
        self._logger.debug("Teleop vx=%s vz=%s", command.vx, command.vz)
        if self._on_teleop is not None:
            self._on_teleop(command)

    def _handle_action(self, payload: bytes) -> None:
        try:
            action_id = payload.decode("utf-8").strip()
        except UnicodeDecodeError:
            self._logger.error("Error decoding action payload (%d bytes)", len(payload))
            return
        if not action_id:
            self._logger.warning("Dropping empty action invocation")
            return
        self._logger.info("Got action: %s", action_id)
        if self._on_action is not None:
            self._on_action(action_id)
