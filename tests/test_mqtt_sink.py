from __future__ import annotations

import logging
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any

import msgpack
import paho.mqtt.client as mqtt
import pytest

from xbot_monitor.exceptions import SinkError
from xbot_monitor.models import TeleopCommand
from xbot_monitor.mqtt import MqttPushSink


@dataclass
class _ReasonCode:
    is_failure: bool

    def __str__(self) -> str:
        return "Not authorized" if self.is_failure else "Success"


class _DummyClient:
    def __init__(self, rc: int = mqtt.MQTT_ERR_SUCCESS) -> None:
        self.rc = rc
        self.subscriptions: list[tuple[str, int]] = []
        self.published: list[tuple[str, Any, int, bool]] = []

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append((topic, qos))

    def publish(self, topic: str, payload: Any, qos: int = 0, retain: bool = False) -> SimpleNamespace:
        self.published.append((topic, payload, qos, retain))
        return SimpleNamespace(rc=self.rc)


class _Recorder:
    def __init__(self) -> None:
        self.teleop: list[TeleopCommand] = []
        self.actions: list[str] = []
        self.connects = 0

    def on_teleop(self, command: TeleopCommand) -> None:
        self.teleop.append(command)

    def on_action(self, action_id: str) -> None:
        self.actions.append(action_id)

    def on_connected(self) -> None:
        self.connects += 1


def _make_sink(recorder: _Recorder, *, topic_prefix: str = "") -> MqttPushSink:
    return MqttPushSink(
        host="broker.local",
        port=1883,
        client_id="test",
        topic_prefix=topic_prefix,
        on_connected=recorder.on_connected,
        on_teleop=recorder.on_teleop,
        on_action=recorder.on_action,
    )


def _attach(sink: MqttPushSink, client: _DummyClient) -> None:
    sink._client = client  # noqa: SLF001
    sink._running = True  # noqa: SLF001


def test_teleop_payload_is_decoded() -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder)

    sink.handle_message("teleop", msgpack.packb({"vx": 0.5, "vz": -0.2}))

    assert recorder.teleop == [TeleopCommand(vx=0.5, vz=-0.2)]


def test_malformed_teleop_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder)

    with caplog.at_level(logging.ERROR, logger="xbot_monitor.mqtt"):
        sink.handle_message("teleop", b"\xc1")
        sink.handle_message("teleop", msgpack.packb({"vx": 1.0}))

    assert recorder.teleop == []
    assert caplog.text.count("Error decoding teleop payload") == 2


def test_action_invocation_is_forwarded() -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder)

    sink.handle_message("action", b" mower_logic/start ")
    sink.handle_message("action", b"")
    sink.handle_message("action", b"\xff\xfe")

    assert recorder.actions == ["mower_logic/start"]


def test_inbound_topics_respect_prefix() -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder, topic_prefix="robot1/")

    sink.handle_message("action", b"ignored")
    sink.handle_message("robot1/action", b"a/b")

    assert recorder.actions == ["a/b"]


def test_publish_requires_running_client() -> None:
    sink = _make_sink(_Recorder())

    with pytest.raises(SinkError):
        sink.publish("map/json", "{}")


def test_publish_applies_prefix() -> None:
    sink = _make_sink(_Recorder(), topic_prefix="robot1/")
    client = _DummyClient()
    _attach(sink, client)

    sink.publish("map/json", "{}", qos=1, retain=True)

    assert client.published == [("robot1/map/json", "{}", 1, True)]


def test_publish_failure_raises_sink_error() -> None:
    sink = _make_sink(_Recorder())
    _attach(sink, _DummyClient(rc=mqtt.MQTT_ERR_NO_CONN))

    with pytest.raises(SinkError) as excinfo:
        sink.publish("map/json", "{}")

    assert excinfo.value.topic == "map/json"


def test_connect_subscribes_and_republishes() -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder, topic_prefix="robot1/")
    client = _DummyClient()

    sink._on_connect(client, None, None, _ReasonCode(is_failure=False), None)  # noqa: SLF001

    assert client.subscriptions == [("robot1/teleop", 0), ("robot1/action", 0)]
    assert recorder.connects == 1


def test_failed_connect_does_nothing() -> None:
    recorder = _Recorder()
    sink = _make_sink(recorder)
    client = _DummyClient()

    sink._on_connect(client, None, None, _ReasonCode(is_failure=True), None)  # noqa: SLF001

    assert client.subscriptions == []
    assert recorder.connects == 0


def test_connected_callback_errors_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    def explode() -> None:
        raise RuntimeError("boom")

    sink = MqttPushSink(host="h", port=1, client_id="c", on_connected=explode)
    client = _DummyClient()

    with caplog.at_level(logging.ERROR, logger="xbot_monitor.mqtt"):
        sink._on_connect(client, None, None, _ReasonCode(is_failure=False), None)  # noqa: SLF001

    assert "on_connected callback failed" in caplog.text
    assert len(client.subscriptions) == 2
