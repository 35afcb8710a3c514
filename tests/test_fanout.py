from __future__ import annotations

import json
import logging
import threading
import time

import pytest

from fakes import FailingSink, RecordingSink
from xbot_monitor._constants import Resource
from xbot_monitor.cache import SnapshotCache
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.serializer import WireCodec


def test_retained_resource_pushes_both_forms_with_qos1(fanout: FanoutPublisher, sink: RecordingSink) -> None:
    assert fanout.publish(Resource.MAP, {"meta": {"mapWidth": 10.0}})

    text = sink.on("map/json")
    binary = sink.on("map/bin")
    assert len(text) == 1 and len(binary) == 1
    assert text[0].retain and text[0].qos == 1
    assert binary[0].retain and binary[0].qos == 1
    assert json.loads(text[0].payload) == {"meta": {"mapWidth": 10.0}}
    assert WireCodec().decode_binary(binary[0].payload) == {"meta": {"mapWidth": 10.0}}


@pytest.mark.parametrize(
    ("resource", "text_topic"),
    [
        (Resource.SENSOR_INFOS, "sensor_infos/json"),
        (Resource.MAP_OVERLAY, "map_overlay/json"),
        (Resource.ACTIONS, "actions/json"),
    ],
)
def test_metadata_resources_are_retained(
    fanout: FanoutPublisher, sink: RecordingSink, resource: Resource, text_topic: str
) -> None:
    fanout.publish(resource, [])

    (message,) = sink.on(text_topic)
    assert message.retain
    assert message.qos == 1


def test_sensor_value_is_best_effort_raw_text(
    fanout: FanoutPublisher, sink: RecordingSink, cache: SnapshotCache
) -> None:
    fanout.publish(Resource.SENSOR_VALUE, 23.5, key="temp1")

    (text,) = sink.on("sensors/temp1/data")
    (binary,) = sink.on("sensors/temp1/bin")
    assert text.payload == "23.5"
    assert not text.retain and text.qos == 0
    assert not binary.retain and binary.qos == 0
    assert cache.sensor_value("temp1") == "23.5"


def test_robot_state_is_best_effort(fanout: FanoutPublisher, sink: RecordingSink, cache: SnapshotCache) -> None:
    fanout.publish(Resource.ROBOT_STATE, {"current_state": "IDLE"})

    (message,) = sink.on("robot_state/json")
    assert not message.retain
    assert json.loads(cache.robot_state()) == {"current_state": "IDLE"}


def test_push_failure_still_updates_cache() -> None:
    failing = FailingSink()
    cache = SnapshotCache()
    fanout = FanoutPublisher(failing, cache)

    assert fanout.publish(Resource.MAP, {"working_areas": []})

    assert failing.attempts == 2
    assert json.loads(cache.map()) == {"working_areas": []}


def test_serialization_error_skips_publish(
    fanout: FanoutPublisher, sink: RecordingSink, cache: SnapshotCache
) -> None:
    assert not fanout.publish(Resource.SENSOR_INFOS, [{"unit": object()}])

    assert sink.messages == []
    assert cache.sensor_infos() == "[]"


def test_stale_aggregate_is_not_published(
    fanout: FanoutPublisher, sink: RecordingSink, cache: SnapshotCache
) -> None:
    assert fanout.publish(Resource.SENSOR_INFOS, [{"sensor_id": "a"}, {"sensor_id": "b"}], sequence=2)
    assert not fanout.publish(Resource.SENSOR_INFOS, [{"sensor_id": "a"}], sequence=1)

    assert len(sink.on("sensor_infos/json")) == 1
    assert len(json.loads(cache.sensor_infos())) == 2


def test_sensor_value_without_id_is_rejected(fanout: FanoutPublisher) -> None:
    with pytest.raises(ValueError):
        fanout.publish(Resource.SENSOR_VALUE, 1.0)


def test_republish_retained_pushes_cached_metadata_only(fanout: FanoutPublisher, sink: RecordingSink) -> None:
    fanout.publish(Resource.MAP, {"meta": {}})
    fanout.publish(Resource.ROBOT_STATE, {"current_state": "MOWING"})
    fanout.publish(Resource.SENSOR_VALUE, 1.0, key="v")
    sink.clear()

    assert fanout.republish_retained() == 1
    assert [msg.topic for msg in sink.messages] == ["map/json", "map/bin"]
    assert all(msg.retain for msg in sink.messages)


def test_set_sink_redirects_pushes(fanout: FanoutPublisher, sink: RecordingSink) -> None:
    other = RecordingSink()
    fanout.set_sink(other)

    fanout.publish(Resource.ACTIONS, [])

    assert sink.messages == []
    assert len(other.messages) == 2


class _BlockingSink(RecordingSink):
    """Holds the first push on *topic* until :attr:`release` is set."""

    def __init__(self, topic: str) -> None:
        super().__init__()
        self._topic = topic
        self._blocked = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def publish(self, topic: str, payload: str | bytes, *, qos: int = 0, retain: bool = False) -> None:
        block = False
        with self._lock:
            if topic == self._topic and not self._blocked:
                self._blocked = block = True
        if block:
            self.entered.set()
            assert self.release.wait(5.0)
        super().publish(topic, payload, qos=qos, retain=retain)


def _last_list(sink: RecordingSink, topic: str) -> list[str]:
    return [entry["sensor_id"] for entry in json.loads(sink.on(topic)[-1].payload)]


def test_older_aggregate_pushed_concurrently_never_ends_up_retained() -> None:
    sink = _BlockingSink("sensor_infos/json")
    cache = SnapshotCache()
    fanout = FanoutPublisher(sink, cache)

    older = threading.Thread(
        target=fanout.publish, args=(Resource.SENSOR_INFOS, [{"sensor_id": "a"}]), kwargs={"sequence": 1}
    )
    older.start()
    assert sink.entered.wait(5.0)
    newer = threading.Thread(
        target=fanout.publish,
        args=(Resource.SENSOR_INFOS, [{"sensor_id": "a"}, {"sensor_id": "b"}]),
        kwargs={"sequence": 2},
    )
    newer.start()
    time.sleep(0.05)
    sink.release.set()
    older.join(5.0)
    newer.join(5.0)

    assert _last_list(sink, "sensor_infos/json") == ["a", "b"]
    assert [entry["sensor_id"] for entry in json.loads(cache.sensor_infos())] == ["a", "b"]


def test_older_aggregate_waiting_behind_newer_push_is_skipped() -> None:
    sink = _BlockingSink("sensor_infos/json")
    cache = SnapshotCache()
    fanout = FanoutPublisher(sink, cache)
    results: dict[str, bool] = {}

    def publish(name: str, value: list[dict[str, str]], sequence: int) -> None:
        results[name] = fanout.publish(Resource.SENSOR_INFOS, value, sequence=sequence)

    newer = threading.Thread(target=publish, args=("newer", [{"sensor_id": "a"}, {"sensor_id": "b"}], 2))
    newer.start()
    assert sink.entered.wait(5.0)
    older = threading.Thread(target=publish, args=("older", [{"sensor_id": "a"}], 1))
    older.start()
    time.sleep(0.05)
    sink.release.set()
    newer.join(5.0)
    older.join(5.0)

    assert results == {"newer": True, "older": False}
    assert len(sink.on("sensor_infos/json")) == 1
    assert _last_list(sink, "sensor_infos/json") == ["a", "b"]


def test_serialization_error_names_the_resource(fanout: FanoutPublisher, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="xbot_monitor.fanout"):
        assert not fanout.publish(Resource.SENSOR_VALUE, object(), key="temp1")

    (record,) = caplog.records
    assert record.exc_info is not None
    assert record.exc_info[1].resource == "sensors/temp1"
