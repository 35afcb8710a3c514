from __future__ import annotations

import json
import socket
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
from aiohttp import ClientSession, test_utils

from xbot_monitor._constants import Resource
from xbot_monitor.cache import SnapshotCache
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.pull import PullInterface, PullServer


class _Executor:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, action_id: str) -> None:
        self.calls.append(action_id)


@asynccontextmanager
async def _client(cache: SnapshotCache, executor: _Executor | None = None) -> AsyncIterator[test_utils.TestClient]:
    interface = PullInterface(cache, executor or _Executor())
    async with test_utils.TestClient(test_utils.TestServer(interface.create_app())) as client:
        yield client


@pytest.mark.asyncio
async def test_defaults_before_first_publish(cache: SnapshotCache) -> None:
    async with _client(cache) as client:
        for path, expected in (
            ("/sensors", "[]"),
            ("/actions", "[]"),
            ("/status", "{}"),
            ("/map", "{}"),
            ("/map/overlay", "{}"),
        ):
            resp = await client.get(path)
            assert resp.status == 200, path
            assert resp.content_type == "application/json"
            assert await resp.text() == expected


@pytest.mark.asyncio
async def test_served_bodies_match_cached_text(cache: SnapshotCache, fanout: FanoutPublisher) -> None:
    fanout.publish(Resource.ROBOT_STATE, {"battery_percentage": 0.7})
    fanout.publish(Resource.MAP, {"docking_pose": {"x": 1.0, "y": 2.0, "heading": 0.0}})

    async with _client(cache) as client:
        status = await client.get("/status")
        map_resp = await client.get("/map")

        assert await status.text() == '{"battery_percentage":0.7}'
        assert json.loads(await map_resp.text())["docking_pose"]["y"] == 2.0


@pytest.mark.asyncio
async def test_sensor_value_is_plain_text(cache: SnapshotCache, fanout: FanoutPublisher) -> None:
    fanout.publish(Resource.SENSOR_VALUE, 23.5, key="temp1")

    async with _client(cache) as client:
        resp = await client.get("/sensors/temp1")

        assert resp.status == 200
        assert resp.content_type == "text/plain"
        assert await resp.text() == "23.5"


@pytest.mark.asyncio
async def test_unknown_sensor_is_404(cache: SnapshotCache) -> None:
    async with _client(cache) as client:
        resp = await client.get("/sensors/nope")

        assert resp.status == 404
        assert "error" in await resp.json()


@pytest.mark.asyncio
async def test_execute_action_is_accepted_and_forwarded(cache: SnapshotCache) -> None:
    executor = _Executor()
    async with _client(cache, executor) as client:
        resp = await client.post("/actions/execute", data="mower_logic/start\n")

        assert resp.status == 202
        assert await resp.json() == {"accepted": "mower_logic/start"}
    assert executor.calls == ["mower_logic/start"]


@pytest.mark.asyncio
async def test_execute_action_runs_off_the_event_loop_thread(cache: SnapshotCache) -> None:
    threads: list[int] = []

    def executor(action_id: str) -> None:
        threads.append(threading.get_ident())

    interface = PullInterface(cache, executor)
    async with test_utils.TestClient(test_utils.TestServer(interface.create_app())) as client:
        resp = await client.post("/actions/execute", data="mower_logic/start")

        assert resp.status == 202
    assert len(threads) == 1
    assert threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_execute_without_body_is_406(cache: SnapshotCache) -> None:
    executor = _Executor()
    async with _client(cache, executor) as client:
        resp = await client.post("/actions/execute", data="")

        assert resp.status == 406
        assert "error" in await resp.json()
    assert executor.calls == []


@pytest.mark.asyncio
async def test_wrong_method_and_unknown_path(cache: SnapshotCache) -> None:
    async with _client(cache) as client:
        get_execute = await client.get("/actions/execute")
        post_sensors = await client.post("/sensors", data="x")
        unknown = await client.get("/does/not/exist")

        assert get_execute.status == 405
        assert post_sensors.status == 405
        assert unknown.status == 404
        assert "error" in await unknown.json()


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.mark.asyncio
async def test_server_thread_serves_and_stops(cache: SnapshotCache) -> None:
    port = _free_port()
    server = PullServer(PullInterface(cache, _Executor()), host="127.0.0.1", port=port)
    server.start()
    try:
        assert server.is_running
        async with ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{port}/sensors") as resp:
                assert resp.status == 200
                assert await resp.text() == "[]"
    finally:
        server.stop()

    assert not server.is_running


def test_server_start_raises_when_port_is_taken(cache: SnapshotCache) -> None:
    with socket.socket() as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = int(blocker.getsockname()[1])
        server = PullServer(PullInterface(cache, _Executor()), host="127.0.0.1", port=port)

        with pytest.raises(OSError):
            server.start()
