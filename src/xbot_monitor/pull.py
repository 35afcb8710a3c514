"""Pull interface: HTTP read access to the snapshot cache.

Routes::

    GET  /sensors            sensor metadata list (``[]`` until discovered)
    GET  /sensors/{id}       latest raw value as text, 404 for unknown ids
    GET  /status             robot status (``{}`` until received)
    GET  /map                map (``{}`` until received)
    GET  /map/overlay        map overlay (``{}`` until received)
    GET  /actions            merged action list (``[]`` until registered)
    POST /actions/execute    body is the action id; 202, or 406 when empty

Unknown paths answer 404 and wrong methods 405, both with a JSON body.
The server runs its own asyncio loop on a dedicated thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Awaitable, Callable

from aiohttp import web

from xbot_monitor.cache import SnapshotCache

_logger = logging.getLogger(__name__)

_JSON = "application/json"
_TEXT = "text/plain"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def build_response(status: int, content_type: str, body: str) -> web.Response:
    """Single response builder used by every route and error path."""
    return web.Response(status=status, content_type=content_type, text=body)


def _error(status: int, reason: str) -> web.Response:
    return build_response(status, _JSON, json.dumps({"error": reason}))


@web.middleware
async def _error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException as exc:
        if exc.status < 400:
            raise
        return _error(exc.status, exc.reason)


class PullInterface:
    """Request handlers over a :class:`SnapshotCache`."""

    def __init__(self, cache: SnapshotCache, execute_action: Callable[[str], object]) -> None:
        self._cache = cache
        self._execute_action = execute_action

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[_error_middleware])
        app.router.add_get("/sensors", self.get_sensors)
        app.router.add_get("/sensors/{sensor_id}", self.get_sensor_value)
        app.router.add_get("/status", self.get_status)
        app.router.add_get("/map", self.get_map)
        app.router.add_get("/map/overlay", self.get_map_overlay)
        app.router.add_get("/actions", self.get_actions)
        app.router.add_post("/actions/execute", self.post_execute_action)
        return app

    async def get_sensors(self, request: web.Request) -> web.Response:
        return build_response(200, _JSON, self._cache.sensor_infos())

    async def get_sensor_value(self, request: web.Request) -> web.Response:
        sensor_id = request.match_info["sensor_id"]
        value = self._cache.sensor_value(sensor_id)
        if value is None:
            return _error(404, f"unknown sensor {sensor_id}")
        return build_response(200, _TEXT, value)

    async def get_status(self, request: web.Request) -> web.Response:
        return build_response(200, _JSON, self._cache.robot_state())

    async def get_map(self, request: web.Request) -> web.Response:
        return build_response(200, _JSON, self._cache.map())

    async def get_map_overlay(self, request: web.Request) -> web.Response:
        return build_response(200, _JSON, self._cache.map_overlay())

    async def get_actions(self, request: web.Request) -> web.Response:
        return build_response(200, _JSON, self._cache.actions())

    async def post_execute_action(self, request: web.Request) -> web.Response:
        action_id = (await request.text()).strip()
        if not action_id:
            return _error(406, "action id required")
        # Runs on the default executor: bus publishes call subscribers synchronously.
        await asyncio.get_running_loop().run_in_executor(None, self._execute_action, action_id)
        return build_response(202, _JSON, json.dumps({"accepted": action_id}))


class PullServer:
    """Serve a :class:`PullInterface` from a dedicated event-loop thread."""

    def __init__(self, interface: PullInterface, *, host: str, port: int) -> None:
        self._interface = interface
        self._host = host
        self._port = port
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._startup_error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and self._startup_error is None

    def start(self, timeout: float = 5.0) -> None:
        """Start serving; raises :class:`OSError` if the port cannot be bound."""
        if self._thread is not None:
            return
        self._ready.clear()
        self._startup_error = None
        self._thread = threading.Thread(target=self._run, name="xbot-monitor-http", daemon=True)
        self._thread.start()
        self._ready.wait(timeout)
        if self._startup_error is not None:
            error = self._startup_error
            self._thread.join(timeout)
            self._thread = None
            raise error

    def stop(self, timeout: float = 5.0) -> None:
        loop = self._loop
        thread = self._thread
        self._thread = None
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        runner = web.AppRunner(self._interface.create_app())
        try:
            loop.run_until_complete(runner.setup())
            site = web.TCPSite(runner, self._host, self._port)
            loop.run_until_complete(site.start())
        except OSError as exc:
            _logger.error("Pull interface could not bind %s:%s: %s", self._host, self._port, exc)
            self._startup_error = exc
            loop.run_until_complete(runner.cleanup())
            loop.close()
            self._loop = None
            self._ready.set()
            return

        _logger.info("Pull interface listening on http://%s:%s", self._host, self._port)
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(runner.cleanup())
            loop.close()
            self._loop = None
            _logger.debug("Pull interface stopped")
