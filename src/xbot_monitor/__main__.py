"""Command line entry point: ``python -m xbot_monitor``."""

from __future__ import annotations

import argparse
import importlib
import logging
import signal
import sys
import threading
from collections.abc import Callable, Sequence
from typing import Any

from xbot_monitor.bus import MessageBus
from xbot_monitor.config import MonitorConfig
from xbot_monitor.exceptions import MonitorConfigError, SinkConnectError
from xbot_monitor.monitor import XbotMonitor

_LOG = logging.getLogger("xbot_monitor")


def load_bus_factory(target: str) -> Callable[[], MessageBus]:
    """Resolve a ``module:attribute`` bus factory."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise MonitorConfigError(f"bus factory must look like 'module:attribute', got {target!r}")
    try:
        module = importlib.import_module(module_name)
        factory: Callable[[], MessageBus] = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise MonitorConfigError(f"cannot load bus factory {target!r}: {exc}") from exc
    return factory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xbot-monitor",
        description="Bridge robot sensors, status and map to MQTT and an HTTP pull interface",
    )
    parser.add_argument("--bus", default="xbot_monitor.bus:LocalBus", help="Bus factory as module:attribute")
    parser.add_argument("--mqtt-host", help="MQTT broker host")
    parser.add_argument("--mqtt-port", type=int, help="MQTT broker port")
    parser.add_argument("--no-mqtt", action="store_true", help="Serve the pull interface only")
    parser.add_argument("--http-host", help="Pull interface bind address")
    parser.add_argument("--http-port", type=int, help="Pull interface port")
    parser.add_argument("--no-http", action="store_true", help="Disable the pull interface")
    parser.add_argument("--topic-prefix", help="Prefix for every MQTT topic")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level",
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field_name in ("mqtt_host", "mqtt_port", "http_host", "http_port", "topic_prefix"):
        value = getattr(args, field_name)
        if value is not None:
            overrides[field_name] = value
    if args.no_mqtt:
        overrides["mqtt_enabled"] = False
    if args.no_http:
        overrides["http_enabled"] = False
    return overrides


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = MonitorConfig.from_env(**_overrides(args))
        bus = load_bus_factory(args.bus)()
    except MonitorConfigError as exc:
        _LOG.error("%s", exc)
        return 2

    stop = threading.Event()

    def stop_handler(signum: int, _frame: Any) -> None:
        _LOG.info("Received signal %s, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)

    monitor = XbotMonitor(config, bus)
    try:
        monitor.start()
    except SinkConnectError as exc:
        _LOG.error("%s", exc)
        monitor.stop()
        return 1

    try:
        while not stop.wait(1.0):
            pass
    finally:
        monitor.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
