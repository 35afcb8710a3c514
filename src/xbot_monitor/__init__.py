"""xbot_monitor - bridge a robot message bus to MQTT and an HTTP pull interface."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("xbot-monitor")
except PackageNotFoundError:
    __version__ = "0+local"
from xbot_monitor._constants import Resource
from xbot_monitor.actions import ActionRegistry
from xbot_monitor.bus import LocalBus, MessageBus
from xbot_monitor.cache import CacheEntry, SnapshotCache
from xbot_monitor.config import MonitorConfig
from xbot_monitor.discovery import DiscoveryLoop
from xbot_monitor.exceptions import (
    MonitorConfigError,
    MonitorError,
    SerializationError,
    SinkConnectError,
    SinkError,
)
from xbot_monitor.fanout import FanoutPublisher
from xbot_monitor.models import (
    ActionInfo,
    Map,
    MapOverlay,
    RobotState,
    SensorInfo,
    TeleopCommand,
    ValueDescription,
    ValueType,
    VelocityCommand,
)
from xbot_monitor.monitor import XbotMonitor
from xbot_monitor.mqtt import MqttPushSink, NullPushSink, PushSink
from xbot_monitor.pull import PullInterface, PullServer
from xbot_monitor.registry import SubscriptionRecord, SubscriptionRegistry, SubscriptionState
from xbot_monitor.serializer import WireCodec, WirePayload

__all__ = [
    "__version__",
    "ActionInfo",
    "ActionRegistry",
    "CacheEntry",
    "DiscoveryLoop",
    "FanoutPublisher",
    "LocalBus",
    "Map",
    "MapOverlay",
    "MessageBus",
    "MonitorConfig",
    "MonitorConfigError",
    "MonitorError",
    "MqttPushSink",
    "NullPushSink",
    "PullInterface",
    "PullServer",
    "PushSink",
    "Resource",
    "RobotState",
    "SensorInfo",
    "SerializationError",
    "SinkConnectError",
    "SinkError",
    "SnapshotCache",
    "SubscriptionRecord",
    "SubscriptionRegistry",
    "SubscriptionState",
    "TeleopCommand",
    "ValueDescription",
    "ValueType",
    "VelocityCommand",
    "WireCodec",
    "WirePayload",
    "XbotMonitor",
]
