"""Custom exception hierarchy for xbot_monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base exception for all xbot_monitor errors."""


class MonitorConfigError(MonitorError):
    """Invalid or missing configuration."""


class SerializationError(MonitorError):
    """A value could not be converted into its wire forms."""

    def __init__(self, message: str, *, resource: str = "") -> None:
        self.resource = resource
        super().__init__(message)


class SinkError(MonitorError):
    """Push sink failure (broker unreachable, client disconnected)."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class SinkConnectError(SinkError):
    """The push sink client could not be created or connected at startup.

    This is the only fatal condition of the bridge: the CLI exits
    immediately when it is raised.
    """
