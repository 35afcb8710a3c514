from __future__ import annotations

import pytest

from fakes import RecordingSink
from xbot_monitor.bus import LocalBus
from xbot_monitor.cache import SnapshotCache
from xbot_monitor.fanout import FanoutPublisher


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cache() -> SnapshotCache:
    return SnapshotCache()


@pytest.fixture
def fanout(sink: RecordingSink, cache: SnapshotCache) -> FanoutPublisher:
    return FanoutPublisher(sink, cache)


@pytest.fixture
def bus() -> LocalBus:
    return LocalBus()
