import asyncio
import heapq
import itertools
import sys
from pathlib import Path

import pytest

from audio.backend import GraphBackend
from audio.engine import EngineConfig
from story.models import EffectKind, Segment, Story

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class ManualHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualLoop:
    """Virtual-time stand-in for the parts of an event loop the scheduler uses."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._counter = itertools.count()

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = ManualHandle(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            handle.callback(*handle.args)
        self.now = target

    @property
    def pending(self):
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)


@pytest.fixture()
def manual_loop() -> ManualLoop:
    return ManualLoop()


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig(sample_rate=8_000, block_size=256, channels=2, output="manual")


@pytest.fixture()
def backend(engine_config) -> GraphBackend:
    backend = GraphBackend(engine_config)
    asyncio.run(backend.resume())
    return backend


@pytest.fixture()
def scenario_story() -> Story:
    return Story(
        title="Scenario",
        segments=[
            Segment(id="A", text="first", duration_ms=7500, effects=[EffectKind.HEARTBEAT]),
            Segment(id="B", text="second", duration_ms=7000),
            Segment(id="C", text="third", duration_ms=8000, effects=[EffectKind.GUST]),
        ],
    )
