"""Deferred reveal events and the elapsed-time ticker for one story run."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import partial
import logging
from typing import Any, Callable, List, Optional, Protocol

from story.models import Segment, Story

logger = logging.getLogger(__name__)

RevealCallback = Callable[[Segment, int], None]
TickCallback = Callable[[int], None]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class LoopLike(Protocol):
    """The subset of :class:`asyncio.AbstractEventLoop` the scheduler uses."""

    def time(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class CancellationToken:
    """Guards one deferred callback.

    Cancelling cancels the loop handle and also turns the wrapped callback
    into a no-op, so a callback the loop already queued cannot fire late.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.cancelled = False
        self.fired = False
        self._handle: Optional[TimerHandle] = None

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"<CancellationToken {self.label} {state}>"

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def bind(self, handle: TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def wrap(self, callback: Callable[[], None]) -> Callable[[], None]:
        def run() -> None:
            if not self.pending:
                return
            self.fired = True
            callback()

        return run


@dataclass
class TimelineRun:
    """One playback attempt: its start time and outstanding tokens."""

    story: Story
    started_at: float
    tokens: List[CancellationToken] = field(default_factory=list)
    ticker: Optional[CancellationToken] = None
    finished: bool = False
    cancelled: bool = False

    def pending_tokens(self) -> List[CancellationToken]:
        pending = [token for token in self.tokens if token.pending]
        if self.ticker is not None and not self.ticker.cancelled:
            pending.append(self.ticker)
        return pending

    @property
    def pending_count(self) -> int:
        return len(self.pending_tokens())

    def elapsed_ms(self, now: float) -> int:
        elapsed = int(round((now - self.started_at) * 1000.0))
        return max(0, min(elapsed, self.story.total_duration_ms))


class TimelineScheduler:
    """Turns "playback started now" into deferred reveal and finish events.

    ``loop`` may be any object offering ``time()`` and ``call_later()``;
    the running asyncio loop is used when omitted.
    """

    def __init__(self, loop: Optional[LoopLike] = None, *, tick_interval: float = 0.12) -> None:
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self._loop = loop
        self.tick_interval = tick_interval
        self._run: Optional[TimelineRun] = None

    @property
    def run(self) -> Optional[TimelineRun]:
        return self._run

    @property
    def pending_count(self) -> int:
        return self._run.pending_count if self._run is not None else 0

    def _resolve_loop(self) -> LoopLike:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def schedule(
        self,
        story: Story,
        on_reveal: RevealCallback,
        on_finished: Callable[[], None],
        on_tick: Optional[TickCallback] = None,
    ) -> TimelineRun:
        """Reveal segment 0 now and defer every later segment to its offset."""

        self.cancel_all()
        loop = self._resolve_loop()
        run = TimelineRun(story=story, started_at=loop.time())
        self._run = run

        if on_tick is not None:
            self._arm_ticker(loop, run, on_tick)

        offsets = story.offsets_ms()
        for index in range(1, len(story.segments)):
            segment = story.segments[index]
            token = CancellationToken(f"reveal:{segment.id}")
            callback = partial(self._fire_segment, loop, run, index, on_reveal, on_finished, on_tick)
            token.bind(loop.call_later(offsets[index] / 1000.0, token.wrap(callback)))
            run.tokens.append(token)
        logger.debug(
            "Scheduled %s deferred reveals over %sms", len(run.tokens), story.total_duration_ms
        )

        on_reveal(story.segments[0], 0)
        if len(story.segments) == 1 and not run.cancelled:
            self._arm_finish(loop, run, story.segments[0], on_finished, on_tick)
        return run

    def cancel_all(self) -> int:
        """Invalidate every pending callback of the current run."""

        run = self._run
        if run is None:
            return 0
        pending = run.pending_tokens()
        for token in run.tokens:
            token.cancel()
        if run.ticker is not None:
            run.ticker.cancel()
        run.cancelled = True
        if pending:
            logger.debug("Cancelled %s pending timeline callbacks", len(pending))
        return len(pending)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fire_segment(
        self,
        loop: LoopLike,
        run: TimelineRun,
        index: int,
        on_reveal: RevealCallback,
        on_finished: Callable[[], None],
        on_tick: Optional[TickCallback],
    ) -> None:
        segment = run.story.segments[index]
        on_reveal(segment, index)
        if index == len(run.story.segments) - 1 and not run.cancelled:
            self._arm_finish(loop, run, segment, on_finished, on_tick)

    def _arm_finish(
        self,
        loop: LoopLike,
        run: TimelineRun,
        last: Segment,
        on_finished: Callable[[], None],
        on_tick: Optional[TickCallback],
    ) -> None:
        def finish() -> None:
            run.finished = True
            if run.ticker is not None:
                run.ticker.cancel()
            if on_tick is not None:
                on_tick(run.story.total_duration_ms)
            on_finished()

        token = CancellationToken("finished")
        token.bind(loop.call_later(last.duration_ms / 1000.0, token.wrap(finish)))
        run.tokens.append(token)

    def _arm_ticker(self, loop: LoopLike, run: TimelineRun, on_tick: TickCallback) -> None:
        token = CancellationToken("elapsed")
        run.ticker = token

        def tick() -> None:
            if token.cancelled:
                return
            on_tick(run.elapsed_ms(loop.time()))
            if not token.cancelled:
                token.bind(loop.call_later(self.tick_interval, tick))

        token.bind(loop.call_later(self.tick_interval, tick))


__all__ = [
    "CancellationToken",
    "LoopLike",
    "TimelineRun",
    "TimelineScheduler",
]
