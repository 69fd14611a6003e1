"""Session state machine coordinating the audio session and the timeline."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from audio.errors import AudioSessionError
from audio.session import AudioSession
from audio.voices import VoiceSynthesizer
from story.models import Segment, Story

from .renderer import NullRenderer, Renderer
from .scheduler import TimelineScheduler
from .status import SessionStatus

logger = logging.getLogger(__name__)


class SessionController:
    """Mediates start/stop requests for one story.

    ``idle --start--> playing --(timeline ends)--> finished``; ``stop`` aborts
    a playing run or resets a finished one, and ``start`` on a finished run
    replays it after an implicit reset. Every path back to ``idle`` cancels
    the scheduler and releases the audio session before the status changes.
    """

    def __init__(
        self,
        story: Story,
        session: AudioSession,
        renderer: Optional[Renderer] = None,
        *,
        scheduler: Optional[TimelineScheduler] = None,
        synthesizer: Optional[VoiceSynthesizer] = None,
    ) -> None:
        self.story = story
        self.session = session
        self.renderer: Renderer = renderer or NullRenderer()
        self.scheduler = scheduler or TimelineScheduler()
        self.synthesizer = synthesizer or VoiceSynthesizer()
        self._status = SessionStatus.IDLE
        self._visible: List[str] = []
        self._active: Optional[str] = None
        self._elapsed_ms = 0
        self._generation = 0
        self._run_ended = asyncio.Event()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def visible_segments(self) -> List[str]:
        return list(self._visible)

    @property
    def active_segment(self) -> Optional[str]:
        return self._active

    @property
    def can_start(self) -> bool:
        return self._status is not SessionStatus.PLAYING

    @property
    def can_stop(self) -> bool:
        return self._status is not SessionStatus.IDLE

    def snapshot(self) -> Dict[str, object]:
        return {
            "status": self._status.value,
            "elapsed_ms": self._elapsed_ms,
            "total_ms": self.story.total_duration_ms,
            "visible_segments": list(self._visible),
            "active_segment": self._active,
            "pending_events": self.scheduler.pending_count,
            "audio_active": self.session.is_active,
            "live_voices": len(self.synthesizer.live_voices),
        }

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        """Begin playback; returns ``False`` when already playing.

        Raises :class:`~audio.errors.AudioSessionError` if the audio backend
        cannot be acquired, after returning to ``idle``.
        """

        if self._status is SessionStatus.PLAYING:
            logger.debug("start() ignored while playing")
            return False
        if self._status is SessionStatus.FINISHED:
            await self._teardown("replay")

        self._generation += 1
        generation = self._generation
        self.scheduler.cancel_all()
        self._clear_progress()
        self.synthesizer.clear_history()
        self._run_ended.clear()
        self._set_status(SessionStatus.PLAYING)

        try:
            handles = await self.session.acquire()
        except AudioSessionError as exc:
            if generation != self._generation:
                logger.debug("Acquisition abandoned after stop(): %s", exc)
                return False
            logger.info("Playback could not start: %s", exc)
            self._generation += 1
            await self.session.release()
            self._set_status(SessionStatus.IDLE)
            self._run_ended.set()
            raise

        if generation != self._generation:
            # stop() won while the backend was being acquired
            if self._status is SessionStatus.IDLE:
                await self.session.release()
            return False

        self.session.ambient.begin(handles.backend, handles.master)
        self.scheduler.schedule(self.story, self._on_reveal, self._on_finished, self._on_tick)
        return True

    async def stop(self) -> bool:
        """Abort while playing, reset when finished, no-op when idle."""

        if self._status is SessionStatus.IDLE:
            return False
        await self._teardown("abort" if self._status is SessionStatus.PLAYING else "reset")
        return True

    async def close(self) -> None:
        """Tear everything down regardless of state (owner going away)."""

        await self._teardown("close")

    async def wait_for_run_end(self) -> SessionStatus:
        """Wait until the current run finishes or is torn down."""

        await self._run_ended.wait()
        return self._status

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Timeline callbacks
    # ------------------------------------------------------------------
    def _on_reveal(self, segment: Segment, index: int) -> None:
        if segment.id not in self._visible:
            self._visible.append(segment.id)
        self._active = segment.id
        self.renderer.on_segment_revealed(segment.id, True)
        self._trigger_effects(segment)

    def _on_tick(self, elapsed_ms: int) -> None:
        self._elapsed_ms = elapsed_ms
        self.renderer.on_elapsed_tick(elapsed_ms)

    def _on_finished(self) -> None:
        self._active = None
        self._elapsed_ms = self.story.total_duration_ms
        self._set_status(SessionStatus.FINISHED)
        self._run_ended.set()

    def _trigger_effects(self, segment: Segment) -> None:
        handles = self.session.handles
        if handles is None or not segment.effects:
            return
        self.synthesizer.trigger_many(segment.effects, handles.backend, handles.master)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _teardown(self, reason: str) -> None:
        self._generation += 1
        cancelled = self.scheduler.cancel_all()
        self._clear_progress()
        await self.session.release()
        logger.debug("Teardown (%s) cancelled %s pending events", reason, cancelled)
        self._set_status(SessionStatus.IDLE)
        self._run_ended.set()

    def _clear_progress(self) -> None:
        self._visible = []
        self._active = None
        self._elapsed_ms = 0
        self.renderer.on_elapsed_tick(0)

    def _set_status(self, status: SessionStatus) -> None:
        if status is self._status:
            return
        logger.info("Session %s -> %s", self._status.value, status.value)
        self._status = status
        self.renderer.on_status_change(status)


__all__ = ["SessionController"]
