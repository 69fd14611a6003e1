"""Output drivers that pull blocks from a :class:`~audio.backend.GraphBackend`."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, List, Optional, Protocol

import numpy as np

from .errors import UnsupportedBackend

try:  # pragma: no cover - optional dependency
    import sounddevice as sd
except (ImportError, OSError):  # pragma: no cover - missing wheel or PortAudio
    sd = None  # type: ignore

if TYPE_CHECKING:  # pragma: no cover
    from .backend import GraphBackend

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    """Drives rendering while the backend is running."""

    async def start(self, backend: "GraphBackend") -> None:
        ...

    async def stop(self) -> None:
        ...


class HeadlessOutput:
    """Renders blocks paced by the event-loop clock without an audio device.

    Useful on machines without sound hardware: the soundscape is still
    synthesized in real time and the most recent ``max_capture_seconds`` are
    kept for inspection.
    """

    def __init__(self, *, max_capture_seconds: Optional[float] = 120.0) -> None:
        self.max_capture_seconds = max_capture_seconds
        self._task: Optional[asyncio.Task] = None
        self._captured: List[np.ndarray] = []
        self._captured_frames = 0
        self._sample_rate = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, backend: "GraphBackend") -> None:
        if self.running:
            return
        self._sample_rate = backend.sample_rate
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._pump(backend))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def captured(self) -> np.ndarray:
        if not self._captured:
            return np.zeros((0, 1), dtype=np.float32)
        return np.vstack(self._captured)

    async def _pump(self, backend: "GraphBackend") -> None:
        loop = asyncio.get_running_loop()
        block = backend.config.block_size
        started = loop.time()
        rendered = 0
        while True:
            due = int((loop.time() - started) * backend.sample_rate)
            while rendered + block <= due:
                self._capture(backend.render(block))
                rendered += block
            await asyncio.sleep(block / float(backend.sample_rate))

    def _capture(self, buffer: np.ndarray) -> None:
        self._captured.append(buffer)
        self._captured_frames += buffer.shape[0]
        if self.max_capture_seconds is None:
            return
        limit = int(self.max_capture_seconds * self._sample_rate)
        while self._captured and self._captured_frames - self._captured[0].shape[0] >= limit:
            self._captured_frames -= self._captured.pop(0).shape[0]


class SoundDeviceOutput:  # pragma: no cover - requires audio hardware
    """Realtime stream through PortAudio via ``sounddevice``."""

    def __init__(self) -> None:
        self._stream = None

    @classmethod
    def probe(cls) -> "SoundDeviceOutput":
        """Return an output, or raise :class:`UnsupportedBackend` if none exists."""

        if sd is None:
            raise UnsupportedBackend(
                "Realtime playback requires the 'sounddevice' package and PortAudio."
            )
        try:
            sd.query_devices(kind="output")
        except Exception as exc:
            raise UnsupportedBackend(f"No audio output device available: {exc}") from exc
        return cls()

    async def start(self, backend: "GraphBackend") -> None:
        if self._stream is not None:
            return
        loop = asyncio.get_running_loop()
        backend.set_dispatcher(loop.call_soon_threadsafe)

        def callback(outdata, frames, time_info, status):
            if status:
                logger.debug("Output stream status: %s", status)
            outdata[:] = backend.render(frames)

        stream = sd.OutputStream(
            samplerate=backend.sample_rate,
            blocksize=backend.config.block_size,
            channels=backend.config.channels,
            dtype="float32",
            callback=callback,
        )
        stream.start()
        self._stream = stream
        logger.debug("Opened output stream (%s Hz, block=%s)", backend.sample_rate, backend.config.block_size)

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.stop()
        stream.close()
        logger.debug("Closed output stream")


__all__ = ["AudioOutput", "HeadlessOutput", "SoundDeviceOutput"]
