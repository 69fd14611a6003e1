"""Audio backend capability interface and its numpy graph implementation."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol, Set
import weakref

import numpy as np

from .engine import EngineConfig
from .errors import InvalidStateError
from .nodes import (
    AudioNode,
    AudioParam,
    BiquadFilterNode,
    BufferSourceNode,
    DestinationNode,
    GainNode,
    OscillatorNode,
    RenderBlock,
    SourceNode,
    Target,
    walk_upstream,
)
from .outputs import AudioOutput, HeadlessOutput, SoundDeviceOutput

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


class AudioBackend(Protocol):
    """Capabilities the voice synthesizer and ambient bed rely on."""

    sample_rate: int

    @property
    def current_time(self) -> float:
        ...

    @property
    def state(self) -> str:
        ...

    @property
    def destination(self) -> AudioNode:
        ...

    def create_oscillator(self, waveform: str = "sine", frequency: float = 440.0) -> OscillatorNode:
        ...

    def create_buffer_source(self, buffer: np.ndarray, *, loop: bool = False) -> BufferSourceNode:
        ...

    def create_filter(
        self, filter_type: str = "lowpass", frequency: float = 350.0, q: float = 0.7071
    ) -> BiquadFilterNode:
        ...

    def create_gain(self, value: float = 1.0) -> GainNode:
        ...

    def connect(self, source: AudioNode, target: Target) -> Target:
        ...

    def schedule_ramp(
        self, param: AudioParam, value: float, at_time: float, curve: str = "linear"
    ) -> None:
        ...

    async def resume(self) -> None:
        ...

    async def suspend(self) -> None:
        ...

    async def close(self) -> None:
        ...


def _call_now(callback: Callable[[], None]) -> None:
    callback()


class GraphBackend:
    """Block renderer over a node graph with its own sample clock.

    The clock only advances while rendering, so envelope breakpoints scheduled
    at ``current_time + offset`` land on exact frames no matter how late the
    event loop delivered the trigger. All graph mutation and rendering happen
    under one re-entrant lock because realtime outputs render on their own
    thread.
    """

    def __init__(self, config: EngineConfig, *, output: Optional[AudioOutput] = None) -> None:
        self.config = config
        self.sample_rate = config.sample_rate
        self._output = output
        self._lock = threading.RLock()
        self._state = "suspended"
        self._frames_rendered = 0
        self._block_index = 0
        self._destination = DestinationNode(self, label="destination")
        self._sources: Set[SourceNode] = set()
        self._nodes: "weakref.WeakSet[AudioNode]" = weakref.WeakSet()
        self._dispatch: Dispatcher = _call_now

    # ------------------------------------------------------------------
    # Clock and lifecycle
    # ------------------------------------------------------------------
    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def state(self) -> str:
        return self._state

    @property
    def output(self) -> Optional[AudioOutput]:
        return self._output

    @property
    def current_time(self) -> float:
        return self._frames_rendered / float(self.sample_rate)

    @property
    def frames_rendered(self) -> int:
        return self._frames_rendered

    @property
    def destination(self) -> DestinationNode:
        return self._destination

    def set_dispatcher(self, dispatcher: Optional[Dispatcher]) -> None:
        """Route ``on_ended`` callbacks, e.g. back onto the event loop thread."""

        self._dispatch = dispatcher or _call_now

    async def resume(self) -> None:
        if self._state == "closed":
            raise InvalidStateError("Cannot resume a closed backend")
        if self._state == "running":
            return
        if self._output is not None:
            await self._output.start(self)
        self._state = "running"
        logger.debug("Backend running at %s Hz (output=%s)", self.sample_rate, self.config.output)

    async def suspend(self) -> None:
        if self._state != "running":
            return
        if self._output is not None:
            await self._output.stop()
        self._state = "suspended"
        logger.debug("Backend suspended at %.3fs", self.current_time)

    async def close(self) -> None:
        """Stop output, end every source and drop all connections."""

        if self._state == "closed":
            return
        if self._output is not None and self._state == "running":
            await self._output.stop()
        with self._lock:
            self._state = "closed"
            ended = list(self._sources)
            self._sources.clear()
            for source in ended:
                source.finish()
        for source in ended:
            source.fire_ended()
        with self._lock:
            for node in list(self._nodes):
                node.disconnect()
        logger.debug("Backend closed after %.3fs (%s sources ended)", self.current_time, len(ended))

    # ------------------------------------------------------------------
    # Capability set
    # ------------------------------------------------------------------
    def _register(self, node: AudioNode) -> None:
        if self._state == "closed":
            raise InvalidStateError("Cannot create nodes on a closed backend")
        self._nodes.add(node)

    def register_source(self, source: SourceNode) -> None:
        if self._state == "closed":
            raise InvalidStateError("Cannot start sources on a closed backend")
        self._sources.add(source)

    def create_oscillator(self, waveform: str = "sine", frequency: float = 440.0) -> OscillatorNode:
        node = OscillatorNode(self, waveform, frequency, label=f"{waveform}@{frequency:g}")
        self._register(node)
        return node

    def create_buffer_source(self, buffer: np.ndarray, *, loop: bool = False) -> BufferSourceNode:
        node = BufferSourceNode(self, buffer, loop=loop, label="noise" if not loop else "noise-loop")
        self._register(node)
        return node

    def create_filter(
        self, filter_type: str = "lowpass", frequency: float = 350.0, q: float = 0.7071
    ) -> BiquadFilterNode:
        node = BiquadFilterNode(self, filter_type, frequency, q, label=f"{filter_type}@{frequency:g}")
        self._register(node)
        return node

    def create_gain(self, value: float = 1.0) -> GainNode:
        node = GainNode(self, value)
        self._register(node)
        return node

    def connect(self, source: AudioNode, target: Target) -> Target:
        with self._lock:
            return source.connect(target)

    def schedule_ramp(
        self, param: AudioParam, value: float, at_time: float, curve: str = "linear"
    ) -> None:
        with self._lock:
            param.automation.schedule(at_time, value, curve)

    # ------------------------------------------------------------------
    # Rendering and inspection
    # ------------------------------------------------------------------
    def render(self, frames: int) -> np.ndarray:
        """Pull *frames* through the graph, returning ``(frames, channels)`` float32."""

        channels = self.config.channels
        if frames <= 0:
            return np.zeros((0, channels), dtype=np.float32)
        with self._lock:
            if self._state != "running":
                return np.zeros((frames, channels), dtype=np.float32)
            block = RenderBlock(
                index=self._block_index,
                start_frame=self._frames_rendered,
                frames=frames,
                sample_rate=self.sample_rate,
            )
            mono = self._destination.render(block)
            self._frames_rendered += frames
            self._block_index += 1
            ended = [source for source in self._sources if source.poll_ended(block.end_time)]
            for source in ended:
                self._sources.discard(source)
        for source in ended:
            self._dispatch(source.fire_ended)
        stereo = np.repeat(mono[:, None], channels, axis=1)
        return np.clip(stereo, -1.0, 1.0).astype(np.float32)

    def render_seconds(self, seconds: float) -> np.ndarray:
        total = max(0, int(round(seconds * self.sample_rate)))
        buffers: List[np.ndarray] = []
        remaining = total
        while remaining > 0:
            frames = min(remaining, self.config.block_size)
            buffers.append(self.render(frames))
            remaining -= frames
        if not buffers:
            return np.zeros((0, self.config.channels), dtype=np.float32)
        return np.vstack(buffers)

    def connected_nodes(self) -> List[AudioNode]:
        """Nodes currently able to contribute audio to the destination."""

        with self._lock:
            return walk_upstream(self._destination)

    def active_sources(self) -> List[SourceNode]:
        with self._lock:
            return list(self._sources)


def create_backend(config: EngineConfig) -> GraphBackend:
    """Build a backend for ``config.output``.

    Raises :class:`~audio.errors.UnsupportedBackend` when the requested output
    is not available in this runtime.
    """

    output: Optional[AudioOutput]
    if config.output == "sounddevice":
        output = SoundDeviceOutput.probe()
    elif config.output == "headless":
        output = HeadlessOutput()
    else:
        output = None
    return GraphBackend(config, output=output)


__all__ = ["AudioBackend", "GraphBackend", "create_backend"]
