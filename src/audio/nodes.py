"""Pull-based audio graph nodes rendered in blocks against a sample clock."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Callable, List, Optional, Protocol, Sequence, Union

import numpy as np

from .engine import AutomationTimeline
from .errors import InvalidStateError

logger = logging.getLogger(__name__)

WAVEFORMS = ("sine", "sawtooth", "triangle", "square")
FILTER_KINDS = ("lowpass", "highpass", "bandpass")


class NodeContext(Protocol):
    """What nodes need from the backend that owns them."""

    sample_rate: int

    @property
    def current_time(self) -> float:
        ...

    @property
    def lock(self):  # threading.RLock
        ...

    def register_source(self, source: "SourceNode") -> None:
        ...


@dataclass(frozen=True)
class RenderBlock:
    """One block of frames pulled through the graph."""

    index: int
    start_frame: int
    frames: int
    sample_rate: int

    @property
    def start_time(self) -> float:
        return self.start_frame / float(self.sample_rate)

    @property
    def end_time(self) -> float:
        return (self.start_frame + self.frames) / float(self.sample_rate)

    def times(self) -> np.ndarray:
        return (self.start_frame + np.arange(self.frames, dtype=np.float64)) / self.sample_rate


class AudioParam:
    """Automatable parameter with optional audio-rate modulation inputs."""

    def __init__(self, context: NodeContext, name: str, value: float) -> None:
        self._context = context
        self.name = name
        self.default = float(value)
        self.automation = AutomationTimeline()
        self._inputs: List["AudioNode"] = []

    @property
    def inputs(self) -> List["AudioNode"]:
        return list(self._inputs)

    def value_at(self, time_seconds: float) -> float:
        return self.automation.value_at(time_seconds, self.default)

    def values(self, block: RenderBlock) -> np.ndarray:
        values = self.automation.values(block.times(), self.default)
        for node in self._inputs:
            values = values + node.render(block)
        return values

    def _attach(self, node: "AudioNode") -> None:
        if node not in self._inputs:
            self._inputs.append(node)

    def _detach(self, node: "AudioNode") -> None:
        if node in self._inputs:
            self._inputs.remove(node)


Target = Union["AudioNode", AudioParam]


class AudioNode:
    """Base node: mixes its inputs and caches the block it last rendered."""

    kind = "node"

    def __init__(self, context: NodeContext, label: str = "") -> None:
        self._context = context
        self.label = label or self.kind
        self._inputs: List[AudioNode] = []
        self._targets: List[Target] = []
        self._cached_index = -1
        self._cached: Optional[np.ndarray] = None

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<{type(self).__name__} {self.label}>"

    @property
    def inputs(self) -> List["AudioNode"]:
        return list(self._inputs)

    @property
    def targets(self) -> List[Target]:
        return list(self._targets)

    def params(self) -> Sequence[AudioParam]:
        return ()

    def connect(self, target: Target) -> Target:
        with self._context.lock:
            if isinstance(target, AudioParam):
                target._attach(self)
            elif self not in target._inputs:
                target._inputs.append(self)
            if not any(existing is target for existing in self._targets):
                self._targets.append(target)
        return target

    def disconnect(self) -> None:
        """Detach this node from every target it feeds."""

        with self._context.lock:
            for target in self._targets:
                if isinstance(target, AudioParam):
                    target._detach(self)
                elif self in target._inputs:
                    target._inputs.remove(self)
            self._targets.clear()

    def render(self, block: RenderBlock) -> np.ndarray:
        if self._cached_index != block.index or self._cached is None:
            self._cached = self._process(block)
            self._cached_index = block.index
        return self._cached

    def _mix_inputs(self, block: RenderBlock) -> np.ndarray:
        mixed = np.zeros(block.frames, dtype=np.float64)
        for node in self._inputs:
            mixed += node.render(block)
        return mixed

    def _process(self, block: RenderBlock) -> np.ndarray:
        return self._mix_inputs(block)


class DestinationNode(AudioNode):
    """Terminal node of a backend graph."""

    kind = "destination"


class GainNode(AudioNode):
    kind = "gain"

    def __init__(self, context: NodeContext, value: float = 1.0, label: str = "") -> None:
        super().__init__(context, label)
        self.gain = AudioParam(context, "gain", value)

    def params(self) -> Sequence[AudioParam]:
        return (self.gain,)

    def _process(self, block: RenderBlock) -> np.ndarray:
        return self._mix_inputs(block) * self.gain.values(block)


class BiquadFilterNode(AudioNode):
    """Second-order filter using the RBJ cookbook coefficients."""

    kind = "biquad"

    def __init__(
        self,
        context: NodeContext,
        filter_type: str = "lowpass",
        frequency: float = 350.0,
        q: float = 0.7071,
        label: str = "",
    ) -> None:
        if filter_type not in FILTER_KINDS:
            raise ValueError(f"Unknown filter type {filter_type!r}")
        super().__init__(context, label)
        self.filter_type = filter_type
        self.frequency = AudioParam(context, "frequency", frequency)
        self.q = AudioParam(context, "q", q)
        self._z1 = 0.0
        self._z2 = 0.0

    def params(self) -> Sequence[AudioParam]:
        return (self.frequency, self.q)

    def coefficients(self, frequency: float, q: float) -> tuple[float, float, float, float, float]:
        nyquist = self._context.sample_rate / 2.0
        frequency = min(max(frequency, 10.0), nyquist * 0.99)
        q = max(q, 1e-4)
        w0 = 2.0 * math.pi * frequency / self._context.sample_rate
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * q)
        if self.filter_type == "lowpass":
            b0, b1, b2 = (1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0
        elif self.filter_type == "highpass":
            b0, b1, b2 = (1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0
        else:
            b0, b1, b2 = alpha, 0.0, -alpha
        a0 = 1.0 + alpha
        return b0 / a0, b1 / a0, b2 / a0, (-2.0 * cos_w0) / a0, (1.0 - alpha) / a0

    def _process(self, block: RenderBlock) -> np.ndarray:
        dry = self._mix_inputs(block)
        start = block.start_time
        b0, b1, b2, a1, a2 = self.coefficients(
            self.frequency.value_at(start), self.q.value_at(start)
        )
        output = np.empty_like(dry)
        z1, z2 = self._z1, self._z2
        for idx, sample in enumerate(dry):
            y = b0 * sample + z1
            z1 = b1 * sample + z2 - a1 * y
            z2 = b2 * sample - a2 * y
            output[idx] = y
        self._z1, self._z2 = z1, z2
        return output


class SourceNode(AudioNode):
    """Node with a start/stop lifecycle and a one-shot ``on_ended`` callback."""

    kind = "source"

    def __init__(self, context: NodeContext, label: str = "") -> None:
        super().__init__(context, label)
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self.on_ended: Optional[Callable[["SourceNode"], None]] = None
        self._ended = False
        self._ended_fired = False

    @property
    def started(self) -> bool:
        return self.start_time is not None

    @property
    def ended(self) -> bool:
        return self._ended

    def start(self, when: Optional[float] = None) -> None:
        with self._context.lock:
            if self.start_time is not None:
                raise InvalidStateError(f"{self.label} was already started")
            self.start_time = self._context.current_time if when is None else float(when)
            self._context.register_source(self)

    def stop(self, when: Optional[float] = None) -> None:
        with self._context.lock:
            if self.start_time is None:
                raise InvalidStateError(f"{self.label} was never started")
            if self.stop_time is not None or self._ended:
                raise InvalidStateError(f"{self.label} was already stopped")
            stop_at = self._context.current_time if when is None else float(when)
            self.stop_time = max(stop_at, self.start_time)

    def poll_ended(self, block_end_time: float) -> bool:
        """Mark the source ended once its lifetime is behind *block_end_time*."""

        if self._ended or self.start_time is None:
            return False
        end = self._natural_end()
        if self.stop_time is not None:
            end = self.stop_time if end is None else min(end, self.stop_time)
        if end is not None and block_end_time >= end:
            self._ended = True
            return True
        return False

    def finish(self) -> None:
        """End the source immediately (backend teardown)."""

        self._ended = True
        if self.stop_time is None:
            self.stop_time = self._context.current_time

    def fire_ended(self) -> None:
        if self._ended_fired:
            return
        self._ended_fired = True
        callback = self.on_ended
        if callback is not None:
            callback(self)

    def _natural_end(self) -> Optional[float]:
        return None

    def _active_mask(self, times: np.ndarray) -> np.ndarray:
        if self.start_time is None:
            return np.zeros(times.shape, dtype=bool)
        mask = times >= self.start_time
        if self.stop_time is not None:
            mask &= times < self.stop_time
        return mask


class OscillatorNode(SourceNode):
    kind = "oscillator"

    def __init__(
        self,
        context: NodeContext,
        waveform: str = "sine",
        frequency: float = 440.0,
        label: str = "",
    ) -> None:
        if waveform not in WAVEFORMS:
            raise ValueError(f"Unknown waveform {waveform!r}")
        super().__init__(context, label)
        self.waveform = waveform
        self.frequency = AudioParam(context, "frequency", frequency)
        self._phase = 0.0

    def params(self) -> Sequence[AudioParam]:
        return (self.frequency,)

    def _process(self, block: RenderBlock) -> np.ndarray:
        times = block.times()
        mask = self._active_mask(times)
        if not mask.any():
            return np.zeros(block.frames, dtype=np.float64)
        increments = self.frequency.values(block) / block.sample_rate
        phases = self._phase + np.cumsum(increments) - increments
        self._phase = float((phases[-1] + increments[-1]) % 1.0)
        cycle = phases % 1.0
        if self.waveform == "sine":
            wave = np.sin(2.0 * math.pi * cycle)
        elif self.waveform == "sawtooth":
            wave = 2.0 * cycle - 1.0
        elif self.waveform == "triangle":
            wave = 1.0 - 4.0 * np.abs((cycle + 0.25) % 1.0 - 0.5)
        else:
            wave = np.where(cycle < 0.5, 1.0, -1.0)
        return np.where(mask, wave, 0.0)


class BufferSourceNode(SourceNode):
    """Plays a mono sample buffer once or in a loop."""

    kind = "buffer_source"

    def __init__(
        self,
        context: NodeContext,
        buffer: np.ndarray,
        *,
        loop: bool = False,
        label: str = "",
    ) -> None:
        super().__init__(context, label)
        samples = np.asarray(buffer, dtype=np.float64)
        if samples.ndim != 1:
            raise ValueError("Buffer sources expect mono buffers")
        self.buffer = samples
        self.loop = loop

    @property
    def duration(self) -> float:
        return self.buffer.shape[0] / float(self._context.sample_rate)

    def _natural_end(self) -> Optional[float]:
        if self.loop or self.start_time is None:
            return None
        return self.start_time + self.duration

    def _process(self, block: RenderBlock) -> np.ndarray:
        output = np.zeros(block.frames, dtype=np.float64)
        length = self.buffer.shape[0]
        if self.start_time is None or length == 0:
            return output
        mask = self._active_mask(block.times())
        start_frame = int(round(self.start_time * block.sample_rate))
        positions = block.start_frame + np.arange(block.frames) - start_frame
        mask &= positions >= 0
        if self.loop:
            positions = positions % length
        else:
            mask &= positions < length
        output[mask] = self.buffer[positions[mask]]
        return output


def walk_upstream(root: AudioNode) -> List[AudioNode]:
    """Return every node feeding *root*, directly or through parameters."""

    seen: List[AudioNode] = []
    stack: List[AudioNode] = list(root.inputs)
    for param in root.params():
        stack.extend(param.inputs)
    while stack:
        node = stack.pop()
        if any(existing is node for existing in seen):
            continue
        seen.append(node)
        stack.extend(node.inputs)
        for param in node.params():
            stack.extend(param.inputs)
    return seen


__all__ = [
    "AudioNode",
    "AudioParam",
    "BiquadFilterNode",
    "BufferSourceNode",
    "DestinationNode",
    "FILTER_KINDS",
    "GainNode",
    "NodeContext",
    "OscillatorNode",
    "RenderBlock",
    "SourceNode",
    "WAVEFORMS",
    "walk_upstream",
]
