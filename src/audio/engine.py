"""Engine configuration and sample-accurate parameter automation."""
from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import itertools
from typing import List

import numpy as np

OUTPUT_KINDS = ("sounddevice", "headless", "manual")
CURVES = ("set", "linear", "exponential")


@dataclass
class EngineConfig:
    """Global audio configuration shared by the session, bed and voices."""

    sample_rate: int = 48_000
    block_size: int = 512
    channels: int = 2
    output: str = "sounddevice"
    master_gain: float = 0.6
    acquire_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.output not in OUTPUT_KINDS:
            raise ValueError(f"Unknown output {self.output!r}; expected one of {OUTPUT_KINDS}")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.block_size <= 0:
            raise ValueError("block_size must be positive")
        if self.channels <= 0:
            raise ValueError("channels must be positive")

    @property
    def block_seconds(self) -> float:
        return self.block_size / float(self.sample_rate)


@dataclass(order=True)
class AutomationEvent:
    """A parameter breakpoint expressed in backend clock seconds."""

    time_seconds: float
    sequence: int
    value: float = field(compare=False)
    curve: str = field(default="set", compare=False)


class AutomationTimeline:
    """Priority queue of breakpoints evaluated per rendered block.

    ``set`` events jump to their value at their time. ``linear`` and
    ``exponential`` events ramp from the previous breakpoint (or the default
    value at time zero) and hold their value afterwards.
    """

    def __init__(self) -> None:
        self._events: List[AutomationEvent] = []
        self._counter = itertools.count()

    def schedule(self, time_seconds: float, value: float, curve: str = "set") -> AutomationEvent:
        if curve not in CURVES:
            raise ValueError(f"Unknown automation curve {curve!r}")
        if curve == "exponential" and value == 0.0:
            raise ValueError("Exponential ramps cannot target zero")
        event = AutomationEvent(
            time_seconds=max(0.0, float(time_seconds)),
            sequence=next(self._counter),
            value=float(value),
            curve=curve,
        )
        heapq.heappush(self._events, event)
        return event

    def events(self) -> List[AutomationEvent]:
        return sorted(self._events)

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._events)

    def values(self, times: np.ndarray, default: float) -> np.ndarray:
        """Return the automated value for every timestamp in *times*."""

        output = np.full(times.shape, default, dtype=np.float64)
        previous_time, previous_value = 0.0, float(default)
        for event in self.events():
            if event.curve != "set":
                span = event.time_seconds - previous_time
                if span > 0.0:
                    window = (times >= previous_time) & (times < event.time_seconds)
                    progress = (times[window] - previous_time) / span
                    if event.curve == "exponential" and previous_value * event.value > 0.0:
                        ratio = event.value / previous_value
                        output[window] = previous_value * np.power(ratio, progress)
                    else:
                        output[window] = previous_value + (event.value - previous_value) * progress
            output[times >= event.time_seconds] = event.value
            previous_time, previous_value = event.time_seconds, event.value
        return output

    def value_at(self, time_seconds: float, default: float) -> float:
        return float(self.values(np.array([time_seconds], dtype=np.float64), default)[0])


__all__ = [
    "AutomationEvent",
    "AutomationTimeline",
    "CURVES",
    "EngineConfig",
    "OUTPUT_KINDS",
]
