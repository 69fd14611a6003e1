"""Amplitude-shaped white noise buffers."""
from __future__ import annotations

from typing import Optional

import numpy as np

NOISE_SHAPES = ("flat", "fade_out", "half_sine")


def noise_window(frames: int, shape: str) -> np.ndarray:
    """Return the amplitude envelope applied across a noise buffer."""

    if shape not in NOISE_SHAPES:
        raise ValueError(f"Unknown noise shape {shape!r}; expected one of {NOISE_SHAPES}")
    progress = np.arange(frames, dtype=np.float64) / max(frames, 1)
    if shape == "fade_out":
        return 1.0 - progress
    if shape == "half_sine":
        return np.sin(progress * np.pi)
    return np.ones(frames, dtype=np.float64)


def generate_noise(
    duration_seconds: float,
    sample_rate: int,
    *,
    level: float = 1.0,
    shape: str = "flat",
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Return a fresh mono buffer of windowed white noise bounded by *level*.

    Samples are uniform in ``[-1, 1)`` before the window and level are
    applied, so ``abs(sample) <= level`` always holds.
    """

    if duration_seconds < 0:
        raise ValueError("duration_seconds must be non-negative")
    frames = int(round(duration_seconds * sample_rate))
    rng = rng or np.random.default_rng()
    white = rng.uniform(-1.0, 1.0, frames)
    return (white * noise_window(frames, shape) * level).astype(np.float32)


__all__ = ["NOISE_SHAPES", "generate_noise", "noise_window"]
