"""Quick level meters for rendered soundscape buffers."""
from __future__ import annotations

import numpy as np


def rms_per_channel(buffer: np.ndarray) -> np.ndarray:
    """Return root-mean-square level for each channel.

    The calculation assumes the buffer uses floating-point -1..1 headroom.
    """

    if buffer.size == 0:
        return np.zeros(buffer.shape[1] if buffer.ndim == 2 else 1, dtype=np.float32)
    if buffer.ndim == 1:
        buffer = buffer[:, None]
    squared = np.square(buffer, dtype=np.float32)
    return np.sqrt(np.mean(squared, axis=0), dtype=np.float32)


def rms_dbfs(buffer: np.ndarray, *, reference: float = 1.0) -> np.ndarray:
    """Convert channel RMS values to dBFS relative to *reference* amplitude."""

    rms = rms_per_channel(buffer)
    reference = max(reference, 1e-9)
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(np.maximum(rms, 1e-9) / reference)
    return db.astype(np.float32)


def peak_dbfs(buffer: np.ndarray) -> float:
    """Return the absolute peak across all channels in dBFS."""

    if buffer.size == 0:
        return float("-inf")
    peak = float(np.max(np.abs(buffer)))
    return 20.0 * float(np.log10(max(peak, 1e-9)))


__all__ = ["peak_dbfs", "rms_dbfs", "rms_per_channel"]
