"""Error types raised by the audio session and node graph."""
from __future__ import annotations


class AudioSessionError(RuntimeError):
    """Base error for failures that prevent playback from starting."""


class UnsupportedBackend(AudioSessionError):
    """Raised when the runtime has no usable audio output capability."""


class BackendAcquisitionFailed(AudioSessionError):
    """Raised when creating or resuming the audio backend fails or times out."""


class InvalidStateError(RuntimeError):
    """Raised on node or backend lifecycle misuse (double stop, use after close)."""


__all__ = [
    "AudioSessionError",
    "BackendAcquisitionFailed",
    "InvalidStateError",
    "UnsupportedBackend",
]
