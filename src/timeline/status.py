"""Session status values."""
from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    FINISHED = "finished"


__all__ = ["SessionStatus"]
