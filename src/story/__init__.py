"""Story timeline data: segments, effect kinds and the built-in story."""

from .data import MIDNIGHT_SIGNALS
from .models import EffectKind, Segment, Story

__all__ = ["EffectKind", "MIDNIGHT_SIGNALS", "Segment", "Story"]
