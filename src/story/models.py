"""Pydantic models describing a scripted story timeline.

A story is a fixed, ordered list of segments. Each segment is shown for
``duration_ms`` before the next one is revealed and may fire synthesized
effects when it appears.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EffectKind(str, Enum):
    """Synthesized one-shot effects a segment can trigger."""

    HEARTBEAT = "heartbeat"
    CREAK = "creak"
    WHISPER = "whisper"
    GUST = "gust"
    CHIME = "chime"


class Segment(BaseModel):
    """One unit of the narrative timeline."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    text: str
    duration_ms: int = Field(..., gt=0, description="Milliseconds until the next segment")
    effects: Tuple[EffectKind, ...] = Field(default_factory=tuple)

    @field_validator("effects", mode="before")
    @classmethod
    def dedupe_effects(cls, value):  # type: ignore[override]
        if value is None:
            return ()
        ordered: List[EffectKind] = []
        for item in value:
            kind = EffectKind(item)
            if kind not in ordered:
                ordered.append(kind)
        return tuple(ordered)


class Story(BaseModel):
    """Ordered segments whose order is the canonical playback order."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    segments: Tuple[Segment, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> Story:  # type: ignore[override]
        seen = set()
        for segment in self.segments:
            if segment.id in seen:
                raise ValueError(f"Duplicate segment id {segment.id!r}")
            seen.add(segment.id)
        return self

    @property
    def total_duration_ms(self) -> int:
        return sum(segment.duration_ms for segment in self.segments)

    def offsets_ms(self) -> List[int]:
        """Cumulative start offset of every segment."""

        offsets: List[int] = []
        elapsed = 0
        for segment in self.segments:
            offsets.append(elapsed)
            elapsed += segment.duration_ms
        return offsets

    def index_of(self, segment_id: str) -> int:
        for index, segment in enumerate(self.segments):
            if segment.id == segment_id:
                return index
        raise KeyError(f"Unknown segment {segment_id!r}")

    def segment(self, segment_id: str) -> Segment:
        return self.segments[self.index_of(segment_id)]

    def __len__(self) -> int:
        return len(self.segments)


__all__ = ["EffectKind", "Segment", "Story"]
