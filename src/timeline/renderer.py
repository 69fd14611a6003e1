"""Callback contract between the session controller and whatever displays it."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from .status import SessionStatus


class Renderer(Protocol):
    """Receives status, reveal and clock updates from the controller.

    ``on_segment_revealed`` is called once per newly revealed segment with
    ``is_active=True``; the previously active segment is implicitly no longer
    active. When the status becomes ``finished`` no segment is active; when
    it becomes ``idle`` or ``playing`` the revealed set starts out empty.
    """

    def on_status_change(self, status: SessionStatus) -> None:
        ...

    def on_segment_revealed(self, segment_id: str, is_active: bool) -> None:
        ...

    def on_elapsed_tick(self, elapsed_ms: int) -> None:
        ...


class NullRenderer:
    def on_status_change(self, status: SessionStatus) -> None:
        pass

    def on_segment_revealed(self, segment_id: str, is_active: bool) -> None:
        pass

    def on_elapsed_tick(self, elapsed_ms: int) -> None:
        pass


@dataclass
class RecordingRenderer:
    """Keeps every notification for assertions and CLI summaries."""

    statuses: List[SessionStatus] = field(default_factory=list)
    reveals: List[Tuple[str, bool]] = field(default_factory=list)
    ticks: List[int] = field(default_factory=list)

    def on_status_change(self, status: SessionStatus) -> None:
        self.statuses.append(status)

    def on_segment_revealed(self, segment_id: str, is_active: bool) -> None:
        self.reveals.append((segment_id, is_active))

    def on_elapsed_tick(self, elapsed_ms: int) -> None:
        self.ticks.append(elapsed_ms)

    @property
    def last_status(self) -> Optional[SessionStatus]:
        return self.statuses[-1] if self.statuses else None

    def revealed_ids(self) -> List[str]:
        return [segment_id for segment_id, _ in self.reveals]

    def summary(self) -> dict[str, object]:
        return {
            "statuses": [status.value for status in self.statuses],
            "reveals": self.revealed_ids(),
            "ticks": len(self.ticks),
            "last_elapsed_ms": self.ticks[-1] if self.ticks else 0,
        }


__all__ = ["NullRenderer", "RecordingRenderer", "Renderer"]
