"""Toolkit-independent labels and clock formatting for story front-ends."""
from __future__ import annotations

from dataclasses import dataclass
import math

from .status import SessionStatus

_STATUS_LABELS = {
    SessionStatus.IDLE: "IDLE",
    SessionStatus.PLAYING: "TRANSMISSION ACTIVE",
    SessionStatus.FINISHED: "ECHO COMPLETE",
}


@dataclass(frozen=True)
class ControlLabels:
    start_label: str
    start_enabled: bool
    stop_label: str
    stop_enabled: bool


def status_label(status: SessionStatus) -> str:
    return _STATUS_LABELS[SessionStatus(status)]


def format_clock(elapsed_ms: int) -> str:
    """Format milliseconds as ``mm:ss``, rounding partial seconds up."""

    total_seconds = math.ceil(max(0, elapsed_ms) / 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def displayed_elapsed(status: SessionStatus, elapsed_ms: int, total_ms: int) -> int:
    """Clock value to show: live while playing, full length once finished."""

    if status is SessionStatus.PLAYING:
        return elapsed_ms
    if status is SessionStatus.FINISHED:
        return total_ms
    return 0


def control_labels(status: SessionStatus) -> ControlLabels:
    if status is SessionStatus.PLAYING:
        start = "Story in Progress"
    elif status is SessionStatus.FINISHED:
        start = "Replay Transmission"
    else:
        start = "Start Transmission"
    return ControlLabels(
        start_label=start,
        start_enabled=status is not SessionStatus.PLAYING,
        stop_label="Abort" if status is SessionStatus.PLAYING else "Reset",
        stop_enabled=status is not SessionStatus.IDLE,
    )


__all__ = [
    "ControlLabels",
    "control_labels",
    "displayed_elapsed",
    "format_clock",
    "status_label",
]
