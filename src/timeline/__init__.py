"""Story timeline scheduling and the playback session state machine."""

from .controller import SessionController
from .presentation import control_labels, displayed_elapsed, format_clock, status_label
from .renderer import NullRenderer, RecordingRenderer, Renderer
from .scheduler import CancellationToken, TimelineRun, TimelineScheduler
from .status import SessionStatus

__all__ = [
    "CancellationToken",
    "NullRenderer",
    "RecordingRenderer",
    "Renderer",
    "SessionController",
    "SessionStatus",
    "TimelineRun",
    "TimelineScheduler",
    "control_labels",
    "displayed_elapsed",
    "format_clock",
    "status_label",
]
