import pytest

from timeline.presentation import control_labels, displayed_elapsed, format_clock, status_label
from timeline.renderer import RecordingRenderer
from timeline.status import SessionStatus


@pytest.mark.parametrize(
    "elapsed_ms, expected",
    [
        (0, "00:00"),
        (1, "00:01"),
        (1000, "00:01"),
        (59_001, "01:00"),
        (61_200, "01:02"),
        (-50, "00:00"),
    ],
)
def test_format_clock_rounds_partial_seconds_up(elapsed_ms, expected):
    assert format_clock(elapsed_ms) == expected


def test_status_labels():
    assert status_label(SessionStatus.IDLE) == "IDLE"
    assert status_label(SessionStatus.PLAYING) == "TRANSMISSION ACTIVE"
    assert status_label("finished") == "ECHO COMPLETE"


def test_displayed_elapsed_depends_on_status():
    assert displayed_elapsed(SessionStatus.PLAYING, 4_200, 22_500) == 4_200
    assert displayed_elapsed(SessionStatus.FINISHED, 4_200, 22_500) == 22_500
    assert displayed_elapsed(SessionStatus.IDLE, 4_200, 22_500) == 0


def test_control_labels_follow_state_machine():
    idle = control_labels(SessionStatus.IDLE)
    assert idle.start_enabled and not idle.stop_enabled
    assert idle.start_label == "Start Transmission"

    playing = control_labels(SessionStatus.PLAYING)
    assert not playing.start_enabled and playing.stop_enabled
    assert playing.stop_label == "Abort"

    finished = control_labels(SessionStatus.FINISHED)
    assert finished.start_enabled and finished.stop_enabled
    assert finished.start_label == "Replay Transmission"
    assert finished.stop_label == "Reset"


def test_recording_renderer_summary():
    renderer = RecordingRenderer()
    renderer.on_status_change(SessionStatus.PLAYING)
    renderer.on_segment_revealed("A", True)
    renderer.on_elapsed_tick(120)

    assert renderer.last_status is SessionStatus.PLAYING
    assert renderer.summary() == {
        "statuses": ["playing"],
        "reveals": ["A"],
        "ticks": 1,
        "last_elapsed_ms": 120,
    }
