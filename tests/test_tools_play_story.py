import asyncio
import json

import pytest

from audio import outputs
from story import MIDNIGHT_SIGNALS, EffectKind, Segment, Story
from tools import play_story


def _short_story() -> Story:
    return Story(
        title="Short",
        segments=[
            Segment(id="a", text="The line clicks.", duration_ms=150, effects=[EffectKind.CHIME]),
            Segment(id="b", text="Silence answers.", duration_ms=150),
        ],
    )


def test_parse_args_defaults() -> None:
    args = play_story.parse_args([])
    assert args.output == "sounddevice"
    assert args.sample_rate == 48_000
    assert args.tick_ms == 120
    assert not args.list and not args.json


@pytest.mark.parametrize("flags", [["--tick-ms", "0"], ["--tick-ms", "-5"], ["--sample-rate", "0"]])
def test_parse_args_rejects_non_positive_values(flags, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        play_story.parse_args(flags)
    assert excinfo.value.code == 2
    assert "must be positive" in capsys.readouterr().err


def test_describe_timeline_lists_offsets_and_effects() -> None:
    rows = play_story.describe_timeline(MIDNIGHT_SIGNALS)
    assert len(rows) == 8
    assert rows[1]["offset_ms"] == 7_500
    assert rows[0]["effects"] == ["heartbeat"]


def test_list_prints_timeline(capsys) -> None:
    assert play_story.main(["--list"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Midnight Signals (01:02)")
    assert "segment-1" in out


def test_list_json(capsys) -> None:
    assert play_story.main(["--list", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["total_ms"] == 61_200
    assert [row["id"] for row in payload["segments"]][:2] == ["segment-1", "segment-2"]


def test_headless_play_emits_summary(capsys) -> None:
    args = play_story.parse_args(
        ["--output", "headless", "--sample-rate", "8000", "--block-size", "256", "--tick-ms", "50", "--json"]
    )
    assert asyncio.run(play_story.play(args, _short_story())) == 0

    out = capsys.readouterr().out
    assert "[TRANSMISSION ACTIVE]" in out
    assert "The line clicks." in out
    summary, _ = json.JSONDecoder().raw_decode(out, out.index('{\n  "final_status"'))
    assert summary["final_status"] == "finished"
    assert summary["statuses"] == ["playing", "finished"]
    assert summary["reveals"] == ["a", "b"]
    assert summary["last_elapsed_ms"] == 300
    assert summary["captured_seconds"] > 0


def test_missing_audio_device_returns_error(monkeypatch, capsys) -> None:
    monkeypatch.setattr(outputs, "sd", None)
    args = play_story.parse_args([])
    assert asyncio.run(play_story.play(args, _short_story())) == 1
    assert "Unable to start audio" in capsys.readouterr().err
