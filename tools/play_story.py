#!/usr/bin/env python3
"""Play the built-in story in a terminal with a synthesized soundscape.

Run with ``python tools/play_story.py`` for realtime audio through
``sounddevice``, or add ``--output headless`` to synthesize without a sound
card (handy on CI boxes). ``--list`` prints the timeline and exits.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys
from typing import Dict, List, Optional, Sequence, TextIO

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:  # pragma: no cover - import guard for tooling
    sys.path.insert(0, str(SRC_PATH))

from audio.engine import EngineConfig
from audio.errors import AudioSessionError
from audio.metrics import peak_dbfs, rms_dbfs
from audio.outputs import HeadlessOutput
from audio.session import AudioSession
from story import MIDNIGHT_SIGNALS, Story
from timeline import (
    RecordingRenderer,
    SessionController,
    SessionStatus,
    TimelineScheduler,
    format_clock,
    status_label,
)


class ConsoleRenderer(RecordingRenderer):
    """Prints status changes and revealed text while recording events."""

    def __init__(self, story: Story, stream: Optional[TextIO] = None) -> None:
        super().__init__()
        self._story = story
        self._stream = stream or sys.stdout
        self._last_clock = ""

    def on_status_change(self, status: SessionStatus) -> None:
        super().on_status_change(status)
        print(f"[{status_label(status)}]", file=self._stream)

    def on_segment_revealed(self, segment_id: str, is_active: bool) -> None:
        super().on_segment_revealed(segment_id, is_active)
        segment = self._story.segment(segment_id)
        print(f"\n{segment.text}", file=self._stream)
        if segment.effects:
            effects = ", ".join(effect.value for effect in segment.effects)
            print(f"  ({effects})", file=self._stream)

    def on_elapsed_tick(self, elapsed_ms: int) -> None:
        super().on_elapsed_tick(elapsed_ms)
        clock = format_clock(elapsed_ms)
        if clock != self._last_clock:
            self._last_clock = clock
            total = format_clock(self._story.total_duration_ms)
            self._stream.write(f"\r{clock} / {total}")
            self._stream.flush()


def describe_timeline(story: Story) -> List[Dict[str, object]]:
    return [
        {
            "id": segment.id,
            "offset_ms": offset,
            "duration_ms": segment.duration_ms,
            "effects": [effect.value for effect in segment.effects],
        }
        for segment, offset in zip(story.segments, story.offsets_ms())
    ]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "--output",
        choices=("sounddevice", "headless"),
        default="sounddevice",
        help="Audio output: realtime device or paced headless synthesis.",
    )
    parser.add_argument("--sample-rate", type=int, default=48_000, help="Synthesis sample rate in Hz.")
    parser.add_argument("--block-size", type=int, default=512, help="Frames rendered per block.")
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=120,
        help="Interval between elapsed-time updates in milliseconds.",
    )
    parser.add_argument("--list", action="store_true", help="Print the timeline and exit.")
    parser.add_argument("--json", action="store_true", help="Emit a JSON summary when playback ends.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity.",
    )
    args = parser.parse_args(argv)
    if args.tick_ms <= 0:
        parser.error("--tick-ms must be positive")
    if args.sample_rate <= 0 or args.block_size <= 0:
        parser.error("--sample-rate and --block-size must be positive")
    return args


def build_controller(args: argparse.Namespace, renderer: ConsoleRenderer, story: Story) -> SessionController:
    config = EngineConfig(
        sample_rate=args.sample_rate,
        block_size=args.block_size,
        output=args.output,
    )
    scheduler = TimelineScheduler(tick_interval=args.tick_ms / 1000.0)
    return SessionController(story, AudioSession(config), renderer, scheduler=scheduler)


def _capture_meters(controller: SessionController) -> Dict[str, float]:
    handles = controller.session.handles
    if handles is None or not isinstance(handles.backend.output, HeadlessOutput):
        return {}
    captured = handles.backend.output.captured()
    if captured.size == 0:
        return {}
    return {
        "peak_dbfs": peak_dbfs(captured),
        "rms_dbfs": float(rms_dbfs(captured).max()),
        "captured_seconds": captured.shape[0] / float(handles.backend.sample_rate),
    }


async def play(args: argparse.Namespace, story: Story = MIDNIGHT_SIGNALS) -> int:
    renderer = ConsoleRenderer(story)
    async with build_controller(args, renderer, story) as controller:
        try:
            await controller.start()
        except AudioSessionError as exc:
            print(f"Unable to start audio: {exc}", file=sys.stderr)
            return 1
        status = await controller.wait_for_run_end()
        print()
        if args.json:
            summary: Dict[str, object] = {"final_status": status.value, **renderer.summary()}
            summary.update(_capture_meters(controller))
            print(json.dumps(summary, indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.list:
        timeline = describe_timeline(MIDNIGHT_SIGNALS)
        if args.json:
            print(json.dumps({"total_ms": MIDNIGHT_SIGNALS.total_duration_ms, "segments": timeline}, indent=2))
        else:
            print(f"{MIDNIGHT_SIGNALS.title} ({format_clock(MIDNIGHT_SIGNALS.total_duration_ms)})")
            for row in timeline:
                effects = ", ".join(row["effects"]) or "-"
                print(f"  {format_clock(row['offset_ms'])}  {row['id']:<10} {effects}")
        return 0

    try:
        return asyncio.run(play(args))
    except KeyboardInterrupt:  # pragma: no cover - interactive abort
        print("\nAborted.")
        return 130


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
