"""Built-in story shipped with the player."""
from __future__ import annotations

from .models import EffectKind, Segment, Story

MIDNIGHT_SIGNALS = Story(
    title="Midnight Signals",
    segments=[
        Segment(
            id="segment-1",
            text=(
                "Lila missed the last train, the platform lights clicking in a broken rhythm "
                "that echoed across the empty tunnel."
            ),
            duration_ms=7500,
            effects=[EffectKind.HEARTBEAT],
        ),
        Segment(
            id="segment-2",
            text=(
                "In the station's maintenance log, a single line pulsed on her phone: "
                "Midnight maintenance delayed, do not remain underground."
            ),
            duration_ms=7000,
            effects=[EffectKind.WHISPER],
        ),
        Segment(
            id="segment-3",
            text=(
                "A gust sighed down the tracks, carrying the copper tang of rain and the faint "
                "scrape of nails against old rail ties."
            ),
            duration_ms=8000,
            effects=[EffectKind.GUST],
        ),
        Segment(
            id="segment-4",
            text=(
                "Over the loudspeaker, a voice she didn't recognize repeated her name, each "
                "syllable melting into static and low pleading."
            ),
            duration_ms=7500,
            effects=[EffectKind.WHISPER, EffectKind.HEARTBEAT],
        ),
        Segment(
            id="segment-5",
            text=(
                "The arrival board flickered to 00:00 (Track Thirteen) while a silhouette "
                "stepped from the tunnel, dripping shadow instead of water."
            ),
            duration_ms=8000,
            effects=[EffectKind.CREAK],
        ),
        Segment(
            id="segment-6",
            text=(
                "When Lila backed away, the tiles beneath her boots shivered and cracked, "
                "revealing the hollow thud of bones beneath."
            ),
            duration_ms=7500,
            effects=[EffectKind.HEARTBEAT],
        ),
        Segment(
            id="segment-7",
            text=(
                "The silhouette lifted a lantern that glowed with trapped moths, each wingbeat "
                "tolling like a funeral chime."
            ),
            duration_ms=7500,
            effects=[EffectKind.CHIME],
        ),
        Segment(
            id="segment-8",
            text=(
                "As the phantom train roared past, empty windows filled with faces she knew: "
                "all the commuters who ever vanished between stops, all mouthing the same "
                "warning. You're already aboard."
            ),
            duration_ms=8200,
            effects=[EffectKind.CREAK, EffectKind.WHISPER],
        ),
    ],
)

__all__ = ["MIDNIGHT_SIGNALS"]
