"""One-shot effect voices synthesized from oscillators, noise and envelopes."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from story.models import EffectKind

from .backend import AudioBackend
from .noise import generate_noise
from .nodes import AudioNode, AudioParam, SourceNode

logger = logging.getLogger(__name__)

# Gain floor used instead of zero so exponential ramps stay valid.
SILENCE = 0.0001

Breakpoint = Tuple[float, float, str]


@dataclass(eq=False)
class EffectVoice:
    """Transient node graph for a single effect trigger.

    The voice disconnects its nodes exactly once, when the last of its
    sources reports ``on_ended``.
    """

    kind: EffectKind
    nodes: List[AudioNode]
    sources: List[SourceNode]
    started_at: float
    ends_at: float
    on_disposed: Optional[Callable[["EffectVoice"], None]] = None
    disposed: bool = False
    _pending: Set[SourceNode] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self._pending = set(self.sources)
        for source in self.sources:
            source.on_ended = self._source_ended

    def _source_ended(self, source: SourceNode) -> None:
        self._pending.discard(source)
        if not self._pending:
            self.dispose()

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        for node in self.nodes:
            node.disconnect()
        logger.debug("Disposed %s voice (%s nodes)", self.kind.value, len(self.nodes))
        if self.on_disposed is not None:
            self.on_disposed(self)


def apply_envelope(
    backend: AudioBackend,
    param: AudioParam,
    start: float,
    breakpoints: Sequence[Breakpoint],
) -> None:
    """Schedule ``(offset, value, curve)`` breakpoints relative to *start*."""

    for offset, value, curve in breakpoints:
        backend.schedule_ramp(param, value, start + offset, curve)


@dataclass(frozen=True)
class ChimePartial:
    frequency_hz: float
    attack: float
    decay: float


def chime_partials(
    frequencies: Sequence[float] = (660.0, 880.0, 1320.0),
    *,
    attack: float = 0.08,
    attack_step: float = 0.03,
    decay: float = 1.8,
    decay_step: float = 0.25,
) -> List[ChimePartial]:
    """Staggered partials: both attack and decay grow with the harmonic index."""

    return [
        ChimePartial(freq, attack + index * attack_step, decay + index * decay_step)
        for index, freq in enumerate(frequencies)
    ]


class VoiceSynthesizer:
    """Builds and starts effect voices against any :class:`AudioBackend`."""

    def __init__(self, *, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng or np.random.default_rng()
        self._live: List[EffectVoice] = []
        self.history: List[EffectKind] = []
        self._recipes: Dict[EffectKind, Callable[[AudioBackend, AudioNode, float], EffectVoice]] = {
            EffectKind.HEARTBEAT: self._heartbeat,
            EffectKind.CREAK: self._creak,
            EffectKind.WHISPER: self._whisper,
            EffectKind.GUST: self._gust,
            EffectKind.CHIME: self._chime,
        }

    @property
    def live_voices(self) -> List[EffectVoice]:
        return list(self._live)

    def trigger(self, kind: EffectKind | str, backend: AudioBackend, destination: AudioNode) -> EffectVoice:
        """Synthesize and start one voice routed into *destination*."""

        kind = EffectKind(kind)
        voice = self._recipes[kind](backend, destination, backend.current_time)
        voice.on_disposed = self._forget
        self._live.append(voice)
        self.history.append(kind)
        logger.debug("Triggered %s voice at %.3fs (ends %.3fs)", kind.value, voice.started_at, voice.ends_at)
        return voice

    def clear_history(self) -> None:
        """Forget the kinds triggered so far; live voices are unaffected."""

        self.history.clear()

    def trigger_many(
        self, kinds: Iterable[EffectKind | str], backend: AudioBackend, destination: AudioNode
    ) -> List[EffectVoice]:
        return [self.trigger(kind, backend, destination) for kind in kinds]

    def _forget(self, voice: EffectVoice) -> None:
        if voice in self._live:
            self._live.remove(voice)

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------
    def _heartbeat(self, backend: AudioBackend, destination: AudioNode, now: float) -> EffectVoice:
        gain = backend.create_gain(SILENCE)
        backend.schedule_ramp(gain.gain, SILENCE, now, "set")
        backend.connect(gain, destination)

        osc = backend.create_oscillator("sine", 52.0)
        backend.connect(osc, gain)

        pulse = [(0.0, SILENCE, "set"), (0.06, 0.7, "linear"), (0.4, SILENCE, "linear")]
        for offset in (0.0, 0.48):
            apply_envelope(backend, gain.gain, now + offset, pulse)

        osc.start(now)
        osc.stop(now + 1.4)
        return EffectVoice(EffectKind.HEARTBEAT, [osc, gain], [osc], now, now + 1.4)

    def _creak(self, backend: AudioBackend, destination: AudioNode, now: float) -> EffectVoice:
        osc = backend.create_oscillator("sawtooth", 380.0)
        apply_envelope(backend, osc.frequency, now, [(0.0, 380.0, "set"), (2.2, 45.0, "exponential")])

        gain = backend.create_gain(SILENCE)
        apply_envelope(
            backend,
            gain.gain,
            now,
            [(0.0, SILENCE, "set"), (0.4, 0.45, "linear"), (2.2, SILENCE, "linear")],
        )

        band = backend.create_filter("bandpass", 180.0, 6.0)
        backend.connect(osc, band)
        backend.connect(band, gain)
        backend.connect(gain, destination)

        osc.start(now)
        osc.stop(now + 2.5)
        return EffectVoice(EffectKind.CREAK, [osc, band, gain], [osc], now, now + 2.5)

    def _whisper(self, backend: AudioBackend, destination: AudioNode, now: float) -> EffectVoice:
        buffer = generate_noise(2.2, backend.sample_rate, level=0.5, shape="fade_out", rng=self._rng)
        source = backend.create_buffer_source(buffer)

        highpass = backend.create_filter("highpass", 1200.0)
        gain = backend.create_gain(SILENCE)
        apply_envelope(
            backend,
            gain.gain,
            now,
            [
                (0.0, SILENCE, "set"),
                (0.2, 0.25, "linear"),
                (0.8, 0.08, "linear"),
                (2.2, SILENCE, "linear"),
            ],
        )

        backend.connect(source, highpass)
        backend.connect(highpass, gain)
        backend.connect(gain, destination)

        source.start(now)
        source.stop(now + 2.4)
        return EffectVoice(EffectKind.WHISPER, [source, highpass, gain], [source], now, now + 2.4)

    def _gust(self, backend: AudioBackend, destination: AudioNode, now: float) -> EffectVoice:
        buffer = generate_noise(3.0, backend.sample_rate, level=0.45, shape="half_sine", rng=self._rng)
        source = backend.create_buffer_source(buffer)

        band = backend.create_filter("bandpass", 260.0, 1.2)
        gain = backend.create_gain(SILENCE)
        apply_envelope(
            backend,
            gain.gain,
            now,
            [(0.0, SILENCE, "set"), (0.8, 0.3, "linear"), (3.0, SILENCE, "linear")],
        )

        backend.connect(source, band)
        backend.connect(band, gain)
        backend.connect(gain, destination)

        source.start(now)
        source.stop(now + 3.2)
        return EffectVoice(EffectKind.GUST, [source, band, gain], [source], now, now + 3.2)

    def _chime(self, backend: AudioBackend, destination: AudioNode, now: float) -> EffectVoice:
        nodes: List[AudioNode] = []
        sources: List[SourceNode] = []
        ends_at = now
        for partial in chime_partials():
            osc = backend.create_oscillator("sine", partial.frequency_hz)
            gain = backend.create_gain(SILENCE)
            apply_envelope(
                backend,
                gain.gain,
                now,
                [
                    (0.0, SILENCE, "set"),
                    (partial.attack, 0.18, "linear"),
                    (partial.attack + partial.decay, SILENCE, "linear"),
                ],
            )
            backend.connect(osc, gain)
            backend.connect(gain, destination)

            stop_at = now + partial.attack + partial.decay + 0.1
            osc.start(now)
            osc.stop(stop_at)
            ends_at = max(ends_at, stop_at)
            nodes.extend([osc, gain])
            sources.append(osc)
        return EffectVoice(EffectKind.CHIME, nodes, sources, now, ends_at)


__all__ = [
    "ChimePartial",
    "EffectVoice",
    "SILENCE",
    "VoiceSynthesizer",
    "apply_envelope",
    "chime_partials",
]
