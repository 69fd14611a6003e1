"""Looping ambient drone that runs for the whole session."""
from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from .backend import AudioBackend
from .noise import generate_noise
from .nodes import AudioNode, SourceNode

logger = logging.getLogger(__name__)


class AmbientBed:
    """Sawtooth drone with tremolo, a quiet triangle drone and a noise loop.

    At most one bed runs at a time: :meth:`begin` on a running bed is a no-op.
    """

    def __init__(self, *, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng or np.random.default_rng()
        self._sources: List[SourceNode] = []
        self._nodes: List[AudioNode] = []

    @property
    def running(self) -> bool:
        return bool(self._sources)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def sources(self) -> List[SourceNode]:
        return list(self._sources)

    def begin(self, backend: AudioBackend, master: AudioNode) -> bool:
        """Build and start the bed; returns ``False`` if one is already running."""

        if self.running:
            logger.debug("Ambient bed already running; ignoring begin()")
            return False

        bass = backend.create_oscillator("sawtooth", 52.0)
        bass_gain = backend.create_gain(0.15)
        backend.connect(bass, bass_gain)
        backend.connect(bass_gain, master)

        high = backend.create_oscillator("triangle", 420.0)
        high_gain = backend.create_gain(0.05)
        backend.connect(high, high_gain)
        backend.connect(high_gain, master)

        tremolo = backend.create_oscillator("sine", 0.35)
        tremolo_depth = backend.create_gain(0.12)
        backend.connect(tremolo, tremolo_depth)
        backend.connect(tremolo_depth, bass_gain.gain)

        buffer = generate_noise(6.0, backend.sample_rate, level=0.4, shape="fade_out", rng=self._rng)
        noise = backend.create_buffer_source(buffer, loop=True)
        lowpass = backend.create_filter("lowpass", 480.0)
        noise_gain = backend.create_gain(0.12)
        backend.connect(noise, lowpass)
        backend.connect(lowpass, noise_gain)
        backend.connect(noise_gain, master)

        now = backend.current_time
        sources: List[SourceNode] = [bass, high, tremolo, noise]
        for source in sources:
            source.start(now)

        self._sources = sources
        self._nodes = [
            bass,
            bass_gain,
            high,
            high_gain,
            tremolo,
            tremolo_depth,
            noise,
            lowpass,
            noise_gain,
        ]
        logger.debug("Ambient bed started at %.3fs with %s nodes", now, len(self._nodes))
        return True

    def stop(self) -> None:
        """Stop and disconnect every owned node, isolating per-node failures."""

        sources, nodes = self._sources, self._nodes
        self._sources, self._nodes = [], []
        for source in sources:
            try:
                source.stop()
            except Exception as exc:  # already stopped or backend closed
                logger.debug("Ignoring stop failure on %r: %s", source, exc)
        for node in nodes:
            try:
                node.disconnect()
            except Exception as exc:
                logger.debug("Ignoring disconnect failure on %r: %s", node, exc)
        if nodes:
            logger.debug("Ambient bed stopped (%s nodes released)", len(nodes))


__all__ = ["AmbientBed"]
