import asyncio

import numpy as np
import pytest

from audio.metrics import rms_per_channel
from audio.voices import SILENCE, VoiceSynthesizer, chime_partials
from story.models import EffectKind


@pytest.fixture()
def master(backend):
    gain = backend.create_gain(1.0)
    backend.connect(gain, backend.destination)
    return gain


def _rms(audio, start_s, end_s, sample_rate=8_000):
    return float(rms_per_channel(audio[int(start_s * sample_rate) : int(end_s * sample_rate)])[0])


def test_heartbeat_renders_two_pulses_then_silence(backend, master):
    synth = VoiceSynthesizer()
    voice = synth.trigger(EffectKind.HEARTBEAT, backend, master)
    assert voice.ends_at == pytest.approx(1.4)

    audio = backend.render_seconds(1.6)
    first = _rms(audio, 0.05, 0.35)
    second = _rms(audio, 0.53, 0.83)
    gap = _rms(audio, 0.9, 1.35)
    assert first > 0.1
    assert second > 0.1
    assert gap < 0.001
    assert voice.disposed


def test_creak_sweeps_down_exponentially(backend, master):
    voice = VoiceSynthesizer().trigger("creak", backend, master)
    osc = voice.sources[0]
    assert osc.frequency.value_at(0.0) == pytest.approx(380.0)
    assert osc.frequency.value_at(1.1) == pytest.approx(130.77, rel=1e-3)
    assert osc.frequency.value_at(2.2) == pytest.approx(45.0)
    assert osc.stop_time == pytest.approx(2.5)


def test_gain_envelopes_start_from_silence_floor(backend, master):
    voice = VoiceSynthesizer().trigger(EffectKind.GUST, backend, master)
    gain = voice.nodes[-1]
    assert gain.gain.value_at(0.0) == pytest.approx(SILENCE)
    assert gain.gain.value_at(0.8) == pytest.approx(0.3)
    assert gain.gain.value_at(3.0) == pytest.approx(SILENCE)
    assert voice.ends_at == pytest.approx(3.2)


def test_chime_has_three_staggered_partials(backend, master):
    voice = VoiceSynthesizer().trigger(EffectKind.CHIME, backend, master)
    assert [osc.frequency.default for osc in voice.sources] == [660.0, 880.0, 1320.0]
    assert [round(p.attack, 2) for p in chime_partials()] == [0.08, 0.11, 0.14]
    assert [round(p.decay, 2) for p in chime_partials()] == [1.8, 2.05, 2.3]
    assert [round(osc.stop_time, 2) for osc in voice.sources] == [1.98, 2.26, 2.54]
    assert voice.ends_at == pytest.approx(2.54)


def test_noise_voices_get_fresh_buffers(backend, master):
    synth = VoiceSynthesizer()
    first = synth.trigger(EffectKind.WHISPER, backend, master)
    second = synth.trigger(EffectKind.WHISPER, backend, master)
    assert not np.array_equal(first.sources[0].buffer, second.sources[0].buffer)


def test_voices_overlap_and_dispose_after_ending(backend, master):
    synth = VoiceSynthesizer()
    voices = synth.trigger_many([EffectKind.HEARTBEAT, EffectKind.CHIME], backend, master)
    assert len(synth.live_voices) == 2
    assert synth.history == [EffectKind.HEARTBEAT, EffectKind.CHIME]

    backend.render_seconds(1.5)
    assert voices[0].disposed
    assert synth.live_voices == [voices[1]]

    backend.render_seconds(1.5)
    assert synth.live_voices == []
    assert backend.connected_nodes() == [master]


def test_dispose_runs_once(backend, master):
    disposed = []
    voice = VoiceSynthesizer().trigger(EffectKind.CREAK, backend, master)
    voice.on_disposed = disposed.append
    voice.dispose()
    voice.dispose()
    assert disposed == [voice]
    assert backend.connected_nodes() == [master]


def test_backend_close_disposes_live_voices(backend, master):
    synth = VoiceSynthesizer()
    synth.trigger(EffectKind.CHIME, backend, master)
    synth.trigger(EffectKind.WHISPER, backend, master)
    backend.render_seconds(0.2)

    asyncio.run(backend.close())
    assert synth.live_voices == []


def test_unknown_effect_is_rejected(backend, master):
    with pytest.raises(ValueError):
        VoiceSynthesizer().trigger("thunder", backend, master)


def test_whisper_envelope_and_highpass(backend, master):
    voice = VoiceSynthesizer().trigger(EffectKind.WHISPER, backend, master)
    source, highpass, gain = voice.nodes

    assert highpass.filter_type == "highpass"
    assert highpass.frequency.default == pytest.approx(1200.0)
    assert gain.gain.value_at(0.0) == pytest.approx(SILENCE)
    assert gain.gain.value_at(0.2) == pytest.approx(0.25)
    assert gain.gain.value_at(0.5) == pytest.approx(0.165)
    assert gain.gain.value_at(0.8) == pytest.approx(0.08)
    assert gain.gain.value_at(2.2) == pytest.approx(SILENCE)
    assert source.stop_time == pytest.approx(2.4)
    assert source.duration == pytest.approx(2.2)
    assert voice.ends_at == pytest.approx(2.4)


def test_creak_envelope_and_bandpass(backend, master):
    voice = VoiceSynthesizer().trigger(EffectKind.CREAK, backend, master)
    _, band, gain = voice.nodes

    assert band.filter_type == "bandpass"
    assert band.frequency.default == pytest.approx(180.0)
    assert band.q.default == pytest.approx(6.0)
    assert gain.gain.value_at(0.0) == pytest.approx(SILENCE)
    assert gain.gain.value_at(0.4) == pytest.approx(0.45)
    assert gain.gain.value_at(1.3) == pytest.approx((0.45 + SILENCE) / 2)
    assert gain.gain.value_at(2.2) == pytest.approx(SILENCE)
    assert voice.ends_at == pytest.approx(2.5)


def test_clear_history_keeps_live_voices(backend, master):
    synth = VoiceSynthesizer()
    synth.trigger(EffectKind.CHIME, backend, master)
    synth.clear_history()

    assert synth.history == []
    assert len(synth.live_voices) == 1
