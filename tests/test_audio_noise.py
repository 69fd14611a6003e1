import numpy as np
import pytest

from audio.noise import generate_noise, noise_window


def test_noise_length_and_bounds():
    buffer = generate_noise(0.5, 8_000, level=0.45)
    assert buffer.shape == (4_000,)
    assert buffer.dtype == np.float32
    assert np.max(np.abs(buffer)) <= 0.45


def test_fade_out_window_decays_to_silence():
    buffer = generate_noise(2.0, 8_000, level=0.5, shape="fade_out", rng=np.random.default_rng(3))
    head = np.abs(buffer[:1_600]).mean()
    tail = np.abs(buffer[-1_600:]).mean()
    assert tail < head * 0.25
    for index in range(0, buffer.shape[0], 997):
        assert abs(buffer[index]) <= 0.5 * (1.0 - index / buffer.shape[0]) + 1e-6


def test_half_sine_window_peaks_in_the_middle():
    window = noise_window(1_000, "half_sine")
    assert window[0] == pytest.approx(0.0)
    assert window[500] == pytest.approx(1.0)
    assert window[-1] < 0.01


def test_each_call_produces_fresh_noise():
    first = generate_noise(0.1, 8_000)
    second = generate_noise(0.1, 8_000)
    assert not np.array_equal(first, second)


def test_zero_duration_gives_empty_buffer():
    assert generate_noise(0.0, 8_000).shape == (0,)


def test_unknown_shape_is_rejected():
    with pytest.raises(ValueError):
        generate_noise(0.1, 8_000, shape="pink")
