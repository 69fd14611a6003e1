import numpy as np
import pytest

from audio.engine import AutomationTimeline, EngineConfig


def test_engine_config_rejects_unknown_output():
    with pytest.raises(ValueError):
        EngineConfig(output="speakers")


def test_engine_config_block_seconds():
    config = EngineConfig(sample_rate=8_000, block_size=400)
    assert config.block_seconds == pytest.approx(0.05)
    assert config.master_gain == pytest.approx(0.6)


def test_linear_ramp_interpolates_between_breakpoints():
    timeline = AutomationTimeline()
    timeline.schedule(1.0, 0.0, "set")
    timeline.schedule(2.0, 1.0, "linear")

    times = np.array([0.5, 1.0, 1.5, 2.0, 3.0])
    values = timeline.values(times, default=0.25)
    assert values[0] == pytest.approx(0.25)
    assert values[1] == pytest.approx(0.0)
    assert values[2] == pytest.approx(0.5)
    assert values[3] == pytest.approx(1.0)
    assert values[4] == pytest.approx(1.0)


def test_exponential_ramp_is_geometric():
    timeline = AutomationTimeline()
    timeline.schedule(0.0, 380.0, "set")
    timeline.schedule(2.2, 45.0, "exponential")

    midpoint = timeline.value_at(1.1, default=0.0)
    assert midpoint == pytest.approx(np.sqrt(380.0 * 45.0), rel=1e-6)
    assert timeline.value_at(5.0, default=0.0) == pytest.approx(45.0)


def test_events_at_same_time_keep_insertion_order():
    timeline = AutomationTimeline()
    timeline.schedule(1.0, 0.3, "set")
    timeline.schedule(1.0, 0.7, "set")
    assert timeline.value_at(1.0, default=0.0) == pytest.approx(0.7)


def test_exponential_ramp_to_zero_is_rejected():
    timeline = AutomationTimeline()
    with pytest.raises(ValueError):
        timeline.schedule(1.0, 0.0, "exponential")
