import numpy as np
import pytest

from ppg_hrv.hrv_metrics.beat_calculator import BeatIntervalCalculator


def test_beats_produce_intervals_from_timestamps():
    calc = BeatIntervalCalculator()
    assert calc.add_beat(10_000.0) is False
    assert calc.add_beat(10_800.0) is True
    assert calc.add_beat(11_650.0) is True

    assert calc.sample_count == 2
    assert calc.get_metrics().rmssd == pytest.approx(50.0)


def test_out_of_bounds_intervals_are_counted_not_stored():
    calc = BeatIntervalCalculator()
    assert calc.add_interval(250.0) is False
    assert calc.add_interval(2100.0) is False
    assert calc.add_interval(800.0) is True

    assert calc.sample_count == 1
    assert calc.rejected_count == 2


def test_no_statistical_baseline_on_discrete_path():
    calc = BeatIntervalCalculator()
    calc.add_interval(600.0)
    # 100 % jump, still within hard bounds
    assert calc.add_interval(1200.0) is True


def test_below_two_samples_is_unavailable():
    calc = BeatIntervalCalculator()
    calc.add_interval(800.0)

    metrics = calc.get_metrics()
    assert metrics.sample_count == 1
    assert metrics.rmssd is None
    assert metrics.sdnn is None
    assert metrics.pnn50 is None


def test_metrics_match_reference_formulas():
    nn = [800.0, 850.0, 800.0, 900.0]
    calc = BeatIntervalCalculator()
    for value in nn:
        calc.add_interval(value)

    metrics = calc.get_metrics()
    assert metrics.rmssd == pytest.approx(np.sqrt(5000.0))
    assert metrics.sdnn == pytest.approx(np.std(nn, ddof=1))
    assert metrics.pnn50 == pytest.approx(100.0 / 3.0)


def test_buffer_is_bounded_at_256():
    calc = BeatIntervalCalculator()
    for i in range(300):
        calc.add_interval(700.0 + i)

    assert calc.sample_count == 256
    assert calc.capacity == 256


def test_reset_forgets_previous_beat():
    calc = BeatIntervalCalculator()
    calc.add_beat(0.0)
    calc.add_beat(900.0)
    calc.reset()

    assert calc.add_beat(5_000.0) is False
    assert calc.sample_count == 0
    assert calc.rejected_count == 0
