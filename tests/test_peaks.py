import numpy as np
import pytest

from ppg_hrv.processing.peaks import detect_peaks, min_distance_samples


def test_periodic_signal_peaks_one_period_apart():
    # crest exactly on samples 25, 75, ...
    t = np.arange(400) / 50.0
    result = detect_peaks(np.cos(2 * np.pi * (t - 0.5)), fs=50.0)

    assert len(result.valid_indices) == 8
    assert set(np.diff(result.valid_indices)) == {50}


def test_close_candidates_keep_the_higher_one():
    x = np.zeros(60)
    x[10], x[14], x[40] = 5.0, 8.0, 6.0

    result = detect_peaks(x, fs=50.0, min_distance_sec=0.35)

    assert result.indices == [10, 14, 40]
    assert result.valid_indices == [14, 40]


def test_lower_candidate_inside_refractory_span_is_discarded():
    x = np.zeros(60)
    x[10], x[14] = 8.0, 5.0

    assert detect_peaks(x, fs=50.0).valid_indices == [10]


def test_window_edges_are_never_candidates():
    x = np.zeros(30)
    x[0], x[-1], x[15] = 9.0, 9.0, 4.0

    assert detect_peaks(x, fs=50.0).indices == [15]


@pytest.mark.parametrize("seed", range(5))
@pytest.mark.parametrize("k", [0.0, 0.6, 2.0])
def test_valid_peaks_respect_refractory_distance(seed, k):
    x = np.random.default_rng(seed).normal(size=1000)
    min_dist = min_distance_samples(0.35, 50.0)

    valid = detect_peaks(x, fs=50.0, min_distance_sec=0.35, threshold_k=k).valid_indices

    assert len(valid) > 0
    assert np.all(np.diff(valid) >= min_dist)


def test_higher_threshold_finds_fewer_candidates():
    x = np.random.default_rng(3).normal(size=1000)
    low = detect_peaks(x, fs=50.0, threshold_k=0.2)
    high = detect_peaks(x, fs=50.0, threshold_k=2.0)

    assert len(high.indices) < len(low.indices)


def test_too_short_window():
    assert detect_peaks([1.0, 2.0], fs=50.0).valid_indices == []
