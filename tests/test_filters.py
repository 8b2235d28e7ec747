import numpy as np
import pytest

from ppg_hrv.processing.filters import apply_bandpass, biquad_coefficients, biquad_filter
from conftest import sine_wave


def _direct_form_1(x, b, a):
    y = np.zeros_like(x)
    x1 = x2 = y1 = y2 = 0.0
    for n, xn in enumerate(x):
        yn = b[0] * xn + b[1] * x1 + b[2] * x2 - a[0] * y1 - a[1] * y2
        x2, x1 = x1, xn
        y2, y1 = y1, yn
        y[n] = yn
    return y


def test_output_has_same_length():
    x = np.random.default_rng(0).normal(size=777)
    assert apply_bandpass(x, 50.0).shape == x.shape


def test_empty_input_gives_empty_output():
    assert apply_bandpass([], 50.0).size == 0


def test_highpass_blocks_dc_and_lowpass_passes_it():
    hp_b, hp_a = biquad_coefficients("hp", 50.0, 0.7)
    lp_b, lp_a = biquad_coefficients("lp", 50.0, 4.0)

    assert hp_b.sum() / (1 + hp_a.sum()) == pytest.approx(0.0, abs=1e-12)
    assert lp_b.sum() / (1 + lp_a.sum()) == pytest.approx(1.0)


def test_matches_difference_equation():
    x = np.random.default_rng(1).normal(size=300)
    b, a = biquad_coefficients("hp", 50.0, 0.7)
    np.testing.assert_allclose(biquad_filter(x, b, a), _direct_form_1(x, b, a), atol=1e-10)


def test_calls_do_not_share_state():
    x = sine_wave(1.0, 10.0)
    np.testing.assert_array_equal(apply_bandpass(x, 50.0), apply_bandpass(x, 50.0))


def test_baseline_offset_is_removed():
    out = apply_bandpass(np.full(2000, 5.0), 50.0)
    assert np.abs(out[-200:]).max() < 1e-3


def test_cardiac_band_passes_and_noise_is_attenuated():
    passband = apply_bandpass(sine_wave(1.0, 30.0), 50.0)[-500:]
    stopband = apply_bandpass(sine_wave(15.0, 30.0), 50.0)[-500:]

    assert 0.75 < np.abs(passband).max() < 1.05
    assert np.abs(stopband).max() < 0.15


def test_cutoff_above_nyquist_is_rejected():
    with pytest.raises(ValueError):
        apply_bandpass(np.ones(10), 50.0, fc_low=0.7, fc_high=30.0)
