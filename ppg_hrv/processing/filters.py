# ppg_hrv/processing/filters.py
"""
Stateless bandpass filtering for raw PPG buffers.

Two cascaded 2nd-order Butterworth sections (Q = 0.707):
    1) highpass at fc_low  -> removes baseline drift / respiration modulation
    2) lowpass  at fc_high -> removes high-frequency noise

Coefficients come from the bilinear-transform ("Audio EQ Cookbook")
formulas and are applied with the direct-form difference equation

    y[n] = b0*x[n] + b1*x[n-1] + b2*x[n-2] - a1*y[n-1] - a2*y[n-2]

Every call starts from zeroed delay state; nothing survives between calls.
"""

import math
from typing import Literal, Sequence, Tuple, Union

import numpy as np
from scipy.signal import lfilter


ArrayLike = Union[Sequence[float], np.ndarray]
FilterKind = Literal["hp", "lp"]

BUTTERWORTH_Q = 0.707


def biquad_coefficients(
    kind: FilterKind,
    fs: float,
    fc: float,
    q: float = BUTTERWORTH_Q,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalized (a0 = 1) coefficients of a 2nd-order highpass or lowpass section.

    Returns:
        b: [b0, b1, b2]
        a: [a1, a2]  (the feedback terms of the difference equation)
    """
    if fs <= 0:
        raise ValueError(f"fs must be positive, got {fs}")
    if not 0 < fc < fs / 2.0:
        raise ValueError(f"cutoff {fc} Hz must lie in (0, fs/2) for fs={fs}")

    w0 = 2.0 * math.pi * fc / fs
    alpha = math.sin(w0) / (2.0 * q)
    cos_w0 = math.cos(w0)

    if kind == "hp":
        b0 = (1.0 + cos_w0) / 2.0
        b1 = -(1.0 + cos_w0)
        b2 = (1.0 + cos_w0) / 2.0
    elif kind == "lp":
        b0 = (1.0 - cos_w0) / 2.0
        b1 = 1.0 - cos_w0
        b2 = (1.0 - cos_w0) / 2.0
    else:
        raise ValueError(f"unknown biquad kind: {kind!r}")

    a0 = 1.0 + alpha
    a1 = -2.0 * cos_w0
    a2 = 1.0 - alpha

    b = np.array([b0, b1, b2], dtype=np.float64) / a0
    a = np.array([a1, a2], dtype=np.float64) / a0
    return b, a


def biquad_filter(samples: ArrayLike, b: np.ndarray, a: np.ndarray) -> np.ndarray:
    """Run one biquad section over `samples` with zero initial state."""
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return lfilter(b, np.concatenate(([1.0], a)), x)


def apply_bandpass(
    samples: ArrayLike,
    fs: float,
    fc_low: float = 0.7,
    fc_high: float = 4.0,
    q: float = BUTTERWORTH_Q,
) -> np.ndarray:
    """
    Highpass at fc_low followed by lowpass at fc_high.

    Output has the same length and alignment as the input; an empty input
    yields an empty array.
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)

    hp_b, hp_a = biquad_coefficients("hp", fs, fc_low, q)
    stage1 = biquad_filter(x, hp_b, hp_a)

    lp_b, lp_a = biquad_coefficients("lp", fs, fc_high, q)
    return biquad_filter(stage1, lp_b, lp_a)
