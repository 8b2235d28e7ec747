# ppg_hrv/processing/normalize.py
# Median / MAD rescaling of a sample window.

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np


ArrayLike = Union[Sequence[float], np.ndarray]

# 1.4826 * MAD matches the standard deviation of a normal distribution
MAD_TO_SIGMA = 1.4826


@dataclass(frozen=True)
class NormalizedWindow:
    """
    Attributes:
        data:
            (window - median) / scale, scale = mad or 1 when mad == 0.
        mad:
            Median absolute deviation scaled to a Gaussian-equivalent sigma.
        median:
            Window median.
    """
    data: np.ndarray
    mad: float
    median: float


def upper_median(values: ArrayLike) -> float:
    """Median as sorted[n // 2]; the convention used across the engine."""
    arr = np.sort(np.asarray(values, dtype=np.float64))
    return float(arr[arr.size // 2])


def robust_normalize(window: ArrayLike) -> NormalizedWindow:
    """
    Outlier-resistant unit-scale version of `window`.

    A constant (or silent) window has mad == 0 and falls back to scale 1,
    giving an all-zero output instead of a division error.
    """
    x = np.asarray(window, dtype=np.float64)
    if x.size == 0:
        return NormalizedWindow(data=np.zeros(0, dtype=np.float64), mad=0.0, median=0.0)

    median = upper_median(x)
    mad = upper_median(np.abs(x - median)) * MAD_TO_SIGMA
    scale = mad if mad != 0 else 1.0

    return NormalizedWindow(data=(x - median) / scale, mad=float(mad), median=median)
