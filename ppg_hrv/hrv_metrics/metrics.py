# ppg_hrv/hrv_metrics/metrics.py
# Pure HRV metric computations from NN intervals (ms).
#
# Every metric takes a minimum sample count and returns None ("unavailable")
# below it. None is distinct from a computed 0.0: perfectly regular
# intervals legitimately give rmssd == 0.

from typing import Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd


ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]


def _to_numpy(nn_ms: ArrayLike) -> np.ndarray:
    """Converts input NN series to a clean 1D numpy array (ms)."""
    arr = np.asarray(nn_ms, dtype=np.float64).ravel()
    # drop NaN values if any
    arr = arr[~np.isnan(arr)]
    return arr


def sdnn(nn_ms: ArrayLike, min_samples: int = 2) -> Optional[float]:
    """SDNN: sample standard deviation (ddof=1) of NN intervals, ms."""
    nn = _to_numpy(nn_ms)
    if nn.size < max(min_samples, 2):
        return None
    return float(np.std(nn, ddof=1))


def rmssd(nn_ms: ArrayLike, min_samples: int = 2) -> Optional[float]:
    """RMSSD: root mean square of successive differences, ms."""
    nn = _to_numpy(nn_ms)
    if nn.size < max(min_samples, 2):
        return None
    diff = np.diff(nn)
    return float(np.sqrt(np.mean(diff ** 2)))


def nn50(nn_ms: ArrayLike, threshold_ms: float = 50.0) -> int:
    """Counts successive NN differences greater than threshold_ms."""
    nn = _to_numpy(nn_ms)
    if nn.size < 2:
        return 0
    diff = np.abs(np.diff(nn))
    return int(np.sum(diff > threshold_ms))


def pnn50(
    nn_ms: ArrayLike,
    min_samples: int = 2,
    threshold_ms: float = 50.0,
) -> Optional[float]:
    """pNN50: % of successive NN differences > threshold_ms."""
    nn = _to_numpy(nn_ms)
    n = nn.size
    if n < max(min_samples, 2):
        return None
    # number of successive pairs is (n - 1)
    return float(100.0 * nn50(nn, threshold_ms=threshold_ms) / (n - 1))


def median_nn(nn_ms: ArrayLike) -> Optional[float]:
    """Upper median (sorted[n // 2]) of the series, None when empty."""
    nn = _to_numpy(nn_ms)
    if nn.size == 0:
        return None
    return float(np.sort(nn)[nn.size // 2])


def intervals_from_peaks(peak_indices: Sequence[int], fs: float) -> np.ndarray:
    """Inter-beat intervals (ms) between consecutive peak sample indices."""
    peaks = np.asarray(peak_indices, dtype=np.float64)
    if peaks.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(peaks) / fs * 1000.0


def instantaneous_bpm(
    peak_indices: Sequence[int],
    fs: float,
    ibi_min_ms: float = 300.0,
    ibi_max_ms: float = 2000.0,
) -> Optional[float]:
    """
    60000 / median IBI of one window's peaks.

    Only intervals inside the hard physiological bounds take part; None when
    fewer than two peaks or no in-bounds interval remain.
    """
    ibi = intervals_from_peaks(peak_indices, fs)
    ibi = ibi[(ibi >= ibi_min_ms) & (ibi <= ibi_max_ms)]
    med = median_nn(ibi)
    if med is None or med <= 0:
        return None
    return 60000.0 / med


def compute_time_domain_metrics(
    nn_ms: ArrayLike,
    rmssd_min_samples: int = 2,
    sdnn_min_samples: int = 2,
    pnn50_min_samples: int = 2,
    pnn50_threshold_ms: float = 50.0,
) -> Dict[str, Optional[float]]:
    """
    RMSSD / SDNN / pNN50 with per-metric gating, as a dict for the API layer.
    """
    return {
        "rmssd": rmssd(nn_ms, min_samples=rmssd_min_samples),
        "sdnn": sdnn(nn_ms, min_samples=sdnn_min_samples),
        "pnn50": pnn50(nn_ms, min_samples=pnn50_min_samples, threshold_ms=pnn50_threshold_ms),
        "nn50": nn50(nn_ms, threshold_ms=pnn50_threshold_ms),
    }
