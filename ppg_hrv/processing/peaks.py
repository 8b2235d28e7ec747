# ppg_hrv/processing/peaks.py
"""
Adaptive-threshold peak detection on a single analysis window.

Steps:
    1) Robust-normalize the window (median / MAD).
    2) Candidates: interior local maxima above k / 1.4826 in normalized units.
       (Raw threshold median + k*rawMAD becomes k*rawMAD / (rawMAD*1.4826)
       after normalization, so raw MAD never has to be tracked separately.)
    3) Greedy left-to-right de-duplication with a refractory distance:
       within min_dist samples only the highest candidate survives.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np

from ppg_hrv.processing.normalize import MAD_TO_SIGMA, robust_normalize


ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class PeakResult:
    """
    Attributes:
        indices:
            Raw candidate peak indices (window-relative).
        valid_indices:
            Candidates after refractory de-duplication.
        mad:
            Scaled MAD of the window the peaks were found in.
    """
    indices: List[int]
    valid_indices: List[int]
    mad: float = 0.0


def min_distance_samples(min_distance_sec: float, fs: float) -> int:
    return int(math.floor(min_distance_sec * fs))


def _candidate_indices(norm: np.ndarray, threshold: float) -> np.ndarray:
    # Interior samples only: y[i] > thr, y[i] > y[i-1], y[i] >= y[i+1]
    mid = norm[1:-1]
    mask = (mid > threshold) & (mid > norm[:-2]) & (mid >= norm[2:])
    return np.flatnonzero(mask) + 1


def deduplicate_peaks(
    candidates: Sequence[int],
    amplitudes: np.ndarray,
    min_dist: int,
) -> List[int]:
    """
    Single greedy pass keeping the highest candidate inside each refractory span.

    A candidate closer than `min_dist` to the held one replaces it only when
    strictly higher; a far-enough candidate commits the held one.
    """
    valid: List[int] = []
    if len(candidates) == 0:
        return valid

    held_idx = int(candidates[0])
    held_val = amplitudes[held_idx]

    for idx in candidates[1:]:
        idx = int(idx)
        val = amplitudes[idx]
        if idx - held_idx < min_dist:
            if val > held_val:
                held_idx, held_val = idx, val
        else:
            valid.append(held_idx)
            held_idx, held_val = idx, val

    valid.append(held_idx)
    return valid


def detect_peaks(
    window: ArrayLike,
    fs: float,
    min_distance_sec: float = 0.35,
    threshold_k: float = 0.6,
) -> PeakResult:
    """
    Detect heartbeat peaks in one window.

    Args:
        window:
            Filtered samples (any amplitude scale).
        fs:
            Sample rate in Hz.
        min_distance_sec:
            Refractory distance; floor(min_distance_sec * fs) samples.
        threshold_k:
            Sensitivity in MAD units above the window median.

    Returns:
        PeakResult with raw candidates and the de-duplicated subset.
    """
    x = np.asarray(window, dtype=np.float64)
    if x.size < 3:
        return PeakResult(indices=[], valid_indices=[], mad=0.0)

    normalized = robust_normalize(x)
    threshold = threshold_k / MAD_TO_SIGMA

    candidates = _candidate_indices(normalized.data, threshold)
    valid = deduplicate_peaks(
        candidates,
        normalized.data,
        min_distance_samples(min_distance_sec, fs),
    )

    return PeakResult(
        indices=[int(i) for i in candidates],
        valid_indices=valid,
        mad=normalized.mad,
    )
