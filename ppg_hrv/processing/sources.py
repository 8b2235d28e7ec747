# ppg_hrv/processing/sources.py
# Raw PPG waveform sources: recorded CSV files and a synthetic pulse train.

from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd


def load_ppg_csv(path: Union[str, Path], column: Optional[str] = None) -> np.ndarray:
    """
    Load a raw PPG recording (one sample per row) as a 1D float array.

    Column choice:
        - `column` if given,
        - otherwise the first column that holds numeric data.

    Non-numeric and non-finite values are dropped; order is preserved.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"PPG file not found: {csv_path}")

    df = pd.read_csv(csv_path)

    if column is not None:
        if column not in df.columns:
            raise ValueError(
                f"Column {column!r} not found in {csv_path}. "
                f"Available columns: {list(df.columns)}"
            )
        values = pd.to_numeric(df[column], errors="coerce")
    else:
        values = None
        for name in df.columns:
            candidate = pd.to_numeric(df[name], errors="coerce")
            if candidate.notna().any():
                values = candidate
                break
        if values is None:
            raise ValueError(f"No numeric column in {csv_path}. Columns={list(df.columns)}")

    arr = values.to_numpy(dtype=np.float64)
    return arr[np.isfinite(arr)]


def synthetic_ppg(
    duration_s: float = 60.0,
    fs: float = 50.0,
    bpm: float = 60.0,
    noise_std: float = 0.0,
    drift_amplitude: float = 0.3,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    PPG-like pulse train for demos and tests.

    Each beat is a systolic Gaussian pulse followed by a smaller dicrotic
    wave; a 0.25 Hz respiratory drift and optional white noise are added.
    """
    n = int(round(duration_s * fs))
    if n <= 0:
        return np.zeros(0, dtype=np.float64)

    t = np.arange(n) / fs
    period = 60.0 / bpm
    phase = np.mod(t, period) / period

    systolic = np.exp(-((phase - 0.20) ** 2) / (2 * 0.05 ** 2))
    dicrotic = 0.35 * np.exp(-((phase - 0.50) ** 2) / (2 * 0.07 ** 2))
    drift = drift_amplitude * np.sin(2 * np.pi * 0.25 * t)

    signal = systolic + dicrotic + drift

    if noise_std > 0:
        rng = np.random.default_rng(seed)
        signal = signal + rng.normal(0.0, noise_std, size=n)

    return signal
