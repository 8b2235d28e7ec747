import os
import tempfile
from pathlib import Path

import numpy as np
import pytest

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("PPG_HRV_LOG_DIR", str(Path(tempfile.gettempdir()) / "ppg_hrv_test_logs"))


def sine_wave(freq_hz: float, duration_s: float, fs: float = 50.0, amplitude: float = 1.0) -> np.ndarray:
    t = np.arange(int(round(duration_s * fs))) / fs
    return amplitude * np.sin(2 * np.pi * freq_hz * t)


@pytest.fixture
def sine_60bpm() -> np.ndarray:
    return sine_wave(1.0, 60.0)
