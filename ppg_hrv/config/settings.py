# ppg_hrv/config/settings.py
"""
Central application configuration for the PPG / HRV realtime engine.

All constants and parameters:
    - PPG windowing, filtering, peak detection and HRV analysis parameters
    - Discrete beat-stream (heart-rate monitor) parameters
    - Device, Kafka, API settings
    - File paths

Read from here:
    from ppg_hrv.config.settings import settings
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# Project root: .../package
BASE_DIR = Path(__file__).resolve().parents[2]


def _optional_path(env_name: str) -> Optional[Path]:
    value = os.getenv(env_name)
    return Path(value) if value else None


@dataclass(frozen=True)
class PathSettings:
    """
    File and directory paths.

    Environment variables:
        PPG_HRV_LOG_DIR
        PPG_SOURCE_CSV
    """

    base_dir: Path = BASE_DIR
    log_dir: Path = Path(os.getenv("PPG_HRV_LOG_DIR", str(BASE_DIR / "logs")))

    # Optional PPG recording replayed by the API at startup
    ppg_source_csv: Optional[Path] = _optional_path("PPG_SOURCE_CSV")


@dataclass(frozen=True)
class PPGSettings:
    """
    Windowed (PPG waveform) path: filtering, peaks, validation and HRV gating.
    """

    # Sample rate (Hz) and analysis window length (s)
    fs: float = 50.0
    window_seconds: float = 8.0

    # Bandpass: highpass at fc_low, lowpass at fc_high (Hz)
    fc_low: float = 0.7
    fc_high: float = 4.0
    filter_q: float = 0.707

    # Reflective sensors report absorption; invert so systole is a positive peak
    invert_signal: bool = False

    # Peaks: refractory distance 0.35 s caps the resolvable rate near 171 bpm
    peak_min_distance_sec: float = 0.35
    peak_threshold_k: float = 0.6

    # NN history capacity and analytics cadence
    nn_target: int = 30
    hrv_update_ms: float = 500.0

    # Display cadence and maximum plotted points
    gui_update_ms: float = 100.0
    max_display_points: int = 1500

    # Physiological IBI limits (ms) and relative outlier deviation
    ibi_min_ms: float = 300.0
    ibi_max_ms: float = 2000.0
    outlier_deviation: float = 0.3

    # Per-metric minimum sample counts
    rmssd_min_samples: int = 20
    sdnn_min_samples: int = 30
    pnn50_min_samples: int = 20
    pnn50_threshold_ms: float = 50.0

    # BPM smoothing and the single authoritative validity range
    ema_alpha: float = 0.15
    bpm_min: float = 40.0
    bpm_max: float = 240.0

    @property
    def window_samples(self) -> int:
        return int(round(self.window_seconds * self.fs))

    def validate(self) -> None:
        """Raise ValueError for configurations the engine cannot run with."""
        nyquist = self.fs / 2.0
        if self.fs <= 0:
            raise ValueError(f"fs must be positive, got {self.fs}")
        if self.window_samples < 3:
            raise ValueError("window must span at least 3 samples")
        if not 0 < self.fc_low < self.fc_high < nyquist:
            raise ValueError(
                f"cutoffs must satisfy 0 < fc_low < fc_high < fs/2 "
                f"(fc_low={self.fc_low}, fc_high={self.fc_high}, fs={self.fs})"
            )
        if self.nn_target <= 0:
            raise ValueError("nn_target must be positive")
        if self.ibi_min_ms >= self.ibi_max_ms:
            raise ValueError("ibi_min_ms must be smaller than ibi_max_ms")
        if not 0 < self.ema_alpha <= 1:
            raise ValueError("ema_alpha must be in (0, 1]")


@dataclass(frozen=True)
class BeatSettings:
    """
    Discrete beat / RR event path (heart-rate monitor characteristic).
    """

    capacity: int = 256
    min_samples: int = 2

    # Live trend points kept for the API (~5 minutes at 1 sample/s)
    history_points: int = 300


@dataclass(frozen=True)
class DeviceSettings:
    """
    Heart-rate device selection.

    Environment variables:
        HRV_DEVICE_MODE   ("ble-real", "demo-simulated", "kafka-stream", "none")
        HRV_BLE_ADDRESS
    """

    mode: str = os.getenv("HRV_DEVICE_MODE", "demo-simulated")
    ble_address: Optional[str] = os.getenv("HRV_BLE_ADDRESS")
    ble_scan_timeout_s: float = 10.0

    demo_interval_s: float = 1.0
    demo_connect_delay_s: float = 0.5


@dataclass(frozen=True)
class KafkaSettings:
    """
    Kafka connection settings for the heart-rate sample stream.

    Environment variables:
        KAFKA_BOOTSTRAP
        KAFKA_HR_TOPIC
        KAFKA_GROUP_ID
    """

    bootstrap_servers: str = os.getenv("KAFKA_BOOTSTRAP", "localhost:9092")
    hr_topic: str = os.getenv("KAFKA_HR_TOPIC", "hr-samples")
    group_id: str = os.getenv("KAFKA_GROUP_ID", "ppg-hrv-consumer")


@dataclass(frozen=True)
class ApiSettings:
    """
    HRV FastAPI service settings.
    """

    host: str = os.getenv("HRV_API_HOST", "127.0.0.1")
    port: int = int(os.getenv("HRV_API_PORT", "8000"))
    base_url: str = os.getenv("HRV_API_BASE_URL", "http://127.0.0.1:8000")


@dataclass(frozen=True)
class AppSettings:
    paths: PathSettings = PathSettings()
    ppg: PPGSettings = PPGSettings()
    beat: BeatSettings = BeatSettings()
    device: DeviceSettings = DeviceSettings()
    kafka: KafkaSettings = KafkaSettings()
    api: ApiSettings = ApiSettings()


# Single global config object
settings = AppSettings()
