# Consumes discrete heart-rate samples and keeps live HRV metrics
"""
Live metrics for the discrete-event path (heart-rate monitor samples).

Responsibilities:
    - Be the single consumption point for a device's samples.
    - Route rr_ms into BeatIntervalCalculator.add_interval, otherwise the
      beat timestamp into add_beat.
    - Keep a bounded trend of {time, bpm, rmssd} points for the API.

Configuration:
    - settings.beat (capacity, min_samples, history_points)
"""

from collections import deque
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.types import HeartRateDevice, HeartRateSample
from ppg_hrv.hrv_metrics.beat_calculator import BeatIntervalCalculator
from ppg_hrv.hrv_metrics.engine import HRVMetrics
from ppg_hrv.utils.logging_utils import get_logger


logger = get_logger(module_name="live_metrics", logfile_name="live.log")


@dataclass(frozen=True)
class TrendPoint:
    time: float
    bpm: int
    rmssd: Optional[float]


class LiveMetricsService:
    def __init__(
        self,
        capacity: int = settings.beat.capacity,
        min_samples: int = settings.beat.min_samples,
        history_points: int = settings.beat.history_points,
    ) -> None:
        self.calculator = BeatIntervalCalculator(capacity=capacity, min_samples=min_samples)
        self._history: Deque[TrendPoint] = deque(maxlen=history_points)
        self._bpm: int = 0
        self._hrv: HRVMetrics = self.calculator.get_metrics()
        self._device: Optional[HeartRateDevice] = None
        self._lock: Lock = Lock()

    # -------------------- DEVICE WIRING -------------------- #

    @property
    def device(self) -> Optional[HeartRateDevice]:
        return self._device

    def attach(self, device: HeartRateDevice) -> None:
        """Register as the device's only subscriber."""
        self.detach()
        device.subscribe(self.handle_sample)
        self._device = device
        logger.info("Attached to device %r (mode=%s)", device.name, device.mode.value)

    def detach(self) -> None:
        if self._device is None:
            return
        self._device.unsubscribe(self.handle_sample)
        logger.info("Detached from device %r", self._device.name)
        self._device = None

    # -------------------- SAMPLE HANDLING -------------------- #

    def handle_sample(self, sample: HeartRateSample) -> None:
        with self._lock:
            if sample.rr_ms is not None:
                self.calculator.add_interval(sample.rr_ms)
            else:
                self.calculator.add_beat(sample.timestamp_ms)

            hrv = self.calculator.get_metrics()
            self._bpm = sample.bpm
            self._hrv = hrv
            self._history.append(
                TrendPoint(time=sample.timestamp_ms, bpm=sample.bpm, rmssd=hrv.rmssd)
            )

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "bpm": self._bpm,
                "hrv": self._hrv.to_dict(),
                "rejected_count": self.calculator.rejected_count,
                "history": [asdict(p) for p in self._history],
            }

    def history(self) -> List[TrendPoint]:
        with self._lock:
            return list(self._history)

    def reset(self) -> None:
        with self._lock:
            self.calculator.reset()
            self._history.clear()
            self._bpm = 0
            self._hrv = self.calculator.get_metrics()
        logger.info("Live metrics reset")
