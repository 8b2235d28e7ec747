# ppg_hrv/hrv_metrics/beat_calculator.py
"""
HRV for devices that emit discrete beat timestamps or RR intervals directly.

No filtering, no peak detection, no windowing: each interval only has to
pass the hard physiological bounds (no statistical baseline) before it
enters a bounded FIFO (capacity 256). Metrics follow the same "unavailable"
(None) convention as the windowed path below the 2-sample minimum.
"""

from typing import Optional

from ppg_hrv.config.settings import settings
from ppg_hrv.hrv_metrics.engine import HRVMetrics, HRVMetricsEngine
from ppg_hrv.hrv_metrics.validation import is_valid_ibi


class BeatIntervalCalculator:
    def __init__(
        self,
        capacity: int = settings.beat.capacity,
        min_samples: int = settings.beat.min_samples,
        ibi_min_ms: float = settings.ppg.ibi_min_ms,
        ibi_max_ms: float = settings.ppg.ibi_max_ms,
    ) -> None:
        self.ibi_min_ms = ibi_min_ms
        self.ibi_max_ms = ibi_max_ms
        self._engine = HRVMetricsEngine(
            capacity=capacity,
            rmssd_min_samples=min_samples,
            sdnn_min_samples=min_samples,
            pnn50_min_samples=min_samples,
        )
        self._last_beat_ms: Optional[float] = None
        self.rejected_count: int = 0

    def add_beat(self, timestamp_ms: float) -> bool:
        """
        Register a beat; the interval to the previous beat is validated.

        The first beat only sets the reference timestamp. Returns True when
        an interval was accepted.
        """
        accepted = False
        if self._last_beat_ms is not None:
            accepted = self.add_interval(timestamp_ms - self._last_beat_ms)
        self._last_beat_ms = float(timestamp_ms)
        return accepted

    def add_interval(self, rr_ms: float) -> bool:
        """Validate and store an RR interval (ms). Returns True if accepted."""
        if not is_valid_ibi(rr_ms, None, self.ibi_min_ms, self.ibi_max_ms):
            self.rejected_count += 1
            return False
        self._engine.push(rr_ms)
        return True

    def get_metrics(self) -> HRVMetrics:
        return self._engine.compute()

    @property
    def sample_count(self) -> int:
        return len(self._engine)

    @property
    def capacity(self) -> int:
        return self._engine.capacity

    def reset(self) -> None:
        self._engine.reset()
        self._last_beat_ms = None
        self.rejected_count = 0
