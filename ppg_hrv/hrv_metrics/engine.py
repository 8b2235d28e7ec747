# Keeps the last N accepted NN intervals and derives HRV metrics from them
"""
Bounded rolling NN history plus RMSSD / SDNN / pNN50 computation.

Responsibilities:
    - Store the most recent `capacity` accepted intervals (FIFO eviction).
    - Provide the current median as a statistical baseline for validation.
    - Recompute every metric from scratch on request, gated per metric by
      a minimum sample count.

Configuration:
    - Windowed (PPG) path: capacity 30, minimums 20 / 30 / 20
      (settings.ppg.nn_target, *_min_samples)
    - Discrete beat path: capacity 256, minimum 2 for every metric
      (settings.beat)
"""

from collections import deque
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Deque, Dict, Iterable, List, Optional

from ppg_hrv.hrv_metrics.metrics import median_nn, pnn50, rmssd, sdnn


@dataclass(frozen=True)
class HRVMetrics:
    """
    Snapshot of time-domain HRV metrics.

    Attributes:
        rmssd / sdnn:
            Milliseconds, or None while unavailable.
        pnn50:
            Percentage (0-100), or None while unavailable.
        sample_count:
            Number of NN intervals the snapshot was computed from.
    """
    rmssd: Optional[float]
    sdnn: Optional[float]
    pnn50: Optional[float]
    sample_count: int

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


class NNHistory:
    """
    Insertion-ordered, count-bounded FIFO of accepted intervals (ms).

    deque(maxlen=capacity) drops from the left, so the oldest entry is
    always the one evicted.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity: int = int(capacity)
        self._data: Deque[float] = deque(maxlen=self.capacity)

    def push(self, nn_ms: float) -> None:
        self._data.append(float(nn_ms))

    def extend(self, values: Iterable[float]) -> None:
        self._data.extend(float(v) for v in values)

    def values(self) -> List[float]:
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class HRVMetricsEngine:
    """
    NN history owner with per-metric minimum-sample gating.

    The global lock keeps push / compute consistent when the engine is
    shared between a producer thread and a reader (API handler).
    """

    def __init__(
        self,
        capacity: int = 30,
        rmssd_min_samples: int = 20,
        sdnn_min_samples: int = 30,
        pnn50_min_samples: int = 20,
        pnn50_threshold_ms: float = 50.0,
    ) -> None:
        self.history = NNHistory(capacity)
        self.rmssd_min_samples = rmssd_min_samples
        self.sdnn_min_samples = sdnn_min_samples
        self.pnn50_min_samples = pnn50_min_samples
        self.pnn50_threshold_ms = pnn50_threshold_ms
        self._lock: Lock = Lock()

    @property
    def capacity(self) -> int:
        return self.history.capacity

    def push(self, nn_ms: float) -> None:
        with self._lock:
            self.history.push(nn_ms)

    def extend(self, values: Iterable[float]) -> None:
        """Append a batch of accepted intervals in one step."""
        batch = [float(v) for v in values]
        with self._lock:
            self.history.extend(batch)

    def median(self) -> Optional[float]:
        with self._lock:
            return median_nn(self.history.values())

    def values(self) -> List[float]:
        with self._lock:
            return self.history.values()

    def compute(self) -> HRVMetrics:
        """Full recomputation from the current history (not incremental)."""
        nn = self.values()
        return HRVMetrics(
            rmssd=rmssd(nn, min_samples=self.rmssd_min_samples),
            sdnn=sdnn(nn, min_samples=self.sdnn_min_samples),
            pnn50=pnn50(
                nn,
                min_samples=self.pnn50_min_samples,
                threshold_ms=self.pnn50_threshold_ms,
            ),
            sample_count=len(nn),
        )

    def reset(self) -> None:
        with self._lock:
            self.history.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self.history)
