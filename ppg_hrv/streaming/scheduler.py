# Real-time windowing loop over a filtered PPG signal
"""
Realtime window scheduler.

Responsibilities:
    - Hold the filtered signal (rebuilt on load / reconfigure).
    - Advance a floating-point sample cursor by dt * fs on every tick while
      PLAYING; wrap to 0 at the end of the signal and hard-reset analytics.
    - Extract a constant-length window ending at the cursor (left zero-padded).
    - Display pass (~100 ms): normalized, stride-downsampled waveform.
    - Analytics pass (hrv_update_ms): peaks -> absolute indices -> IBI
      validation -> NN history -> HRV metrics + EMA-smoothed BPM.

Concurrency:
    One lock guards the whole engine state; every public method takes it,
    so ticks never overlap and a tick always completes before the next one.
    The analytics pass computes into locals and commits in one step.

Configuration:
    - settings.ppg (PPGSettings)
"""

import math
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from threading import Lock
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ppg_hrv.config.settings import PPGSettings, settings
from ppg_hrv.hrv_metrics.engine import HRVMetrics, HRVMetricsEngine
from ppg_hrv.hrv_metrics.metrics import instantaneous_bpm
from ppg_hrv.hrv_metrics.validation import is_valid_ibi
from ppg_hrv.processing.filters import apply_bandpass
from ppg_hrv.processing.normalize import robust_normalize
from ppg_hrv.processing.peaks import detect_peaks
from ppg_hrv.utils.logging_utils import get_logger


ArrayLike = Union[Sequence[float], np.ndarray]

logger = get_logger(module_name="ppg_scheduler", logfile_name="engine.log")


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


@dataclass(frozen=True)
class DebugStats:
    window_seconds: float
    peaks_in_view: int
    nn_count: int
    mad: float
    rejected_count: int
    last_ibi_ms: Optional[float]
    processing_ms: float
    wrap_count: int


@dataclass(frozen=True)
class PublishedMetrics:
    """
    One analytics tick's output.

    bpm / rmssd / sdnn / pnn50 are None while unavailable; a computed 0.0
    is a real value.
    """
    bpm: Optional[float]
    rmssd: Optional[float]
    sdnn: Optional[float]
    pnn50: Optional[float]
    sample_count: int
    debug: DebugStats

    def to_dict(self) -> dict:
        return asdict(self)


def _new_history(cfg: PPGSettings) -> HRVMetricsEngine:
    return HRVMetricsEngine(
        capacity=cfg.nn_target,
        rmssd_min_samples=cfg.rmssd_min_samples,
        sdnn_min_samples=cfg.sdnn_min_samples,
        pnn50_min_samples=cfg.pnn50_min_samples,
        pnn50_threshold_ms=cfg.pnn50_threshold_ms,
    )


@dataclass
class EngineState:
    """
    Mutable analytics state, reset as one unit.

    abs_peak_index is the absolute sample index of the last processed peak
    (None before the first batch); it never decreases between resets.
    """
    history: HRVMetricsEngine
    cursor: float = 0.0
    abs_peak_index: Optional[int] = None
    smoothed_bpm: Optional[float] = None
    rejected_count: int = 0
    last_ibi_ms: Optional[float] = None
    wrap_count: int = 0

    def reset(self) -> None:
        self.history.reset()
        self.abs_peak_index = None
        self.smoothed_bpm = None
        self.rejected_count = 0
        self.last_ibi_ms = None


def extract_window(signal: np.ndarray, end: int, length: int) -> Tuple[np.ndarray, int]:
    """
    Slice [end - length, end) of `signal`, left-padded with zeros when the
    start would be negative. Returns (window, absolute start index).
    """
    start = end - length
    if start < 0:
        window = np.concatenate((np.zeros(-start, dtype=np.float64), signal[:max(end, 0)]))
    else:
        window = signal[start:end]
    return window, start


def downsample_for_display(data: np.ndarray, max_points: int) -> List[float]:
    """Keep every `step`-th point so at most max_points remain."""
    if data.size > max_points > 0:
        step = math.ceil(data.size / max_points)
        data = data[::step]
    return data.tolist()


class RealtimeWindowScheduler:
    """
    Drives filter -> normalize -> peaks -> validation -> HRV on a replayed
    or streamed PPG signal. `tick(now_ms)` is invoked by an external
    periodic clock (see ppg_hrv.streaming.playback.PlaybackRunner).
    """

    def __init__(self, cfg: PPGSettings = settings.ppg) -> None:
        cfg.validate()
        self._cfg: PPGSettings = cfg
        self._lock: Lock = Lock()

        self._raw: np.ndarray = np.zeros(0, dtype=np.float64)
        self._filtered: np.ndarray = np.zeros(0, dtype=np.float64)

        self._state = EngineState(history=_new_history(cfg))
        self._playback: PlaybackState = PlaybackState.STOPPED

        self._last_tick_ms: Optional[float] = None
        self._next_display_ms: Optional[float] = None
        self._next_analytics_ms: Optional[float] = None

        self._waveform: List[float] = []
        self._latest: Optional[PublishedMetrics] = None

    # -------------------- SOURCE / CONFIG -------------------- #

    def load_signal(self, samples: ArrayLike) -> None:
        """Replace the raw source; re-filter and reset all analytics state."""
        raw = np.asarray(samples, dtype=np.float64).ravel()
        with self._lock:
            self._raw = raw
            self._rebuild_locked()
        logger.info("Signal loaded: %d samples (%.1f s at %.1f Hz)",
                    raw.size, raw.size / self._cfg.fs, self._cfg.fs)

    def reconfigure(self, cfg: Optional[PPGSettings] = None, **overrides) -> PPGSettings:
        """
        Apply a new configuration (or field overrides on the current one).

        The filtered signal is rebuilt and analytics state reset.
        """
        with self._lock:
            new_cfg = replace(cfg or self._cfg, **overrides)
            new_cfg.validate()
            self._cfg = new_cfg
            self._state.history = _new_history(new_cfg)
            self._rebuild_locked()
        logger.info("Reconfigured: %s", new_cfg)
        return new_cfg

    def _rebuild_locked(self) -> None:
        cfg = self._cfg
        source = -self._raw if cfg.invert_signal else self._raw
        self._filtered = apply_bandpass(source, cfg.fs, cfg.fc_low, cfg.fc_high, cfg.filter_q)
        self._state.cursor = 0.0
        self._reset_locked()

    # -------------------- PLAYBACK CONTROL -------------------- #

    def start(self) -> None:
        with self._lock:
            self._playback = PlaybackState.PLAYING
            # dt restarts from the first tick after start
            self._last_tick_ms = None
        logger.info("Playback started")

    def stop(self) -> None:
        """Halt cursor advance; history and metrics are kept."""
        with self._lock:
            self._playback = PlaybackState.STOPPED
        logger.info("Playback stopped")

    def reset(self) -> None:
        """Clear NN history, peak index and smoothed BPM."""
        with self._lock:
            self._reset_locked()
        logger.info("Analytics state reset")

    def _reset_locked(self) -> None:
        self._state.reset()
        self._latest = None
        self._waveform = []
        self._next_display_ms = None
        self._next_analytics_ms = None

    # -------------------- READ ACCESS -------------------- #

    @property
    def config(self) -> PPGSettings:
        return self._cfg

    @property
    def playback_state(self) -> PlaybackState:
        with self._lock:
            return self._playback

    @property
    def latest(self) -> Optional[PublishedMetrics]:
        with self._lock:
            return self._latest

    @property
    def waveform(self) -> List[float]:
        with self._lock:
            return list(self._waveform)

    @property
    def cursor(self) -> float:
        with self._lock:
            return self._state.cursor

    @property
    def abs_peak_index(self) -> Optional[int]:
        with self._lock:
            return self._state.abs_peak_index

    @property
    def wrap_count(self) -> int:
        with self._lock:
            return self._state.wrap_count

    @property
    def nn_history(self) -> List[float]:
        return self._state.history.values()

    @property
    def signal_length(self) -> int:
        with self._lock:
            return int(self._filtered.size)

    # -------------------- TICK -------------------- #

    def tick(self, now_ms: float) -> Optional[PublishedMetrics]:
        """
        One scheduling step at wall-clock time `now_ms`.

        Returns the metrics published by this tick's analytics pass, or None
        when the analytics cadence did not fire (or no signal is loaded).
        """
        with self._lock:
            t0 = time.perf_counter()
            cfg = self._cfg

            dt = 0.0 if self._last_tick_ms is None else max(now_ms - self._last_tick_ms, 0.0)
            self._last_tick_ms = now_ms

            if self._filtered.size == 0:
                return None

            # A. Advance
            if self._playback is PlaybackState.PLAYING:
                self._state.cursor += dt / 1000.0 * cfg.fs
                if self._state.cursor >= self._filtered.size:
                    self._wrap_locked()

            # B. Window
            window, start = extract_window(
                self._filtered, int(math.floor(self._state.cursor)), cfg.window_samples
            )

            # C. Display (never feeds analytics)
            if self._next_display_ms is None or now_ms >= self._next_display_ms:
                self._next_display_ms = now_ms + cfg.gui_update_ms
                self._waveform = downsample_for_display(
                    robust_normalize(window).data, cfg.max_display_points
                )

            # D. Analytics
            if self._next_analytics_ms is not None and now_ms < self._next_analytics_ms:
                return None
            self._next_analytics_ms = now_ms + cfg.hrv_update_ms

            published = self._analyze_locked(window, start, t0)
            self._latest = published
            return published

    def _wrap_locked(self) -> None:
        # Avoids a spurious giant IBI across the loop discontinuity
        self._state.cursor = 0.0
        self._state.reset()
        self._state.wrap_count += 1
        self._next_analytics_ms = None
        logger.info("Playback wrapped (count=%d); analytics state reset", self._state.wrap_count)

    def _analyze_locked(self, window: np.ndarray, start: int, t0: float) -> PublishedMetrics:
        cfg = self._cfg
        state = self._state

        peaks = detect_peaks(window, cfg.fs, cfg.peak_min_distance_sec, cfg.peak_threshold_k)
        valid = peaks.valid_indices

        # Instantaneous BPM from this window only, then EMA with freeze
        instant = instantaneous_bpm(valid, cfg.fs, cfg.ibi_min_ms, cfg.ibi_max_ms)
        smoothed = self._smooth(state.smoothed_bpm, instant)

        abs_peaks = [start + i for i in valid]
        last_abs = state.abs_peak_index
        new_peaks = [p for p in abs_peaks if last_abs is None or p > last_abs]

        accepted: List[float] = []
        rejected = 0
        new_abs = last_abs

        if new_peaks:
            if last_abs is None:
                # First batch: backfill intervals among the new peaks themselves
                for prev, cur in zip(new_peaks, new_peaks[1:]):
                    ibi = (cur - prev) / cfg.fs * 1000.0
                    if is_valid_ibi(ibi, None, cfg.ibi_min_ms, cfg.ibi_max_ms,
                                    cfg.outlier_deviation):
                        accepted.append(ibi)
            else:
                baseline = state.history.median()
                prev = last_abs
                for p in new_peaks:
                    ibi = (p - prev) / cfg.fs * 1000.0
                    if is_valid_ibi(ibi, baseline, cfg.ibi_min_ms, cfg.ibi_max_ms,
                                    cfg.outlier_deviation):
                        accepted.append(ibi)
                    else:
                        rejected += 1
                    prev = p
            new_abs = new_peaks[-1]

        # Commit
        state.history.extend(accepted)
        state.abs_peak_index = new_abs
        state.rejected_count += rejected
        state.smoothed_bpm = smoothed
        if accepted:
            state.last_ibi_ms = accepted[-1]

        hrv: HRVMetrics = state.history.compute()

        if new_peaks or rejected:
            logger.debug("tick: peaks=%d new=%d accepted=%d rejected=%d nn=%d",
                         len(valid), len(new_peaks), len(accepted), rejected, hrv.sample_count)

        return PublishedMetrics(
            bpm=smoothed,
            rmssd=hrv.rmssd,
            sdnn=hrv.sdnn,
            pnn50=hrv.pnn50,
            sample_count=hrv.sample_count,
            debug=DebugStats(
                window_seconds=cfg.window_seconds,
                peaks_in_view=len(valid),
                nn_count=hrv.sample_count,
                mad=peaks.mad,
                rejected_count=state.rejected_count,
                last_ibi_ms=state.last_ibi_ms,
                processing_ms=(time.perf_counter() - t0) * 1000.0,
                wrap_count=state.wrap_count,
            ),
        )

    def _smooth(self, previous: Optional[float], instant: Optional[float]) -> Optional[float]:
        """
        EMA with freeze: out-of-range or missing readings keep the last value
        (None if there never was a valid one).
        """
        cfg = self._cfg
        if instant is None or instant < cfg.bpm_min or instant > cfg.bpm_max:
            return previous
        if previous is None:
            return instant
        return previous * (1.0 - cfg.ema_alpha) + instant * cfg.ema_alpha
