# Periodic tick source driving the realtime window scheduler.
"""
Background playback clock.

Stands in for a display-refresh callback: a single daemon thread calls
`scheduler.tick(now_ms)` once per period. One thread means ticks are
strictly sequential; the scheduler's own lock covers concurrent API reads.

Usage:
    runner = PlaybackRunner(scheduler)
    runner.start()      # begin ticking (playback state is unchanged)
    scheduler.start()   # begin advancing the cursor
    ...
    runner.stop()
"""

import threading
import time
from typing import Optional

from ppg_hrv.streaming.scheduler import RealtimeWindowScheduler
from ppg_hrv.utils.logging_utils import get_logger


logger = get_logger(module_name="playback_runner", logfile_name="engine.log")

DEFAULT_PERIOD_S: float = 1.0 / 60.0


class PlaybackRunner:
    def __init__(
        self,
        scheduler: RealtimeWindowScheduler,
        period_s: float = DEFAULT_PERIOD_S,
    ) -> None:
        if period_s <= 0:
            raise ValueError(f"period_s must be positive, got {period_s}")
        self.scheduler = scheduler
        self.period_s = float(period_s)
        self.tick_count: int = 0

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the tick thread if not already running."""
        if self.is_running:
            return

        self._stop_event.clear()
        t = threading.Thread(target=self._run, name="ppg-playback", daemon=True)
        t.start()
        self._thread = t
        logger.info("Playback runner started (period=%.4fs)", self.period_s)

    def stop(self, timeout_s: float = 2.0) -> None:
        """Stop ticking; scheduler state is left untouched."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
            self._thread = None
        logger.info("Playback runner stopped after %d ticks", self.tick_count)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.scheduler.tick(started * 1000.0)
            except Exception:
                # A failed tick is logged; the next period retries from the
                # last committed state.
                logger.error("Scheduler tick failed", exc_info=True)
            self.tick_count += 1

            elapsed = time.monotonic() - started
            self._stop_event.wait(max(self.period_s - elapsed, 0.0))
