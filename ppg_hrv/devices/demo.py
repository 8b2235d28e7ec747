# ppg_hrv/devices/demo.py
# Simulated heart-rate monitor for demos without hardware.

import asyncio
import math
import time
from typing import Optional

import numpy as np

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.types import DeviceMode, HeartRateSample, SampleHub, SampleListener
from ppg_hrv.utils.logging_utils import get_logger


logger = get_logger(module_name="demo_device", logfile_name="devices.log")


def simulate_sample(
    elapsed_s: float,
    timestamp_ms: float,
    rng: np.random.Generator,
) -> HeartRateSample:
    """
    BPM: 70 + 10*sin(2*pi*t/60) plus +/-2 noise.
    RR: 60000/bpm plus uniform noise whose amplitude itself oscillates
    between 10 and 50 ms over a 120 s cycle (relaxed vs. stressed).
    """
    base_bpm = 70.0 + 10.0 * math.sin(elapsed_s * 2.0 * math.pi / 60.0)
    bpm = int(round(base_bpm + rng.uniform(-2.0, 2.0)))

    hrv_amplitude = 30.0 + 20.0 * math.sin(elapsed_s * 2.0 * math.pi / 120.0)
    rr_ms = 60000.0 / bpm + rng.uniform(-hrv_amplitude, hrv_amplitude)

    return HeartRateSample(timestamp_ms=timestamp_ms, bpm=bpm, rr_ms=rr_ms)


class DemoHeartRateDevice:
    mode = DeviceMode.DEMO_SIMULATED

    def __init__(
        self,
        interval_s: float = settings.device.demo_interval_s,
        connect_delay_s: float = settings.device.demo_connect_delay_s,
        seed: Optional[int] = None,
    ) -> None:
        self.name: str = "Demo Device"
        self.is_connected: bool = False
        self.interval_s = interval_s
        self.connect_delay_s = connect_delay_s
        self._rng = np.random.default_rng(seed)
        self._hub = SampleHub()
        self._task: Optional[asyncio.Task] = None
        self._start_time: float = 0.0

    def subscribe(self, listener: SampleListener) -> None:
        self._hub.subscribe(listener)

    def unsubscribe(self, listener: SampleListener) -> None:
        self._hub.unsubscribe(listener)

    async def connect(self) -> None:
        self.is_connected = True
        self._start_time = time.monotonic()
        # Simulated pairing delay
        await asyncio.sleep(self.connect_delay_s)
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        logger.info("Demo device connected (interval=%.2fs)", self.interval_s)

    async def disconnect(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.is_connected = False
        logger.info("Demo device disconnected")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            elapsed = time.monotonic() - self._start_time
            try:
                self._hub.publish(simulate_sample(elapsed, time.time() * 1000.0, self._rng))
            except Exception:
                # A failing listener loses this sample; the stream keeps running.
                logger.error("Demo sample delivery failed", exc_info=True)
