# ppg_hrv/devices/types.py
"""
Heart-rate device contract shared by every device variant.

Variants (BLE, demo, Kafka) do not inherit from a common base class; each
satisfies the HeartRateDevice protocol and composes a SampleHub for
delivery.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Optional, Protocol


class DeviceMode(str, Enum):
    BLE_REAL = "ble-real"
    DEMO_SIMULATED = "demo-simulated"
    KAFKA_STREAM = "kafka-stream"
    NONE = "none"


class DeviceConnectionError(RuntimeError):
    """Raised once when a device cannot be connected."""


@dataclass(frozen=True)
class HeartRateSample:
    """
    Attributes:
        timestamp_ms:
            Epoch milliseconds at which the sample was received / produced.
        bpm:
            Heart rate reported by the device.
        rr_ms:
            RR interval in milliseconds, if the device reported one.
    """
    timestamp_ms: float
    bpm: int
    rr_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeartRateSample":
        rr = data.get("rr_ms")
        return cls(
            timestamp_ms=float(data["timestamp_ms"]),
            bpm=int(data["bpm"]),
            rr_ms=float(rr) if rr is not None else None,
        )


SampleListener = Callable[[HeartRateSample], None]


class SampleHub:
    """
    Single-subscriber delivery point.

    Only one listener may be registered at a time, and delivery happens
    under a lock, so samples reach the consumer one at a time in arrival
    order even when published from different threads.
    """

    def __init__(self) -> None:
        self._listener: Optional[SampleListener] = None
        self._lock: Lock = Lock()

    def subscribe(self, listener: SampleListener) -> None:
        with self._lock:
            if self._listener is not None and self._listener != listener:
                raise RuntimeError("device already has an active subscriber")
            self._listener = listener

    def unsubscribe(self, listener: SampleListener) -> None:
        with self._lock:
            if self._listener == listener:
                self._listener = None

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    def publish(self, sample: HeartRateSample) -> None:
        with self._lock:
            if self._listener is not None:
                self._listener(sample)


class HeartRateDevice(Protocol):
    mode: DeviceMode
    name: str
    is_connected: bool

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    def subscribe(self, listener: SampleListener) -> None: ...

    def unsubscribe(self, listener: SampleListener) -> None: ...
