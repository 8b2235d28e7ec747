# ppg_hrv/devices/ble.py
"""
Bluetooth LE heart-rate monitor (Heart Rate Service 0x180D).

Heart Rate Measurement (0x2A37) payload:
    Byte 0: flags
        bit 0    heart-rate format (0 = uint8, 1 = uint16 little-endian)
        bit 1-2  sensor contact status (bit 2 = supported, bit 1 = detected)
        bit 3    energy expended present (uint16, kJ)
        bit 4    RR-interval(s) present
    Then: heart rate, optional energy expended, zero or more uint16 RR
    values in units of 1/1024 s (ms = rr / 1024 * 1000).
"""

import struct
import time
from dataclasses import dataclass, field
from typing import List, Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.types import (
    DeviceConnectionError,
    DeviceMode,
    HeartRateSample,
    SampleHub,
    SampleListener,
)
from ppg_hrv.utils.logging_utils import get_logger


HEART_RATE_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HEART_RATE_MEASUREMENT_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

FLAG_HR_UINT16 = 0x01
FLAG_CONTACT_DETECTED = 0x02
FLAG_CONTACT_SUPPORTED = 0x04
FLAG_ENERGY_EXPENDED = 0x08
FLAG_RR_PRESENT = 0x10

logger = get_logger(module_name="ble_device", logfile_name="devices.log")


@dataclass(frozen=True)
class HeartRateMeasurement:
    bpm: int
    rr_intervals_ms: List[float] = field(default_factory=list)
    sensor_contact: Optional[bool] = None
    energy_expended_kj: Optional[int] = None


def rr_raw_to_ms(rr_raw: int) -> float:
    return rr_raw / 1024 * 1000


def decode_heart_rate_measurement(data: bytes) -> HeartRateMeasurement:
    """
    Decode one Heart Rate Measurement notification.

    Raises ValueError for payloads too short for the fields their flags
    announce. A trailing odd byte after the RR values is ignored.
    """
    payload = bytes(data)
    if len(payload) < 2:
        raise ValueError(f"heart-rate payload too short: {payload.hex()}")

    flags = payload[0]
    offset = 1

    if flags & FLAG_HR_UINT16:
        if len(payload) < offset + 2:
            raise ValueError(f"truncated uint16 heart rate: {payload.hex()}")
        (bpm,) = struct.unpack_from("<H", payload, offset)
        offset += 2
    else:
        bpm = payload[offset]
        offset += 1

    contact: Optional[bool] = None
    if flags & FLAG_CONTACT_SUPPORTED:
        contact = bool(flags & FLAG_CONTACT_DETECTED)

    energy: Optional[int] = None
    if flags & FLAG_ENERGY_EXPENDED:
        if len(payload) < offset + 2:
            raise ValueError(f"truncated energy expended field: {payload.hex()}")
        (energy,) = struct.unpack_from("<H", payload, offset)
        offset += 2

    rr_ms: List[float] = []
    if flags & FLAG_RR_PRESENT:
        while offset + 2 <= len(payload):
            (rr_raw,) = struct.unpack_from("<H", payload, offset)
            rr_ms.append(rr_raw_to_ms(rr_raw))
            offset += 2

    return HeartRateMeasurement(
        bpm=int(bpm),
        rr_intervals_ms=rr_ms,
        sensor_contact=contact,
        energy_expended_kj=energy,
    )


def samples_from_measurement(
    measurement: HeartRateMeasurement,
    timestamp_ms: float,
) -> List[HeartRateSample]:
    """One sample per RR value (payload order), or one sample without RR."""
    if not measurement.rr_intervals_ms:
        return [HeartRateSample(timestamp_ms=timestamp_ms, bpm=measurement.bpm)]
    return [
        HeartRateSample(timestamp_ms=timestamp_ms, bpm=measurement.bpm, rr_ms=rr)
        for rr in measurement.rr_intervals_ms
    ]


class BleHeartRateDevice:
    """Heart-rate strap / watch exposing the standard Heart Rate Service."""

    mode = DeviceMode.BLE_REAL

    def __init__(
        self,
        address: Optional[str] = settings.device.ble_address,
        scan_timeout_s: float = settings.device.ble_scan_timeout_s,
    ) -> None:
        self.address = address
        self.scan_timeout_s = scan_timeout_s
        self.name: str = "Bluetooth Device"
        self.is_connected: bool = False
        self._client: Optional[BleakClient] = None
        self._hub = SampleHub()

    def subscribe(self, listener: SampleListener) -> None:
        self._hub.subscribe(listener)

    def unsubscribe(self, listener: SampleListener) -> None:
        self._hub.unsubscribe(listener)

    async def _find_device(self):
        if self.address:
            return await BleakScanner.find_device_by_address(
                self.address, timeout=self.scan_timeout_s
            )
        devices = await BleakScanner.discover(
            timeout=self.scan_timeout_s, service_uuids=[HEART_RATE_SERVICE_UUID]
        )
        return devices[0] if devices else None

    async def connect(self) -> None:
        try:
            device = await self._find_device()
            if device is None:
                raise DeviceConnectionError("No heart-rate device found.")

            self.name = device.name or "Unknown Device"
            self._client = BleakClient(device, disconnected_callback=self._on_disconnected)
            await self._client.connect()
            await self._client.start_notify(HEART_RATE_MEASUREMENT_UUID, self._on_notify)
        except (BleakError, OSError, DeviceConnectionError) as exc:
            logger.error("BLE connection failed: %s", exc, exc_info=True)
            await self._cleanup()
            if isinstance(exc, DeviceConnectionError):
                raise
            raise DeviceConnectionError(str(exc)) from exc

        self.is_connected = True
        logger.info("Connected to %s", self.name)

    async def disconnect(self) -> None:
        await self._cleanup()
        logger.info("Disconnected from %s", self.name)

    async def _cleanup(self) -> None:
        client, self._client = self._client, None
        self.is_connected = False
        if client is None:
            return
        try:
            if client.is_connected:
                await client.stop_notify(HEART_RATE_MEASUREMENT_UUID)
                await client.disconnect()
        except BleakError as exc:
            logger.warning("BLE cleanup error ignored: %s", exc)

    def _on_disconnected(self, _client: BleakClient) -> None:
        logger.info("Device %s disconnected", self.name)
        self.is_connected = False

    def _on_notify(self, _sender, data: bytearray) -> None:
        try:
            measurement = decode_heart_rate_measurement(data)
        except ValueError:
            logger.warning("Dropped malformed heart-rate payload: %s", bytes(data).hex())
            return

        now_ms = time.time() * 1000.0
        for sample in samples_from_measurement(measurement, now_ms):
            self._hub.publish(sample)
