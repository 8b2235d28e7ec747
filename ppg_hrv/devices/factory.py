# ppg_hrv/devices/factory.py
# Selects the device variant for a configured mode.

from typing import Callable, Dict, Optional, Union

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.ble import BleHeartRateDevice
from ppg_hrv.devices.demo import DemoHeartRateDevice
from ppg_hrv.devices.kafka_stream import KafkaHeartRateDevice
from ppg_hrv.devices.types import DeviceMode, HeartRateDevice


_BUILDERS: Dict[DeviceMode, Callable[..., HeartRateDevice]] = {
    DeviceMode.BLE_REAL: BleHeartRateDevice,
    DeviceMode.DEMO_SIMULATED: DemoHeartRateDevice,
    DeviceMode.KAFKA_STREAM: KafkaHeartRateDevice,
}


def create_device(
    mode: Union[DeviceMode, str, None] = None,
    **kwargs,
) -> Optional[HeartRateDevice]:
    """
    Build the device for `mode` (default: settings.device.mode).

    "none" returns None; unknown modes raise ValueError.
    Extra keyword arguments go to the variant's constructor.
    """
    if mode is None:
        mode = settings.device.mode
    try:
        mode = DeviceMode(mode)
    except ValueError:
        valid = [m.value for m in DeviceMode]
        raise ValueError(f"Unknown device mode {mode!r}. Expected one of: {valid}") from None

    if mode is DeviceMode.NONE:
        return None
    return _BUILDERS[mode](**kwargs)
