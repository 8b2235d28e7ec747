# ppg_hrv/hrv_metrics/vital_status.py
# Grades BPM and SDNN for display, depending on resting vs. active context.

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ppg_hrv.config.settings import PPGSettings, settings


class VitalColor(str, Enum):
    OK = "ok"
    WARN = "warn"
    DANGER = "danger"
    MUTED = "muted"


class UserMode(str, Enum):
    RESTING = "resting"
    ACTIVE = "active"


@dataclass(frozen=True)
class BpmThresholds:
    low: float
    high: float
    # Between high and danger_above the label is "High" but only a warning
    danger_above: float = 100.0


@dataclass(frozen=True)
class SdnnThresholds:
    danger: float = 20.0
    warn: float = 50.0
    ok: float = 100.0
    invalid: float = 500.0


VITAL_THRESHOLDS: Dict[UserMode, BpmThresholds] = {
    UserMode.RESTING: BpmThresholds(low=50.0, high=90.0),
    UserMode.ACTIVE: BpmThresholds(low=60.0, high=160.0, danger_above=160.0),
}
SDNN_THRESHOLDS = SdnnThresholds()


@dataclass
class VitalStatus:
    bpm_color: VitalColor = VitalColor.MUTED
    bpm_label: str = "--"
    sdnn_color: VitalColor = VitalColor.MUTED
    sdnn_label: str = "--"
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["bpm_color"] = self.bpm_color.value
        data["sdnn_color"] = self.sdnn_color.value
        return data


def get_vital_status(
    bpm: Optional[float],
    sdnn: Optional[float],
    mode: UserMode = UserMode.RESTING,
    nn_count: int = 0,
    cfg: PPGSettings = settings.ppg,
) -> VitalStatus:
    """
    BPM validity uses the same [bpm_min, bpm_max] range as the scheduler's
    freeze rule; SDNN stays "Collecting..." until nn_target intervals exist.
    """
    res = VitalStatus()
    bpm_cfg = VITAL_THRESHOLDS[UserMode(mode)]

    # --- BPM ---
    if bpm is None or bpm != bpm or bpm == 0:
        res.bpm_label = "Analyzing..."
    elif bpm < cfg.bpm_min or bpm > cfg.bpm_max:
        res.bpm_label = "Inv"
        res.warnings.append("signal_invalid")
    elif bpm < bpm_cfg.low:
        res.bpm_color = VitalColor.DANGER
        res.bpm_label = "Low"
    elif bpm > bpm_cfg.high:
        res.bpm_color = VitalColor.DANGER if bpm > bpm_cfg.danger_above else VitalColor.WARN
        res.bpm_label = "High"
    else:
        res.bpm_color = VitalColor.OK
        res.bpm_label = "Normal"

    # --- SDNN ---
    if nn_count < cfg.nn_target or sdnn is None:
        res.sdnn_label = "Collecting..."
    elif sdnn < 0 or sdnn > SDNN_THRESHOLDS.invalid:
        res.sdnn_label = "Inv"
        res.warnings.append("hrv_invalid")
    elif sdnn >= SDNN_THRESHOLDS.ok:
        res.sdnn_color = VitalColor.OK
        res.sdnn_label = "High (Good)"
    elif sdnn >= SDNN_THRESHOLDS.warn:
        res.sdnn_color = VitalColor.OK
        res.sdnn_label = "Normal"
    elif sdnn >= SDNN_THRESHOLDS.danger:
        res.sdnn_color = VitalColor.WARN
        res.sdnn_label = "Low"
    else:
        res.sdnn_color = VitalColor.DANGER
        res.sdnn_label = "Very Low"

    return res
