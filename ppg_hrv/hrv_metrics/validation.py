# ppg_hrv/hrv_metrics/validation.py

from typing import Optional


def is_valid_ibi(
    ibi_ms: float,
    baseline_median: Optional[float] = None,
    ibi_min_ms: float = 300.0,
    ibi_max_ms: float = 2000.0,
    max_deviation: float = 0.3,
) -> bool:
    """
    Accept or reject a candidate inter-beat interval.

    Rule 1 (always): ibi_min_ms <= ibi_ms <= ibi_max_ms.
    Rule 2 (only with a positive baseline): relative deviation from the
    baseline must not exceed max_deviation. Exactly max_deviation is
    accepted; anything above is rejected.

    With no baseline (cold start) only Rule 1 applies, so the history can
    bootstrap from nothing.
    """
    if ibi_ms < ibi_min_ms or ibi_ms > ibi_max_ms:
        return False

    if baseline_median is not None and baseline_median > 0:
        deviation = abs(ibi_ms - baseline_median) / baseline_median
        if deviation > max_deviation:
            return False

    return True
