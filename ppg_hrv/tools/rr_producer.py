# Heart-rate sample producer (RR series or demo simulation -> Kafka)
"""
Streams heart-rate samples to Kafka for the kafka-stream device mode.

Source:
    - RR_SOURCE_CSV (env) or `csv_path`: per-recording RR CSV with an
      'rr' (seconds) or 'rr_ms' (milliseconds) column,
    - otherwise the demo simulation used by DemoHeartRateDevice.

Each message is a HeartRateSample dict:
    {"timestamp_ms": <float>, "bpm": <int>, "rr_ms": <float>}
"""

import json
import os
import time
from pathlib import Path
from typing import Iterator, List, Optional, Union

import numpy as np
import pandas as pd
from kafka import KafkaProducer

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.demo import simulate_sample
from ppg_hrv.devices.types import HeartRateSample
from ppg_hrv.utils.logging_utils import get_logger


KAFKA_BOOTSTRAP: str = settings.kafka.bootstrap_servers
KAFKA_TOPIC: str = settings.kafka.hr_topic

logger = get_logger(module_name="rr_producer", logfile_name="producer.log")


def load_rr_ms(csv_path: Union[str, Path]) -> np.ndarray:
    """
    Load RR intervals (ms) from a CSV file.

    Expected columns:
        - 'rr'     : seconds  -> converted to ms
        - 'rr_ms'  : already in milliseconds

    Returns:
        1D float array of RR intervals in ms, non-finite values removed.
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"RR file not found: {path}")

    df = pd.read_csv(path)

    if "rr" in df.columns:
        rr_ms = df["rr"].to_numpy(dtype=float) * 1000.0
    elif "rr_ms" in df.columns:
        rr_ms = df["rr_ms"].to_numpy(dtype=float)
    else:
        raise ValueError(f"RR column not found in {path}. Columns={list(df.columns)}")

    return rr_ms[np.isfinite(rr_ms)]


def build_samples(rr_ms: np.ndarray, start_ms: float) -> List[HeartRateSample]:
    """
    One sample per RR value; each timestamp is the cumulative beat time
    and bpm is the beat's instantaneous rate.
    """
    samples: List[HeartRateSample] = []
    t = float(start_ms)
    for rr in np.asarray(rr_ms, dtype=float):
        if rr <= 0:
            continue
        t += rr
        samples.append(HeartRateSample(timestamp_ms=t, bpm=int(round(60000.0 / rr)), rr_ms=float(rr)))
    return samples


def _demo_samples(seed: Optional[int] = None) -> Iterator[HeartRateSample]:
    rng = np.random.default_rng(seed)
    start = time.monotonic()
    while True:
        yield simulate_sample(time.monotonic() - start, time.time() * 1000.0, rng)


def main(
    csv_path: Optional[Union[str, Path]] = None,
    loop: bool = True,
    min_sleep_s: float = 0.05,
) -> None:
    """
    Main producer loop.

    Args:
        csv_path:
            RR CSV to stream. Defaults to RR_SOURCE_CSV; demo simulation if unset.
        loop:
            Restart the RR series from the beginning when it ends.
        min_sleep_s:
            Lower bound on the pause between sends.
    """
    csv_path = csv_path or os.environ.get("RR_SOURCE_CSV")

    producer = KafkaProducer(
        bootstrap_servers=KAFKA_BOOTSTRAP,
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        acks=1,
    )
    logger.info("Producing to topic=%r (source=%s, loop=%s)",
                KAFKA_TOPIC, csv_path or "demo", loop)

    try:
        if csv_path:
            rr_ms = load_rr_ms(csv_path)
            if rr_ms.size == 0:
                logger.warning("empty RR series in %s, exiting", csv_path)
                return
            while True:
                for sample in build_samples(rr_ms, time.time() * 1000.0):
                    producer.send(KAFKA_TOPIC, sample.to_dict())
                    # Pace at the recording's own rhythm
                    time.sleep(max(sample.rr_ms / 1000.0, min_sleep_s))
                producer.flush()
                if not loop:
                    break
        else:
            for sample in _demo_samples():
                producer.send(KAFKA_TOPIC, sample.to_dict())
                time.sleep(max(settings.device.demo_interval_s, min_sleep_s))

    finally:
        try:
            producer.flush()
        except Exception:
            logger.warning("final flush failed", exc_info=True)
        producer.close()
        logger.info("Producer done.")


if __name__ == "__main__":
    main(loop=True)
