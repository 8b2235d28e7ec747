# Consumes heart-rate samples from a Kafka topic and delivers them in order.
"""
Kafka heart-rate device.

Responsibilities:
    - Subscribe to the configured heart-rate topic.
    - Deserialize JSON messages produced by ppg_hrv.tools.rr_producer.
    - Deliver each HeartRateSample to the single subscriber, in partition
      order, from one background thread.
    - Run a resilient loop with automatic reconnect until disconnected.

Configuration:
    - Kafka connection and topic: ppg_hrv.config.settings.settings.kafka
"""

import asyncio
import json
import threading
from typing import Any, Optional

from kafka import KafkaConsumer

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.types import (
    DeviceConnectionError,
    DeviceMode,
    HeartRateSample,
    SampleHub,
    SampleListener,
)
from ppg_hrv.utils.logging_utils import get_logger


logger = get_logger(module_name="kafka_device", logfile_name="devices.log")

RETRY_DELAY_S: float = 2.0
POLL_TIMEOUT_MS: int = 500
SHUTDOWN_TIMEOUT_S: float = POLL_TIMEOUT_MS / 1000.0 + RETRY_DELAY_S


def parse_message(data: Any) -> Optional[HeartRateSample]:
    """
    Validate one deserialized message; None for messages to skip.

    Expected schema:
        {"timestamp_ms": <float>, "bpm": <int>, "rr_ms": <float | null>}
    """
    if not isinstance(data, dict):
        logger.warning("skipped non-dict message: %r", data)
        return None
    if "timestamp_ms" not in data or "bpm" not in data:
        logger.warning("skipped message without timestamp_ms/bpm: %r", data)
        return None
    try:
        return HeartRateSample.from_dict(data)
    except (TypeError, ValueError):
        logger.warning("skipped malformed message: %r", data)
        return None


class KafkaHeartRateDevice:
    mode = DeviceMode.KAFKA_STREAM

    def __init__(
        self,
        bootstrap_servers: str = settings.kafka.bootstrap_servers,
        topic: str = settings.kafka.hr_topic,
        group_id: str = settings.kafka.group_id,
    ) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.group_id = group_id
        self.name: str = f"Kafka:{topic}"
        self.is_connected: bool = False
        self._hub = SampleHub()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, listener: SampleListener) -> None:
        self._hub.subscribe(listener)

    def unsubscribe(self, listener: SampleListener) -> None:
        self._hub.unsubscribe(listener)

    async def connect(self) -> None:
        """
        Start the consumer thread, if not already running.

        Raises DeviceConnectionError while a previous connection's thread is
        still shutting down, so two consumers never feed the same hub.
        """
        old = self._thread
        if old is not None:
            if old.is_alive() and not self._stop_event.is_set():
                return
            await asyncio.to_thread(old.join, SHUTDOWN_TIMEOUT_S)
            if old.is_alive():
                raise DeviceConnectionError("previous Kafka consumer is still shutting down")
            self._thread = None

        # Each connection owns its stop event; a stale thread can never be revived
        stop_event = threading.Event()
        t = threading.Thread(
            target=self._run_consumer_forever,
            args=(stop_event,),
            name="kafka-hr",
            daemon=True,
        )
        self._stop_event = stop_event
        self._thread = t
        t.start()
        self.is_connected = True
        logger.info("Kafka consumer thread started (topic=%s, bootstrap=%s)",
                    self.topic, self.bootstrap_servers)

    async def disconnect(self) -> None:
        """
        Signal the consumer thread and wait for it off the event loop.

        The thread handle is only dropped once the thread has exited.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            await asyncio.to_thread(thread.join, SHUTDOWN_TIMEOUT_S)
            if thread.is_alive():
                logger.warning("Kafka consumer still stopping after %.1fs", SHUTDOWN_TIMEOUT_S)
            else:
                self._thread = None
        self.is_connected = False
        logger.info("Kafka consumer stopped")

    def _run_consumer_forever(self, stop_event: threading.Event) -> None:
        """
        Poll loop with reconnect. Any error (broker down, network, ...) is
        logged and the consumer is recreated after RETRY_DELAY_S.
        """
        while not stop_event.is_set():
            consumer: Optional[KafkaConsumer] = None
            try:
                consumer = KafkaConsumer(
                    self.topic,
                    bootstrap_servers=self.bootstrap_servers,
                    group_id=self.group_id,
                    auto_offset_reset="latest",
                    enable_auto_commit=True,
                    value_deserializer=lambda v: json.loads(v.decode("utf-8")),
                )
                logger.info("listening on topic=%r (group_id=%s)", self.topic, self.group_id)

                while not stop_event.is_set():
                    batches = consumer.poll(timeout_ms=POLL_TIMEOUT_MS)
                    for records in batches.values():
                        for record in records:
                            sample = parse_message(record.value)
                            if sample is not None:
                                self._hub.publish(sample)

            except Exception as exc:
                logger.error("consumer error: %r (retrying in %.0fs)", exc, RETRY_DELAY_S)
                stop_event.wait(RETRY_DELAY_S)

            finally:
                if consumer is not None:
                    try:
                        consumer.close()
                    except Exception:
                        logger.warning("consumer close failed", exc_info=True)
