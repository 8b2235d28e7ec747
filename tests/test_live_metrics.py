import pytest

from ppg_hrv.devices.demo import DemoHeartRateDevice
from ppg_hrv.devices.types import HeartRateSample
from ppg_hrv.streaming.live_metrics import LiveMetricsService


def test_rr_samples_feed_interval_path():
    service = LiveMetricsService()
    for i, rr in enumerate([800.0, 850.0, 800.0]):
        service.handle_sample(HeartRateSample(timestamp_ms=1000.0 * i, bpm=72, rr_ms=rr))

    snap = service.snapshot()
    assert snap["bpm"] == 72
    assert snap["hrv"]["sample_count"] == 3
    assert snap["hrv"]["rmssd"] == pytest.approx(50.0)
    assert len(snap["history"]) == 3


def test_samples_without_rr_use_timestamps():
    service = LiveMetricsService()
    for ts in (0.0, 900.0, 1800.0):
        service.handle_sample(HeartRateSample(timestamp_ms=ts, bpm=66))

    assert service.calculator.sample_count == 2
    assert service.snapshot()["hrv"]["rmssd"] == pytest.approx(0.0)


def test_rejected_intervals_are_reported():
    service = LiveMetricsService()
    service.handle_sample(HeartRateSample(timestamp_ms=0.0, bpm=250, rr_ms=240.0))

    snap = service.snapshot()
    assert snap["rejected_count"] == 1
    assert snap["hrv"]["sample_count"] == 0
    assert snap["hrv"]["rmssd"] is None


def test_trend_history_is_bounded():
    service = LiveMetricsService(history_points=5)
    for i in range(12):
        service.handle_sample(HeartRateSample(timestamp_ms=float(i), bpm=70, rr_ms=850.0))

    history = service.history()
    assert len(history) == 5
    assert history[0].time == 7.0


def test_attach_routes_device_samples():
    device = DemoHeartRateDevice()
    service = LiveMetricsService()
    service.attach(device)

    device._hub.publish(HeartRateSample(timestamp_ms=1.0, bpm=70, rr_ms=850.0))
    assert service.calculator.sample_count == 1

    service.detach()
    device._hub.publish(HeartRateSample(timestamp_ms=2.0, bpm=70, rr_ms=850.0))
    assert service.calculator.sample_count == 1


def test_second_consumer_on_same_device_is_refused():
    device = DemoHeartRateDevice()
    LiveMetricsService().attach(device)

    with pytest.raises(RuntimeError):
        LiveMetricsService().attach(device)


def test_reset():
    service = LiveMetricsService()
    service.handle_sample(HeartRateSample(timestamp_ms=0.0, bpm=70, rr_ms=850.0))
    service.reset()

    snap = service.snapshot()
    assert snap["bpm"] == 0
    assert snap["history"] == []
    assert snap["hrv"]["sample_count"] == 0
