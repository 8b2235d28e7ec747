import pytest
from fastapi.testclient import TestClient

from conftest import sine_wave
from ppg_hrv.api import fastapi_app
from ppg_hrv.api.fastapi_app import LIVE, SCHEDULER, app
from ppg_hrv.devices.types import HeartRateSample


# No context manager: startup (and its background runner) stays off, the
# tests drive SCHEDULER.tick themselves.
client = TestClient(app)


@pytest.fixture(autouse=True)
def clean_engine():
    SCHEDULER.stop()
    LIVE.reset()
    yield
    SCHEDULER.stop()


def load_and_play(seconds=40.0):
    resp = client.post("/ppg/load", json={"samples": sine_wave(1.0, 60.0).tolist()})
    assert resp.status_code == 200
    assert client.post("/ppg/play").json() == {"state": "playing"}
    for k in range(int(seconds * 50) + 1):
        SCHEDULER.tick(k * 20.0)


def test_health():
    assert client.get("/health").json() == {"status": "ok"}


def test_metrics_before_any_analysis():
    client.post("/ppg/load", json={"samples": [0.0] * 10})
    body = client.get("/ppg/metrics").json()

    assert body["metrics"] is None
    assert body["status"]["bpm_label"] == "Analyzing..."


def test_load_reports_length():
    body = client.post("/ppg/load", json={"samples": [0.0, 1.0, 0.0]}).json()
    assert body["samples"] == 3


def test_playback_metrics_and_status():
    load_and_play()

    body = client.get("/ppg/metrics", params={"mode": "resting"}).json()
    assert body["state"] == "playing"
    assert body["metrics"]["bpm"] == pytest.approx(60.0, abs=1.0)
    assert body["metrics"]["sample_count"] == 30
    assert body["metrics"]["debug"]["window_seconds"] == 8.0
    assert body["status"]["bpm_label"] == "Normal"


def test_stop_and_reset():
    load_and_play(seconds=10.0)

    assert client.post("/ppg/stop").json() == {"state": "stopped"}
    client.post("/ppg/reset")
    assert client.get("/ppg/metrics").json()["metrics"] is None


def test_waveform_points():
    load_and_play(seconds=2.0)
    points = client.get("/ppg/waveform").json()["points"]
    assert len(points) == 400


def test_invalid_mode_is_rejected():
    assert client.get("/ppg/metrics", params={"mode": "sleeping"}).status_code == 422
    assert client.post("/live/connect", params={"mode": "serial"}).status_code == 422


def test_live_connect_none_mode():
    body = client.post("/live/connect", params={"mode": "none"}).json()
    assert body == {"connected": False, "mode": "none"}
    assert fastapi_app._live_device is None


def test_live_metrics_and_reset():
    LIVE.handle_sample(HeartRateSample(timestamp_ms=0.0, bpm=68, rr_ms=880.0))
    body = client.get("/live/metrics").json()
    assert body["bpm"] == 68
    assert body["hrv"]["sample_count"] == 1
    assert body["hrv"]["rmssd"] is None

    assert client.post("/live/reset").json()["history"] == []
    assert client.post("/live/disconnect").json() == {"connected": False}
