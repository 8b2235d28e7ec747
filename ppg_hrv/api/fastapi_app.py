# ppg_hrv/api/fastapi_app.py
"""
FastAPI-based PPG / HRV realtime service.

This service:
    - Replays a PPG waveform through RealtimeWindowScheduler (ticked by a
      background PlaybackRunner) and publishes BPM / RMSSD / SDNN / pNN50.
    - Connects a heart-rate device (BLE, demo, Kafka) to LiveMetricsService
      for the discrete beat / RR path.
    - Exposes both as JSON REST endpoints.

Endpoints:
    - GET  /health
    - POST /ppg/load, /ppg/play, /ppg/stop, /ppg/reset
    - GET  /ppg/metrics, /ppg/waveform
    - POST /live/connect, /live/disconnect, /live/reset
    - GET  /live/metrics
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ppg_hrv.config.settings import settings
from ppg_hrv.devices.factory import create_device
from ppg_hrv.devices.types import DeviceConnectionError, DeviceMode, HeartRateDevice
from ppg_hrv.hrv_metrics.vital_status import UserMode, get_vital_status
from ppg_hrv.processing.sources import load_ppg_csv, synthetic_ppg
from ppg_hrv.streaming.live_metrics import LiveMetricsService
from ppg_hrv.streaming.playback import PlaybackRunner
from ppg_hrv.streaming.scheduler import RealtimeWindowScheduler
from ppg_hrv.utils.logging_utils import get_logger


# FastAPI app instance
app = FastAPI(
    title="PPG HRV Realtime API",
    version="1.0.0",
    description="Realtime BPM and time-domain HRV from PPG playback or heart-rate devices.",
)

# CORS (open for development; narrow it in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = get_logger(module_name="hrv_api", logfile_name="api.log")

# Engine instances shared by the endpoints
SCHEDULER = RealtimeWindowScheduler(settings.ppg)
RUNNER = PlaybackRunner(SCHEDULER)
LIVE = LiveMetricsService()
_live_device: Optional[HeartRateDevice] = None


class SignalPayload(BaseModel):
    samples: List[float]


# --- Startup / shutdown --- #

@app.on_event("startup")
def startup_event() -> None:
    """
    Loads the configured PPG recording (or a synthetic one) and starts the
    playback clock. The cursor only advances after POST /ppg/play.
    """
    source = settings.paths.ppg_source_csv
    if source is not None:
        samples = load_ppg_csv(source)
        logger.info("Loaded PPG source %s (%d samples)", source, samples.size)
    else:
        samples = synthetic_ppg(duration_s=120.0, fs=settings.ppg.fs, bpm=72.0,
                                noise_std=0.05, seed=7)
        logger.info("No PPG_SOURCE_CSV configured; using synthetic signal")

    SCHEDULER.load_signal(samples)
    RUNNER.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    RUNNER.stop()
    await _disconnect_live_device()


# --- Health check --- #

@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# --- PPG playback path --- #

@app.post("/ppg/load")
def ppg_load(payload: SignalPayload) -> Dict[str, Any]:
    """Replace the replayed waveform (raw samples at settings.ppg.fs)."""
    SCHEDULER.load_signal(payload.samples)
    logger.info("POST /ppg/load samples=%d", len(payload.samples))
    return {"samples": SCHEDULER.signal_length, "state": SCHEDULER.playback_state.value}


@app.post("/ppg/play")
def ppg_play() -> Dict[str, str]:
    SCHEDULER.start()
    return {"state": SCHEDULER.playback_state.value}


@app.post("/ppg/stop")
def ppg_stop() -> Dict[str, str]:
    SCHEDULER.stop()
    return {"state": SCHEDULER.playback_state.value}


@app.post("/ppg/reset")
def ppg_reset() -> Dict[str, str]:
    SCHEDULER.reset()
    return {"state": SCHEDULER.playback_state.value}


@app.get("/ppg/metrics")
def ppg_metrics(
    mode: UserMode = Query(UserMode.RESTING, description="Grading context: 'resting' or 'active'."),
) -> Dict[str, Any]:
    """
    Latest published metrics. Values are null while unavailable (e.g. SDNN
    before 30 NN intervals).
    """
    latest = SCHEDULER.latest
    body: Dict[str, Any] = {
        "state": SCHEDULER.playback_state.value,
        "metrics": latest.to_dict() if latest is not None else None,
    }

    bpm = latest.bpm if latest is not None else None
    sdnn = latest.sdnn if latest is not None else None
    nn_count = latest.sample_count if latest is not None else 0
    body["status"] = get_vital_status(bpm, sdnn, mode=mode, nn_count=nn_count).to_dict()
    return body


@app.get("/ppg/waveform")
def ppg_waveform() -> Dict[str, Any]:
    """Normalized, downsampled window for display only."""
    return {"points": SCHEDULER.waveform}


# --- Live device path --- #

async def _disconnect_live_device() -> None:
    global _live_device

    if _live_device is None:
        return
    LIVE.detach()
    await _live_device.disconnect()
    _live_device = None


@app.post("/live/connect")
async def live_connect(
    mode: DeviceMode = Query(DeviceMode.DEMO_SIMULATED, description="Device variant."),
) -> Dict[str, Any]:
    global _live_device

    await _disconnect_live_device()
    device = create_device(mode)
    if device is None:
        return {"connected": False, "mode": mode.value}

    LIVE.attach(device)
    try:
        await device.connect()
    except DeviceConnectionError as exc:
        LIVE.detach()
        logger.error("POST /live/connect mode=%s failed: %s", mode.value, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    _live_device = device
    logger.info("POST /live/connect mode=%s device=%r", mode.value, device.name)
    return {"connected": True, "mode": mode.value, "name": device.name}


@app.post("/live/disconnect")
async def live_disconnect() -> Dict[str, bool]:
    await _disconnect_live_device()
    return {"connected": False}


@app.get("/live/metrics")
def live_metrics() -> Dict[str, Any]:
    return LIVE.snapshot()


@app.post("/live/reset")
def live_reset() -> Dict[str, Any]:
    LIVE.reset()
    return LIVE.snapshot()


# --- Local run entrypoint (uvicorn) --- #

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ppg_hrv.api.fastapi_app:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=True,
    )
