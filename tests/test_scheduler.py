import numpy as np
import pytest

from conftest import sine_wave
from ppg_hrv.config.settings import PPGSettings
from ppg_hrv.streaming.scheduler import (
    PlaybackState,
    RealtimeWindowScheduler,
    downsample_for_display,
    extract_window,
)


STEP_MS = 20.0  # one sample per tick at 50 Hz


def run_ticks(scheduler, seconds, start_ms=0.0):
    """Tick at 50 Hz wall-clock; returns every published result."""
    published = []
    for k in range(int(seconds * 1000.0 / STEP_MS) + 1):
        result = scheduler.tick(start_ms + k * STEP_MS)
        if result is not None:
            published.append(result)
    return published


@pytest.fixture
def scheduler():
    return RealtimeWindowScheduler(PPGSettings())


def test_extract_window_pads_left_with_zeros():
    signal = np.arange(1, 11, dtype=float)
    window, start = extract_window(signal, end=4, length=6)

    assert start == -2
    assert window.tolist() == [0.0, 0.0, 1.0, 2.0, 3.0, 4.0]


def test_extract_window_inside_signal():
    signal = np.arange(10, dtype=float)
    window, start = extract_window(signal, end=8, length=3)

    assert start == 5
    assert window.tolist() == [5.0, 6.0, 7.0]


def test_downsample_for_display_uses_ceil_stride():
    points = downsample_for_display(np.arange(400, dtype=float), 150)
    assert len(points) == 134  # stride 3
    assert downsample_for_display(np.arange(10, dtype=float), 100) == list(range(10))


def test_tick_without_signal_publishes_nothing(scheduler):
    scheduler.start()
    assert scheduler.tick(0.0) is None
    assert scheduler.latest is None


def test_steady_60_bpm_converges(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    published = run_ticks(scheduler, 40.0)

    latest = published[-1]
    assert latest.bpm == pytest.approx(60.0, abs=1.0)
    assert latest.sample_count == 30
    assert latest.rmssd is not None and latest.rmssd < 30.0
    assert latest.sdnn is not None
    assert latest.pnn50 is not None
    assert scheduler.nn_history[-1] == pytest.approx(1000.0, abs=40.0)


def test_analytics_cadence_is_500_ms(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    published = run_ticks(scheduler, 10.0)

    # t = 0, 500, ..., 10000
    assert len(published) == 21


def test_nn_history_stays_bounded(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    for k in range(int(50_000 / STEP_MS)):
        scheduler.tick(k * STEP_MS)
        assert len(scheduler.nn_history) <= 30


def test_peak_index_never_decreases(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()

    seen = []
    for k in range(int(30_000 / STEP_MS)):
        scheduler.tick(k * STEP_MS)
        if scheduler.abs_peak_index is not None:
            seen.append(scheduler.abs_peak_index)

    assert seen
    assert all(b >= a for a, b in zip(seen, seen[1:]))


def test_wrap_resets_analytics_like_a_cold_start(scheduler):
    scheduler.load_signal(sine_wave(1.0, 10.0))
    scheduler.start()

    wrap_result = None
    for k in range(int(12_000 / STEP_MS)):
        result = scheduler.tick(k * STEP_MS)
        if scheduler.wrap_count == 1:
            wrap_result = result
            break

    # analytics is forced on the wrapping tick, over an all-zero window
    assert wrap_result is not None
    assert wrap_result.bpm is None
    assert wrap_result.sample_count == 0
    assert (wrap_result.rmssd, wrap_result.sdnn, wrap_result.pnn50) == (None, None, None)
    assert wrap_result.debug.wrap_count == 1
    assert wrap_result.debug.rejected_count == 0
    assert scheduler.cursor == 0.0
    assert scheduler.abs_peak_index is None
    assert scheduler.nn_history == []


def test_bpm_outside_range_is_never_published():
    # 0.5 Hz -> 30 bpm, below bpm_min
    scheduler = RealtimeWindowScheduler(PPGSettings())
    scheduler.load_signal(sine_wave(0.5, 30.0))
    scheduler.start()
    published = run_ticks(scheduler, 25.0)

    assert all(p.bpm is None for p in published)


def test_bpm_freezes_instead_of_following_invalid_rate(scheduler):
    signal = np.concatenate((sine_wave(1.0, 20.0), sine_wave(0.5, 40.0)))
    scheduler.load_signal(signal)
    scheduler.start()
    published = run_ticks(scheduler, 55.0)

    cfg = scheduler.config
    assert published[-1].bpm is not None
    assert all(cfg.bpm_min <= p.bpm <= cfg.bpm_max for p in published if p.bpm is not None)


def test_stop_keeps_history_and_cursor(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    run_ticks(scheduler, 20.0)

    scheduler.stop()
    cursor = scheduler.cursor
    history = scheduler.nn_history
    run_ticks(scheduler, 5.0, start_ms=30_000.0)

    assert scheduler.playback_state is PlaybackState.STOPPED
    assert scheduler.cursor == cursor
    assert scheduler.nn_history == history
    assert scheduler.latest is not None


def test_reset_clears_analytics(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    run_ticks(scheduler, 20.0)

    scheduler.reset()

    assert scheduler.nn_history == []
    assert scheduler.abs_peak_index is None
    assert scheduler.latest is None


def test_reconfigure_rejects_cutoff_above_nyquist(scheduler):
    with pytest.raises(ValueError):
        scheduler.reconfigure(fc_high=30.0)
    assert scheduler.config.fc_high == 4.0


def test_reconfigure_applies_and_resets(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    run_ticks(scheduler, 20.0)

    cfg = scheduler.reconfigure(window_seconds=4.0, max_display_points=100)

    assert cfg.window_samples == 200
    assert scheduler.nn_history == []
    assert scheduler.cursor == 0.0

    scheduler.tick(100_000.0)
    assert len(scheduler.waveform) == 100


def test_waveform_covers_window(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.tick(0.0)
    assert len(scheduler.waveform) == 400


def test_load_signal_resets_cursor(scheduler, sine_60bpm):
    scheduler.load_signal(sine_60bpm)
    scheduler.start()
    run_ticks(scheduler, 5.0)
    assert scheduler.cursor > 0

    scheduler.load_signal(sine_60bpm)
    assert scheduler.cursor == 0.0
    assert scheduler.signal_length == sine_60bpm.size


def test_extra_beat_is_rejected_and_skipped(scheduler):
    # narrow pulse on the trough at 30.74 s, half a beat from both neighbours
    extra_at = 1537
    n = np.arange(3000)
    signal = sine_wave(1.0, 60.0) + 4.0 * np.exp(-((n - extra_at) ** 2) / (2 * 2.5 ** 2))
    scheduler.load_signal(signal)
    scheduler.start()

    rejected_before = None
    last = None
    for k in range(int(40_000 / STEP_MS) + 1):
        result = scheduler.tick(k * STEP_MS)
        if result is None:
            continue
        last = result
        if scheduler.cursor < extra_at - 10:
            rejected_before = result.debug.rejected_count
        # the half-beat intervals around the extra pulse never reach the history
        assert not any(400.0 < nn < 650.0 for nn in scheduler.nn_history)

    assert rejected_before is not None
    assert last.debug.rejected_count > rejected_before
    assert scheduler.abs_peak_index > extra_at + 25
    assert last.sample_count == 30
