import pandas as pd
import pytest

from ppg_hrv.tools.rr_producer import build_samples, load_rr_ms


def test_rr_seconds_are_converted(tmp_path):
    path = tmp_path / "rr.csv"
    pd.DataFrame({"rr": [0.8, 1.0, None]}).to_csv(path, index=False)

    assert load_rr_ms(path).tolist() == pytest.approx([800.0, 1000.0])


def test_rr_ms_column(tmp_path):
    path = tmp_path / "rr.csv"
    pd.DataFrame({"rr_ms": [750.0, 760.0]}).to_csv(path, index=False)

    assert load_rr_ms(path).tolist() == [750.0, 760.0]


def test_unknown_columns_raise(tmp_path):
    path = tmp_path / "rr.csv"
    pd.DataFrame({"ibi": [750.0]}).to_csv(path, index=False)

    with pytest.raises(ValueError):
        load_rr_ms(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_rr_ms(tmp_path / "missing.csv")


def test_build_samples_accumulates_timestamps():
    samples = build_samples([1000.0, 0.0, 800.0], start_ms=10_000.0)

    assert [s.timestamp_ms for s in samples] == [11_000.0, 11_800.0]
    assert [s.bpm for s in samples] == [60, 75]
    assert [s.rr_ms for s in samples] == [1000.0, 800.0]
