from __future__ import annotations

import json

import numpy as np
import pytest

from vibration_monitor_mcp.data_store import cache, store
from vibration_monitor_mcp.sensor_config import settings
from vibration_monitor_mcp.server import (
    assess_sensor,
    classify_vibration_level,
    compute_axis_spectrum,
    compute_axis_stats,
    find_spectrum_peaks,
    list_stored_buffers,
    load_axis_buffer,
    load_sensor_record,
    monitor_capabilities,
    refresh_analysis,
)
from vibration_monitor_mcp.synthetic import synthetic_sensor_record

N = 4096


def _sine_samples(freq: int = 400) -> list[float]:
    return (1000.0 * np.sin(2 * np.pi * freq * np.arange(N) / N)).tolist()


# -- store tools --------------------------------------------------------------------


def test_load_axis_buffer_and_stats() -> None:
    out = load_axis_buffer(_sine_samples(), axis="h", fmax=4096.0, lor=4095, data_id="srv_sine")
    try:
        assert out["data_id"] == "srv_sine"
        assert out["axes"]["h"]["n_samples"] == N

        stats = compute_axis_stats(data_id="srv_sine", axis="h")
        assert stats["dominant_freq"] == "400.00"
        assert stats["level"] == "critical"
        assert stats["thresholds"] == {"min": 0.1, "medium": 0.125, "max": 0.15}
        assert stats["n_samples"] == N
    finally:
        store.remove("srv_sine")


def test_load_axis_buffer_rejects_bad_config() -> None:
    out = load_axis_buffer([1, 2, 3], fmax=0.0)
    assert "error" in out


def test_list_stored_buffers() -> None:
    load_axis_buffer([1, 2, 3], data_id="srv_list")
    try:
        out = list_stored_buffers()
        assert out["count"] == len(out["buffers"])
        assert "srv_list" in [b["data_id"] for b in out["buffers"]]
    finally:
        store.remove("srv_list")


def test_stats_for_unknown_id_is_error() -> None:
    out = compute_axis_stats(data_id="srv_does_not_exist")
    assert "error" in out


def test_stats_needs_a_source() -> None:
    assert "error" in compute_axis_stats()


def test_stats_from_raw_samples_zero() -> None:
    out = compute_axis_stats(samples=[0] * 1600, fmax=10000.0, lor=6400)
    assert out["accel_top_peak"] == "0.00"
    assert out["velocity_top_peak"] == "0.00"
    assert out["dominant_freq"] == "0.00"
    assert out["level"] == "normal"


def test_stats_are_cached() -> None:
    samples = _sine_samples(200)
    compute_axis_stats(samples=samples, fmax=4096.0, lor=4095)
    hits = cache.hits
    compute_axis_stats(samples=samples, fmax=4096.0, lor=4095)
    assert cache.hits == hits + 1


# -- spectrum tools -----------------------------------------------------------------


def test_compute_axis_spectrum_summary() -> None:
    out = compute_axis_spectrum(
        samples=_sine_samples(), unit="Acceleration (G)", fmax=4096.0, lor=4095, top_n=3,
    )
    assert out["unit"] == "Acceleration (G)"
    assert out["top_peaks"][0]["frequency"] == "400.00"
    assert len(out["top_peaks"]) <= 3
    assert out["total_bins"] == N - 1
    assert out["frequency_resolution_hz"] == 1.0
    assert "magnitude" not in out


def test_find_spectrum_peaks() -> None:
    out = find_spectrum_peaks([0, 2, 1, 10, 2, 4, 0], [0, 1, 2, 3, 4, 5, 6], top_n=2)
    assert out["count"] == 2
    assert [p["frequency"] for p in out["peaks"]] == ["3.00", "5.00"]
    assert "color" in out["peaks"][0]


def test_compute_axis_spectrum_series_only_on_request() -> None:
    samples = _sine_samples(300)
    out = compute_axis_spectrum(samples=samples, unit="Acceleration (G)", fmax=4096.0, lor=4095)
    assert "chart" not in out

    out = compute_axis_spectrum(
        samples=samples, unit="Acceleration (G)", fmax=4096.0, lor=4095, include_series=True,
    )
    chart = out["chart"]
    assert len(chart["series"]) == N
    assert len(chart["spectrum"]["magnitude"]) == N - 1
    assert chart["peaks"][0]["frequency"] == "300.00"


def test_peak_count_defaults_to_max_peaks_setting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "max_peaks", 2)
    noise = np.random.default_rng(11).normal(0.0, 100.0, N).tolist()

    out = find_spectrum_peaks(noise)
    assert out["count"] == 2

    out = compute_axis_spectrum(samples=noise, unit="Acceleration (G)", fmax=4096.0, lor=4095)
    assert len(out["top_peaks"]) == 2


def test_find_spectrum_peaks_length_mismatch() -> None:
    assert "error" in find_spectrum_peaks([0, 1, 0], [0, 1])


# -- classification -----------------------------------------------------------------


def test_classify_defaults_and_custom() -> None:
    assert classify_vibration_level(0.05)["level"] == "normal"
    assert classify_vibration_level(0.2)["level"] == "critical"
    out = classify_vibration_level(0.2, threshold_min=0.5, threshold_max=1.0)
    assert out["level"] == "normal"
    assert out["thresholds"]["medium"] == 0.75


def test_classify_iso_group() -> None:
    assert classify_vibration_level(3.0, machine_group="group2")["level"] == "concern"
    assert "error" in classify_vibration_level(3.0, machine_group="group9")


# -- sensor assessment --------------------------------------------------------------


def test_assess_sensor_record() -> None:
    record = synthetic_sensor_record(
        "srv_sensor",
        axis_components={"v": [{"frequency": 25.0, "amplitude": 0.0}]},
    )
    loaded = load_sensor_record(record)
    try:
        assert loaded["data_id"] == "srv_sensor"
        out = assess_sensor("srv_sensor")
        assert set(out["axes"]) == {"h", "v", "a"}
        assert out["axes"]["v"]["level"] == "normal"
        assert out["axes"]["v"]["stats"]["velocity_top_peak"] == "0.00"
        assert out["overall_acceleration"]["status"] == "Normal"
    finally:
        store.remove("srv_sensor")


def test_assess_unknown_sensor() -> None:
    assert "error" in assess_sensor("srv_missing_sensor")


def test_load_sensor_record_without_data() -> None:
    assert "error" in load_sensor_record({"id": "srv_empty"})


# -- refresh and resource -----------------------------------------------------------


def test_refresh_clears_cache() -> None:
    compute_axis_stats(samples=[1, 2, 3, 2, 1])
    out = refresh_analysis()
    assert "result_cache" in out["registered"]
    assert out["callbacks"]["result_cache"] == {"ok": True}
    assert out["cache"]["size"] == 0


def test_capabilities_resource() -> None:
    caps = json.loads(monitor_capabilities())
    assert "Velocity" in caps["units"]
    assert "severity" in caps
