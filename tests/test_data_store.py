from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from vibration_monitor_mcp.data_store import BufferStore, ResultCache, buffer_digest
from vibration_monitor_mcp.sensor_config import AcquisitionConfig
from vibration_monitor_mcp.synthetic import synthetic_sensor_record

# -- BufferStore ------------------------------------------------------------------


def test_put_get_remove() -> None:
    s = BufferStore()
    did = s.put("pump", {"h": [1, 2, 3]}, AcquisitionConfig(fmax=1000))
    assert did == "pump"
    entry = s.get("pump")
    assert entry is not None
    assert np.array_equal(entry.axis("h"), [1.0, 2.0, 3.0])
    assert entry.config.fmax == 1000
    assert s.list_ids() == ["pump"]
    assert s.remove("pump")
    assert not s.remove("pump")
    assert s.get("pump") is None


def test_get_required_raises() -> None:
    with pytest.raises(ValueError, match="nope"):
        BufferStore().get_required("nope")


def test_missing_axis_raises() -> None:
    s = BufferStore()
    s.put("x", {"h": [1]})
    with pytest.raises(ValueError):
        s.get_required("x").axis("v")


def test_put_auto_generates_id() -> None:
    s = BufferStore()
    did = s.put_auto({"h": [5, 6, 7]})
    assert did.startswith("buf_")
    assert s.get(did) is not None


def test_put_sensor_record() -> None:
    s = BufferStore()
    record = synthetic_sensor_record(
        "S-9", n_samples=64, threshold_max=2.0, name="Fan", connectivity="offline",
    )
    did = s.put_sensor_record(record)
    entry = s.get_required(did)
    assert did == "S-9"
    assert set(entry.axes) == {"h", "v", "a"}
    assert entry.n_samples == 64
    assert entry.thresholds is not None and entry.thresholds.max == 2.0
    assert entry.online is False
    assert entry.metadata["name"] == "Fan"


def test_put_sensor_record_batched_format() -> None:
    s = BufferStore()
    did = s.put_sensor_record(
        {"id": "B1", "last_data": {"last_32_h": [[1, 2, 3, 4]], "v": [1, 1]}}
    )
    entry = s.get_required(did)
    assert np.array_equal(entry.axis("h"), [1, 2, 3, 4])
    assert set(entry.axes) == {"h", "v"}


def test_put_sensor_record_without_data() -> None:
    with pytest.raises(ValueError):
        BufferStore().put_sensor_record({"id": "empty", "last_data": {}})


def test_list_entries_is_compact() -> None:
    s = BufferStore()
    s.put("a1", {"h": [0, 10, -10]})
    [summary] = s.list_entries()
    assert summary["data_id"] == "a1"
    assert summary["axes"]["h"] == {"n_samples": 3, "min_adc": -10.0, "max_adc": 10.0}
    assert "h" not in summary  # no raw arrays


def test_load_csv_with_header(tmp_path: Path) -> None:
    p = tmp_path / "motor run.csv"
    p.write_text("h,v,a\n1,2,3\n4,5,6\n7,8,9\n")
    s = BufferStore()
    did, summary = s.load_from_file(str(p), fmax=1000, lor=1600)
    assert did == "motor_run"
    entry = s.get_required(did)
    assert np.array_equal(entry.axis("v"), [2, 5, 8])
    assert entry.config.fmax == 1000.0
    assert summary["metadata"]["source_file"] == "motor run.csv"


def test_load_csv_single_row(tmp_path: Path) -> None:
    p = tmp_path / "one.csv"
    p.write_text("10,20,30\n")
    s = BufferStore()
    did, summary = s.load_from_file(str(p))
    entry = s.get_required(did)
    assert sorted(entry.axes) == ["a", "h", "v"]
    assert np.array_equal(entry.axis("h"), [10.0])
    assert np.array_equal(entry.axis("a"), [30.0])
    assert summary["axes"]["v"]["n_samples"] == 1


def test_load_csv_single_column(tmp_path: Path) -> None:
    p = tmp_path / "h_only.csv"
    p.write_text("h\n1\n2\n3\n")
    s = BufferStore()
    did, _ = s.load_from_file(str(p))
    entry = s.get_required(did)
    assert list(entry.axes) == ["h"]
    assert np.array_equal(entry.axis("h"), [1.0, 2.0, 3.0])


def test_load_csv_header_only(tmp_path: Path) -> None:
    p = tmp_path / "empty.csv"
    p.write_text("h,v,a\n")
    with pytest.raises(ValueError):
        BufferStore().load_from_file(str(p))


def test_load_json_record(tmp_path: Path) -> None:
    p = tmp_path / "sensor.json"
    p.write_text(json.dumps(synthetic_sensor_record("J-1", n_samples=32, fmax=800)))
    s = BufferStore()
    did, summary = s.load_from_file(str(p), g_scale=4)
    assert did == "J-1"
    assert summary["config"]["fmax"] == 800.0
    assert summary["config"]["g_scale"] == 4


def test_load_unsupported_file(tmp_path: Path) -> None:
    p = tmp_path / "data.dat"
    p.write_bytes(b"\x00\x01")
    with pytest.raises(ValueError):
        BufferStore().load_from_file(str(p))
    with pytest.raises(ValueError):
        BufferStore().load_from_file(str(tmp_path / "missing.csv"))


# -- ResultCache ------------------------------------------------------------------


def test_buffer_digest_by_content() -> None:
    assert buffer_digest([1, 2, 3]) == buffer_digest(np.array([1.0, 2.0, 3.0]))
    assert buffer_digest([1, 2, 3]) != buffer_digest([1, 2, 4])


def test_cache_hits_and_misses() -> None:
    cache = ResultCache(max_size=4)
    calls = []

    def compute() -> int:
        calls.append(1)
        return 42

    assert cache.get_or_compute("k", compute) == 42
    assert cache.get_or_compute("k", compute) == 42
    assert len(calls) == 1
    assert (cache.hits, cache.misses) == (1, 1)


def test_cache_evicts_least_recently_used() -> None:
    cache = ResultCache(max_size=2)
    cache.get_or_compute("a", lambda: 1)
    cache.get_or_compute("b", lambda: 2)
    cache.get_or_compute("a", lambda: 1)
    cache.get_or_compute("c", lambda: 3)
    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_cache_clear() -> None:
    cache = ResultCache()
    cache.get_or_compute("a", lambda: 1)
    cache.clear()
    assert len(cache) == 0
    assert cache.stats()["size"] == 0
