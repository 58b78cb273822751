"""
Server-side store for sensor acquisition buffers, plus a result cache.

Raw axis buffers are kept in memory on the MCP server side, so they never need
to transit through the LLM conversation context. Tools refer to them by
``data_id`` and only return compact summaries.

Usage:
    store.put("pump_01", {"h": [...], "v": [...], "a": [...]}, config)
    entry = store.get("pump_01")
    cache.get_or_compute(("stats", entry.digest("h"), ...), lambda: ...)
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Hashable, Mapping, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .axis_stats import AXES, axis_samples
from .sensor_config import AcquisitionConfig, settings
from .severity import VibrationThresholds, thresholds_for_sensor

logger = logging.getLogger(__name__)


def buffer_digest(samples: ArrayLike) -> str:
    """md5 of a buffer's float64 bytes; identical content gives identical keys."""
    arr = np.ascontiguousarray(np.asarray(samples, dtype=np.float64).ravel())
    return hashlib.md5(arr.tobytes()).hexdigest()


def _has_header(p: Path) -> bool:
    """True when the first line of a CSV is not numeric."""
    with p.open(encoding="utf-8") as f:
        first = f.readline().strip()
    if not first:
        return False
    try:
        for field_text in first.split(","):
            float(field_text)
    except ValueError:
        return True
    return False


@dataclass
class BufferEntry:
    """Axis buffers of one acquisition with their config."""
    axes: dict[str, NDArray[np.float64]]
    config: AcquisitionConfig
    thresholds: Optional[VibrationThresholds] = None
    online: bool = True
    created_at: float = field(default_factory=time.time)
    metadata: dict = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        return max((len(a) for a in self.axes.values()), default=0)

    def axis(self, name: str) -> NDArray[np.float64]:
        if name not in self.axes:
            raise ValueError(
                f"Axis '{name}' not in buffer. Available: {sorted(self.axes)}"
            )
        return self.axes[name]

    def digest(self, name: str) -> str:
        return buffer_digest(self.axis(name))

    def as_last_data(self) -> dict[str, list]:
        return {k: v.tolist() for k, v in self.axes.items()}

    def summary(self) -> dict:
        """Return a compact summary (no raw data)."""
        axis_info = {}
        for name, samples in self.axes.items():
            axis_info[name] = {
                "n_samples": int(samples.size),
                "min_adc": float(samples.min()) if samples.size else 0.0,
                "max_adc": float(samples.max()) if samples.size else 0.0,
            }
        return {
            "axes": axis_info,
            "config": self.config.to_dict(),
            "sample_interval_s": self.config.sample_interval(self.n_samples),
            "thresholds": self.thresholds.to_dict() if self.thresholds else None,
            "online": self.online,
            "metadata": self.metadata,
        }


class BufferStore:
    """Simple in-memory store for acquisition buffers."""

    def __init__(self) -> None:
        self._entries: dict[str, BufferEntry] = {}

    def put(
        self,
        data_id: str,
        axes: Mapping[str, ArrayLike],
        config: AcquisitionConfig | None = None,
        thresholds: VibrationThresholds | None = None,
        online: bool = True,
        metadata: dict | None = None,
    ) -> str:
        """Store axis buffers. Returns the data_id."""
        self._entries[data_id] = BufferEntry(
            axes={k: np.asarray(v, dtype=np.float64).ravel() for k, v in axes.items()},
            config=config or AcquisitionConfig(),
            thresholds=thresholds,
            online=online,
            metadata=metadata or {},
        )
        logger.info(f"Stored buffer '{data_id}' ({', '.join(axes)})")
        return data_id

    def put_auto(
        self,
        axes: Mapping[str, ArrayLike],
        config: AcquisitionConfig | None = None,
        **kwargs: Any,
    ) -> str:
        """Store axis buffers with an auto-generated ID."""
        first = next(iter(axes.values()), [])
        h = buffer_digest(first)[:8]
        data_id = f"buf_{h}_{int(time.time()) % 100000}"
        return self.put(data_id, axes, config, **kwargs)

    def put_sensor_record(
        self,
        record: Mapping[str, Any],
        data_id: str | None = None,
    ) -> str:
        """
        Store a sensor record as returned by the sensor API.

        The record carries ``fmax``/``lor``/``g_scale``, optional
        ``threshold_*`` fields, ``connectivity`` and a ``last_data`` payload
        with the h/v/a sample arrays.
        """
        last_data = record.get("last_data") or record.get("data") or {}
        axes = {axis: axis_samples(last_data, axis) for axis in AXES}
        axes = {k: v for k, v in axes.items() if v}
        if not axes:
            raise ValueError("Sensor record has no h/v/a sample data in 'last_data'.")

        meta = {
            k: record[k] for k in ("id", "name", "machine_name", "machine_class")
            if k in record
        }
        if data_id is None:
            data_id = str(record.get("id") or "").replace(" ", "_") or None
        kwargs = dict(
            config=AcquisitionConfig.from_record(record),
            thresholds=thresholds_for_sensor(record),
            online=record.get("connectivity", "online") != "offline",
            metadata=meta,
        )
        if data_id is None:
            return self.put_auto(axes, **kwargs)
        return self.put(data_id, axes, **kwargs)

    def get(self, data_id: str) -> BufferEntry | None:
        return self._entries.get(data_id)

    def get_required(self, data_id: str) -> BufferEntry:
        entry = self._entries.get(data_id)
        if entry is None:
            raise ValueError(
                f"No buffer with data_id '{data_id}'. "
                f"Available: {self.list_ids()}"
            )
        return entry

    def remove(self, data_id: str) -> bool:
        return self._entries.pop(data_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def list_ids(self) -> list[str]:
        return list(self._entries.keys())

    def list_entries(self) -> list[dict]:
        """Return summaries of all stored entries."""
        return [
            {"data_id": k, **v.summary()}
            for k, v in self._entries.items()
        ]

    def load_from_file(
        self,
        file_path: str,
        fmax: float | None = None,
        lor: int | None = None,
        g_scale: int | None = None,
        data_id: str | None = None,
    ) -> tuple[str, dict]:
        """
        Load a .csv or .json file directly into the store.
        Returns (data_id, summary_dict).

        ``.csv``: one column per axis in h, v, a order (raw ADC counts), an
        optional header row is skipped. ``.json``: a single sensor record.
        Config arguments override the values found in the file.
        """
        p = Path(file_path)
        if not p.exists():
            raise ValueError(f"File not found: {file_path}")

        if p.suffix == ".json":
            record = json.loads(p.read_text(encoding="utf-8"))
            if not isinstance(record, dict):
                raise ValueError("JSON file must contain a single sensor record object.")
            for key, value in (("fmax", fmax), ("lor", lor), ("g_scale", g_scale)):
                if value is not None:
                    record[key] = value
            if data_id is None:
                data_id = str(record.get("id") or p.stem).replace(" ", "_")
            data_id = self.put_sensor_record(record, data_id)
        elif p.suffix == ".csv":
            # ndmin=2 keeps rows as rows, so a one-row file is still h, v, a
            data = np.loadtxt(
                str(p), delimiter=",", dtype=np.float64,
                skiprows=1 if _has_header(p) else 0, ndmin=2,
            )
            if data.size == 0:
                raise ValueError(f"CSV file has no samples: {p.name}")
            if data.shape[1] > len(AXES):
                raise ValueError(
                    f"CSV has {data.shape[1]} columns, expected at most {len(AXES)} (h, v, a)."
                )
            axes = {AXES[i]: data[:, i] for i in range(data.shape[1])}
            config = AcquisitionConfig.from_record(
                {"fmax": fmax, "lor": lor, "g_scale": g_scale}
            )
            if data_id is None:
                data_id = p.stem.replace(" ", "_")
            self.put(data_id, axes, config, metadata={"source_file": p.name})
        else:
            raise ValueError(f"Unsupported file format: {p.suffix}")

        return data_id, self._entries[data_id].summary()


class ResultCache:
    """
    Bounded LRU cache for derived results (statistics, spectra).

    Keys are built from the content digest of the buffer plus every config
    value that affects the result, so two equal buffers share one entry and
    a changed buffer never hits a stale one.
    """

    def __init__(self, max_size: int = 128) -> None:
        self.max_size = max_size
        self._data: OrderedDict[Hashable, Any] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if key in self._data:
            self._data.move_to_end(key)
            self.hits += 1
            return self._data[key]
        self.misses += 1
        value = compute()
        self._data[key] = value
        if self.max_size > 0:
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
        else:
            self._data.clear()
        return value

    def clear(self) -> None:
        self._data.clear()

    def stats(self) -> dict:
        return {
            "size": len(self._data),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
        }


# Global singletons, shared across all tools in this server
store = BufferStore()
cache = ResultCache(settings.cache_size)
