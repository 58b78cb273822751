"""
Vibration Monitor MCP Server.

Exposes the per-axis vibration pipeline of the wireless sensor dashboard via
the Model Context Protocol: ADC conversion, velocity integration, FFT with
peak extraction, per-axis statistics and severity classification against
per-sensor thresholds.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace
from typing import Any

import numpy as np
from mcp.server.fastmcp import FastMCP

from .axis_stats import (
    AXES,
    UNITS,
    assess_sensor_axes,
    get_axis_top_peak_stats,
    overall_acceleration_stats,
    prepare_axis_chart,
)
from .data_store import buffer_digest, cache, store
from .fft_analysis import frequency_resolution
from .peaks import find_top_peaks
from .refresh import hooks
from .sensor_config import AcquisitionConfig, settings
from .severity import (
    ISO_10816_THRESHOLDS,
    VibrationThresholds,
    get_vibration_color,
    get_vibration_level,
    iso_thresholds,
)

# Configure logging to stderr (required for STDIO MCP servers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("vibration-monitor-mcp")

mcp = FastMCP(
    "vibration-monitor",
    instructions=(
        "Signal-processing toolkit for wireless tri-axial vibration sensors "
        "(H / V / A axes). Converts raw ADC buffers to acceleration and "
        "velocity, computes spectra, top peaks, RMS statistics and the "
        "normal / warning / concern / critical severity level.\n\n"
        "BUFFER HANDLING — Axis buffers are stored server-side. Use "
        "load_sensor_record, load_axis_buffer or load_buffer_file first, then "
        "pass the returned data_id to the analysis tools. Tools also accept a "
        "raw samples list for small ad-hoc analyses.\n\n"
        "Spectral tools return compact summaries (top peaks + statistics), "
        "not full-length arrays."
    ),
)

# Derived results are keyed by buffer content; a refresh drops them all
hooks.register("result_cache", cache.clear)


# ── Helpers ───────────────────────────────────────────────────────────────

def _resolve_buffer(
    data_id: str | None,
    samples: list[float] | None,
    axis: str = "h",
    fmax: float | None = None,
    lor: int | None = None,
    g_scale: int | None = None,
) -> tuple[np.ndarray, AcquisitionConfig]:
    """Return (axis samples, config) from either a data_id or a raw list."""
    overrides = {
        k: v for k, v in (("fmax", fmax), ("lor", lor), ("g_scale", g_scale))
        if v is not None
    }
    if data_id is not None:
        entry = store.get_required(data_id)
        config = replace(entry.config, **overrides) if overrides else entry.config
        config.validate()
        return entry.axis(axis), config
    if samples is not None:
        config = AcquisitionConfig(**overrides)
        config.validate()
        return np.asarray(samples, dtype=np.float64).ravel(), config
    raise ValueError("Provide either data_id (preferred) or samples.")


def _cached_axis_stats(samples: np.ndarray, config: AcquisitionConfig):
    key = ("stats", buffer_digest(samples), config.fmax, config.lor, config.g_scale)
    return cache.get_or_compute(
        key,
        lambda: get_axis_top_peak_stats(
            samples, config.sample_interval(len(samples)), config.g_scale, config.fmax,
        ),
    )


def _thresholds_for(data_id: str | None) -> VibrationThresholds:
    if data_id is not None:
        entry = store.get(data_id)
        if entry is not None and entry.thresholds is not None:
            return entry.thresholds
    return settings.thresholds


# ── Buffer store tools ────────────────────────────────────────────────────

@mcp.tool()
def load_axis_buffer(
    samples: list[float],
    axis: str = "h",
    fmax: float = 400.0,
    lor: int = 6400,
    g_scale: int = 16,
    data_id: str | None = None,
) -> dict:
    """
    Store one axis buffer of raw ADC counts in the server-side store.

    Args:
        samples: Raw ADC samples.
        axis: Axis name ('h', 'v' or 'a').
        fmax: Analysis bandwidth in Hz.
        lor: Lines of resolution (time span = lor / fmax).
        g_scale: Accelerometer full-scale range (2, 4, 8, 16).
        data_id: Optional human-readable ID. Auto-generated if omitted.
    """
    try:
        config = AcquisitionConfig(fmax=fmax, lor=lor, g_scale=g_scale)
        config.validate()
        if data_id is None:
            did = store.put_auto({axis: samples}, config)
        else:
            did = store.put(data_id, {axis: samples}, config)
        return {"data_id": did, **store.get_required(did).summary()}
    except (ValueError, TypeError) as e:
        return {"error": str(e)}


@mcp.tool()
def load_sensor_record(record: dict, data_id: str | None = None) -> dict:
    """
    Store a full sensor record (config, thresholds and h/v/a ``last_data``).

    Args:
        record: Sensor record as returned by the sensor API, e.g.
            {"id": "S-1", "fmax": 400, "lor": 6400, "g_scale": 16,
             "threshold_min": 0.1, "threshold_max": 0.15,
             "last_data": {"h": [...], "v": [...], "a": [...]}}
        data_id: Optional ID. Defaults to the record's 'id'.
    """
    try:
        did = store.put_sensor_record(record, data_id)
        return {"data_id": did, **store.get_required(did).summary()}
    except (ValueError, TypeError) as e:
        return {"error": str(e)}


@mcp.tool()
def load_buffer_file(
    file_path: str,
    fmax: float | None = None,
    lor: int | None = None,
    g_scale: int | None = None,
    data_id: str | None = None,
) -> dict:
    """
    Load a .csv (h, v, a columns of ADC counts) or .json sensor record file
    into the server-side store.

    Args:
        file_path: Absolute path to the data file.
        fmax: Analysis bandwidth in Hz (overrides the file).
        lor: Lines of resolution (overrides the file).
        g_scale: Full-scale range (overrides the file).
        data_id: Optional human-readable ID.
    """
    try:
        did, summary = store.load_from_file(file_path, fmax, lor, g_scale, data_id)
        return {"data_id": did, **summary}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
def list_stored_buffers() -> dict:
    """List all buffers currently held in the server-side store."""
    entries = store.list_entries()
    return {"count": len(entries), "buffers": entries}


# ── Analysis tools ────────────────────────────────────────────────────────

@mcp.tool()
def compute_axis_stats(
    data_id: str | None = None,
    samples: list[float] | None = None,
    axis: str = "h",
    fmax: float | None = None,
    lor: int | None = None,
    g_scale: int | None = None,
) -> dict:
    """
    Compute the display statistics of one axis: velocity RMS / peak /
    peak-to-peak (mm/s), dominant frequency, RMS-equivalent top peaks of the
    acceleration (g) and velocity (mm/s) spectra, and the severity level.

    Args:
        data_id: Reference to a stored buffer.
        samples: Raw ADC samples (use data_id for large buffers).
        axis: Axis of the stored buffer ('h', 'v', 'a').
        fmax: Analysis bandwidth in Hz.
        lor: Lines of resolution.
        g_scale: Full-scale range.
    """
    try:
        buf, config = _resolve_buffer(data_id, samples, axis, fmax, lor, g_scale)
    except ValueError as e:
        return {"error": str(e)}

    stats = _cached_axis_stats(buf, config)
    thresholds = _thresholds_for(data_id)
    level = get_vibration_level(stats.velocity_value, thresholds)
    result = {
        **stats.to_dict(),
        "level": level,
        "color": get_vibration_color(level),
        "thresholds": thresholds.to_dict(),
        "n_samples": int(buf.size),
        "sample_interval_s": config.sample_interval(buf.size),
        "config": config.to_dict(),
    }
    if data_id:
        result["data_id"] = data_id
        result["axis"] = axis
    return result


@mcp.tool()
def compute_axis_spectrum(
    data_id: str | None = None,
    samples: list[float] | None = None,
    axis: str = "h",
    unit: str = "Velocity",
    fmax: float | None = None,
    lor: int | None = None,
    g_scale: int | None = None,
    top_n: int | None = None,
    include_series: bool = False,
) -> dict:
    """
    Compute the spectrum of one axis in a display unit and return its top
    peaks. Returns a compact summary; the full chart arrays are only added
    when ``include_series`` is set.

    Args:
        data_id: Reference to a stored buffer.
        samples: Raw ADC samples (use data_id for large buffers).
        axis: Axis of the stored buffer ('h', 'v', 'a').
        unit: 'Acceleration (G)', 'Acceleration (mm/s²)' or 'Velocity'.
        fmax: Analysis bandwidth in Hz.
        lor: Lines of resolution.
        g_scale: Full-scale range.
        top_n: Number of peaks to return (default: server max_peaks setting).
        include_series: Also return time series, spectrum and point colours
            for plotting. Large for long buffers.
    """
    try:
        buf, config = _resolve_buffer(data_id, samples, axis, fmax, lor, g_scale)
    except ValueError as e:
        return {"error": str(e)}

    if top_n is None:
        top_n = settings.max_peaks
    key = ("chart", buffer_digest(buf), unit, config.fmax, config.lor, config.g_scale, top_n)
    chart = cache.get_or_compute(
        key,
        lambda: prepare_axis_chart(
            buf, unit, config.sample_interval(buf.size),
            config.g_scale, config.fmax, top_n,
        ),
    )
    freqs = chart.spectrum.frequency
    summary = {
        "unit": chart.unit,
        "y_axis_label": chart.y_axis_label,
        "rms": chart.rms,
        "peak": chart.peak,
        "peak_to_peak": chart.peak_to_peak,
        "top_peaks": [
            {**p.to_dict(), "color": c} for p, c in zip(chart.peaks, chart.peak_colors)
        ],
        "total_bins": len(chart.spectrum),
        "freq_range_hz": [float(freqs[0]), float(freqs[-1])] if len(freqs) else [],
        "frequency_resolution_hz": round(frequency_resolution(config.fmax), 6),
    }
    if data_id:
        summary["data_id"] = data_id
        summary["axis"] = axis
    if include_series:
        summary["chart"] = chart.to_dict()
    return summary


@mcp.tool()
def find_spectrum_peaks(
    magnitude: list[float],
    frequency: list[float] | None = None,
    top_n: int | None = None,
) -> dict:
    """
    Find the highest strict local maxima of a magnitude spectrum.

    Args:
        magnitude: Magnitude spectrum values.
        frequency: Frequency of each bin (Hz). Bin indices are used if omitted.
        top_n: Maximum number of peaks (default: server max_peaks setting).
    """
    if frequency is not None and len(frequency) != len(magnitude):
        return {"error": "frequency and magnitude must have the same length."}
    if top_n is None:
        top_n = settings.max_peaks
    labels = frequency if frequency is not None else list(range(len(magnitude)))
    peaks, colors = find_top_peaks(magnitude, labels, top_n)
    return {
        "count": len(peaks),
        "peaks": [{**p.to_dict(), "color": c} for p, c in zip(peaks, colors)],
    }


@mcp.tool()
def classify_vibration_level(
    velocity_mm_s: float,
    threshold_min: float | None = None,
    threshold_medium: float | None = None,
    threshold_max: float | None = None,
    machine_group: str | None = None,
) -> dict:
    """
    Classify a velocity value (mm/s) as normal / warning / concern / critical.

    Args:
        velocity_mm_s: Velocity magnitude in mm/s.
        threshold_min: Lower threshold (default 0.1).
        threshold_medium: Middle threshold (default: midpoint of min and max).
        threshold_max: Upper threshold (default 0.15).
        machine_group: Use ISO 10816 bands instead ('group1'..'group4').
    """
    if machine_group is not None:
        if machine_group not in ISO_10816_THRESHOLDS:
            return {
                "error": f"Unknown machine_group '{machine_group}'. "
                         f"Use one of {list(ISO_10816_THRESHOLDS)}."
            }
        thresholds = iso_thresholds(machine_group)
    else:
        thresholds = VibrationThresholds.from_values(
            threshold_min, threshold_medium, threshold_max,
        )
    level = get_vibration_level(velocity_mm_s, thresholds)
    return {
        "velocity_mm_s": velocity_mm_s,
        "level": level,
        "color": get_vibration_color(level),
        "thresholds": thresholds.to_dict(),
    }


@mcp.tool()
def assess_sensor(data_id: str) -> dict:
    """
    Assess every axis (H, V, A) of a stored sensor record: statistics,
    severity level and status colour, plus the tri-axial acceleration summary.

    Args:
        data_id: Reference to a stored sensor record (from load_sensor_record).
    """
    try:
        entry = store.get_required(data_id)
    except ValueError as e:
        return {"error": str(e)}

    axes = assess_sensor_axes(
        entry.as_last_data(), entry.config, entry.thresholds, entry.online,
    )
    result: dict[str, Any] = {
        "data_id": data_id,
        "online": entry.online,
        "axes": {
            name: {**a, "stats": a["stats"].to_dict()} for name, a in axes.items()
        },
        "thresholds": (entry.thresholds or settings.thresholds).to_dict(),
    }
    if entry.online and all(a in entry.axes for a in AXES):
        result["overall_acceleration"] = overall_acceleration_stats(
            *(entry.axes[a] for a in AXES), g_scale=entry.config.g_scale,
        )
    return result


@mcp.tool()
def refresh_analysis() -> dict:
    """
    Ask every registered component to refresh its derived data (clears the
    result cache). Returns the outcome of each refresh callback.
    """
    results = hooks.trigger()
    return {"registered": hooks.names(), "callbacks": results, "cache": cache.stats()}


# ── Resource: capabilities ───────────────────────────────────────────────

@mcp.resource("vibration-monitor://capabilities")
def monitor_capabilities() -> str:
    """List all capabilities of this server."""
    return json.dumps({
        "buffer_store": [
            "Server-side buffer storage (load_* → data_id)",
            "Sensor records with per-sensor thresholds and acquisition config",
            ".csv (h, v, a ADC columns) and .json sensor record files",
        ],
        "conversion": [
            "ADC counts → g (±2/4/8/16 g ranges)",
            "g → mm/s² (9806.65 mm/s² per g)",
            "Acceleration → velocity (cumulative trapezoid)",
        ],
        "spectral_analysis": [
            "Zero-padded FFT, magnitude scaled by 2.56 / n",
            "Hann window",
            "Analytic velocity spectrum (÷ 2πf)",
            "Top-k strict local-maximum peaks, RMS-equivalent values",
        ],
        "units": list(UNITS),
        "severity": [
            "normal / warning / concern / critical over velocity (mm/s)",
            "Per-sensor thresholds (default 0.1 / 0.125 / 0.15 mm/s)",
            "ISO 10816 machine groups (group1–group4)",
        ],
    }, indent=2)
