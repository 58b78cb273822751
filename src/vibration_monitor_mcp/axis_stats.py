"""
Per-axis statistics, chart data and sensor assessment.

This is where the pipeline steps are chained for one axis buffer:

    ADC -> g -> mm/s² -> velocity (trapezoid)
                      -> FFT (accel, velocity) -> DC removed -> top peak
    velocity top peak -> severity level

All outputs are terminal display values, so numeric fields are fixed-decimal
strings. These functions sit under live dashboard tiles and never raise: any
failure yields the zeroed ``AxisStats`` / empty chart.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .conversion import (
    acceleration_g_to_mm_per_sec_squared,
    acceleration_to_velocity,
    adc_to_acceleration_g,
)
from .fft_analysis import (
    SpectrumResult,
    apply_hann_window,
    compute_spectrum,
    nyquist_bin,
    velocity_spectrum_from_acceleration,
)
from .peaks import PeakRecord, find_top_peaks, peak_highlight_colors
from .sensor_config import AcquisitionConfig
from .severity import (
    VibrationThresholds,
    get_vibration_color,
    get_vibration_level,
    thresholds_for_sensor,
)

logger = logging.getLogger(__name__)

AXES = ("h", "v", "a")

UNIT_ACCEL_G = "Acceleration (G)"
UNIT_ACCEL_MM_S2 = "Acceleration (mm/s²)"
UNIT_VELOCITY = "Velocity"
UNITS = (UNIT_ACCEL_G, UNIT_ACCEL_MM_S2, UNIT_VELOCITY)

_Y_AXIS_LABELS = {
    UNIT_ACCEL_G: "G",
    UNIT_ACCEL_MM_S2: "mm/s²",
    UNIT_VELOCITY: "mm/s",
}


@dataclass(frozen=True)
class AxisStats:
    """Aggregate output for one axis, as shown on cards, dots and charts."""
    rms: str = "0.000"
    peak: str = "0.000"
    peak_to_peak: str = "0.000"
    dominant_freq: str = "0.00"
    accel_top_peak: str = "0.00"
    velocity_top_peak: str = "0.00"

    @classmethod
    def zero(cls) -> "AxisStats":
        return cls()

    @property
    def velocity_value(self) -> float:
        """Velocity top peak as a number (mm/s), for classification."""
        return float(self.velocity_top_peak)

    def to_dict(self) -> dict:
        return asdict(self)


def time_domain_stats(series: ArrayLike) -> tuple[float, float, float]:
    """
    RMS, peak and peak-to-peak of a time series.

    By convention of this system ``peak`` equals the RMS (not ``max|x|``);
    severity thresholds are calibrated against that definition.
    """
    x = np.asarray(series, dtype=np.float64).ravel()
    rms = float(np.sqrt(np.mean(x ** 2))) if x.size else 0.0
    peak = rms
    return rms, peak, 2.0 * peak


def _searchable_peaks(
    spectrum: SpectrumResult,
    k: int,
) -> tuple[SpectrumResult, list[PeakRecord], list[str]]:
    """Strip DC, then search peaks only up to the Nyquist bin."""
    no_dc = spectrum.without_dc()
    # Index i of the stripped spectrum is bin i + 1 of the full one
    limit = nyquist_bin(len(spectrum)) - 1
    peaks, colors = find_top_peaks(no_dc.magnitude, no_dc.frequency, k, max_index=limit)
    return no_dc, peaks, colors


def _top_peak(spectrum: SpectrumResult) -> Optional[PeakRecord]:
    _, peaks, _ = _searchable_peaks(spectrum, 1)
    return peaks[0] if peaks else None


def get_axis_top_peak_stats(
    axis_data: Sequence[float] | ArrayLike,
    dt: float,
    g_scale: int = 16,
    max_freq: float = 400.0,
) -> AxisStats:
    """
    Compute the display statistics of one axis buffer.

    Args:
        axis_data: Raw ADC samples of one axis.
        dt: Time step between samples (s), ``(lor / fmax) / (n - 1)``.
        g_scale: Accelerometer full-scale range.
        max_freq: Analysis bandwidth ``fmax`` (Hz).

    Returns:
        AxisStats. Zeroed when the buffer is empty or anything fails.
    """
    try:
        raw = np.asarray(axis_data, dtype=np.float64).ravel()
        if raw.size == 0:
            return AxisStats.zero()

        accel_g = adc_to_acceleration_g(raw, g_scale)
        accel_mm = acceleration_g_to_mm_per_sec_squared(accel_g)
        velocity = acceleration_to_velocity(accel_mm, dt)
        rms, peak, p2p = time_domain_stats(velocity)

        accel_spectrum = compute_spectrum(accel_g, max_freq)
        velocity_spectrum = compute_spectrum(velocity, max_freq)
        if accel_spectrum.is_empty or velocity_spectrum.is_empty:
            return AxisStats.zero()

        accel_peak = _top_peak(accel_spectrum)
        velocity_peak = _top_peak(velocity_spectrum)

        return AxisStats(
            rms=f"{rms:.3f}",
            peak=f"{peak:.3f}",
            peak_to_peak=f"{p2p:.3f}",
            dominant_freq=velocity_peak.frequency if velocity_peak else "0.00",
            accel_top_peak=accel_peak.rms if accel_peak else "0.00",
            velocity_top_peak=velocity_peak.rms if velocity_peak else "0.00",
        )
    except Exception as e:
        logger.warning(f"Axis statistics failed, reporting zeros: {e}")
        return AxisStats.zero()


def overall_acceleration_stats(
    h: ArrayLike,
    v: ArrayLike,
    a: ArrayLike,
    g_scale: int = 16,
) -> dict:
    """
    Tri-axial acceleration summary of one sensor reading (in g).

    Per-axis RMS values are combined as ``sqrt((h² + v² + a²) / 3)`` and the
    peak is the largest absolute sample over all axes.

    Returns:
        dict with 'rms', 'peak' (3-decimal strings) and 'status'
        ('Normal', 'Warning' above 0.5 g, 'Critical' above 0.8 g).
    """
    zero = {"rms": "0.000", "peak": "0.000", "status": "Normal"}
    try:
        axes = [adc_to_acceleration_g(np.asarray(x, dtype=np.float64).ravel(), g_scale)
                for x in (h, v, a)]
        if any(x.size == 0 for x in axes):
            return zero
        rms_axes = [float(np.sqrt(np.mean(x ** 2))) for x in axes]
        rms_total = math.sqrt(sum(r * r for r in rms_axes) / 3.0)
        peak_total = max(float(np.max(np.abs(x))) for x in axes)
        if not (math.isfinite(rms_total) and math.isfinite(peak_total)):
            return zero
    except (TypeError, ValueError) as e:
        logger.warning(f"Overall acceleration statistics failed: {e}")
        return zero

    if rms_total > 0.8:
        status = "Critical"
    elif rms_total > 0.5:
        status = "Warning"
    else:
        status = "Normal"
    return {"rms": f"{rms_total:.3f}", "peak": f"{peak_total:.3f}", "status": status}


# ---------------------------------------------------------------------------
# Chart data for the sensor detail view
# ---------------------------------------------------------------------------

@dataclass
class AxisChart:
    """Time and frequency series for one axis in the selected unit."""
    unit: str
    y_axis_label: str
    time_labels: list[str] = field(default_factory=list)
    series: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    rms: str = "0.000"
    peak: str = "0.000"
    peak_to_peak: str = "0.000"
    spectrum: SpectrumResult = field(default_factory=SpectrumResult)
    peaks: list[PeakRecord] = field(default_factory=list)
    peak_colors: list[str] = field(default_factory=list)
    point_colors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "unit": self.unit,
            "y_axis_label": self.y_axis_label,
            "time_labels": self.time_labels,
            "series": self.series.tolist(),
            "rms": self.rms,
            "peak": self.peak,
            "peak_to_peak": self.peak_to_peak,
            "spectrum": self.spectrum.to_dict(),
            "peaks": [p.to_dict() for p in self.peaks],
            "peak_colors": self.peak_colors,
            "point_colors": self.point_colors,
        }


def _unit_spectrum(unit: str, accel_g, accel_mm, max_freq: float) -> SpectrumResult:
    # Raw-G spectrum is not windowed; mm/s² and velocity use Hann
    if unit == UNIT_ACCEL_G:
        return compute_spectrum(accel_g, max_freq)
    windowed = compute_spectrum(apply_hann_window(accel_mm), max_freq)
    if unit == UNIT_ACCEL_MM_S2:
        return windowed
    return velocity_spectrum_from_acceleration(windowed, max_freq)


def prepare_axis_chart(
    raw_axis_data: Sequence[float] | ArrayLike,
    unit: str,
    dt: float,
    g_scale: int = 16,
    max_freq: float = 400.0,
    max_peaks: int = 5,
) -> AxisChart:
    """
    Build the time-domain and spectrum chart data of one axis.

    Args:
        raw_axis_data: Raw ADC samples of one axis.
        unit: 'Acceleration (G)', 'Acceleration (mm/s²)' or 'Velocity'.
            Anything else is treated as 'Velocity'.
        dt: Time step between samples (s).
        g_scale: Accelerometer full-scale range.
        max_freq: Analysis bandwidth ``fmax`` (Hz).
        max_peaks: Number of spectrum peaks to highlight.

    Returns:
        AxisChart; empty with zeroed statistics on failure.
    """
    if unit not in UNITS:
        unit = UNIT_VELOCITY
    empty = AxisChart(unit=unit, y_axis_label=_Y_AXIS_LABELS[unit])

    try:
        raw = np.asarray(raw_axis_data, dtype=np.float64).ravel()
        if raw.size == 0:
            return empty

        accel_g = adc_to_acceleration_g(raw, g_scale)
        accel_mm = acceleration_g_to_mm_per_sec_squared(accel_g)
        if unit == UNIT_ACCEL_G:
            series = accel_g
        elif unit == UNIT_ACCEL_MM_S2:
            series = accel_mm
        else:
            series = acceleration_to_velocity(accel_mm, dt)

        rms, peak, p2p = time_domain_stats(series)
        spectrum, peaks, colors = _searchable_peaks(
            _unit_spectrum(unit, accel_g, accel_mm, max_freq), max_peaks,
        )
    except Exception as e:
        logger.warning(f"Chart preparation failed for unit '{unit}': {e}")
        return empty

    return AxisChart(
        unit=unit,
        y_axis_label=_Y_AXIS_LABELS[unit],
        time_labels=[f"{i * dt:.2f}" for i in range(raw.size)],
        series=series,
        rms=f"{rms:.3f}",
        peak=f"{peak:.3f}",
        peak_to_peak=f"{p2p:.3f}",
        spectrum=spectrum,
        peaks=peaks,
        peak_colors=colors,
        point_colors=peak_highlight_colors(len(spectrum), peaks, colors),
    )


# ---------------------------------------------------------------------------
# Sensor-level assessment (H / V / A)
# ---------------------------------------------------------------------------

def axis_samples(last_data: Mapping[str, Any] | None, axis: str) -> list:
    """
    Extract one axis buffer from a sensor's ``last_data`` payload.

    Accepts the flat ``{"h": [...]}`` form and the batched
    ``{"last_32_h": [[...], ...]}`` form (first block used).
    """
    if not last_data:
        return []
    samples = last_data.get(axis)
    if isinstance(samples, (list, tuple, np.ndarray)) and len(samples) > 0:
        return list(samples)
    batched = last_data.get(f"last_32_{axis}")
    if isinstance(batched, (list, tuple)) and batched and isinstance(batched[0], (list, tuple)):
        return list(batched[0])
    return []


def assess_sensor_axes(
    last_data: Mapping[str, Any] | None,
    config: AcquisitionConfig,
    thresholds: VibrationThresholds | None = None,
    online: bool = True,
) -> dict[str, dict]:
    """
    Statistics and severity level of every axis of one sensor reading.

    Args:
        last_data: Latest payload with 'h', 'v', 'a' sample arrays.
        config: Acquisition config of the sensor.
        thresholds: Sensor thresholds; system defaults when None.
        online: Offline sensors are reported without computing anything.

    Returns:
        {'h': {'stats', 'level', 'color'}, 'v': ..., 'a': ...}
    """
    result: dict[str, dict] = {}
    for axis in AXES:
        if not online:
            result[axis] = {
                "stats": AxisStats.zero(),
                "level": None,
                "color": get_vibration_color("normal", offline=True),
            }
            continue
        samples = axis_samples(last_data, axis)
        stats = get_axis_top_peak_stats(
            samples,
            config.sample_interval(len(samples)),
            config.g_scale,
            config.fmax,
        )
        level = get_vibration_level(stats.velocity_value, thresholds)
        result[axis] = {
            "stats": stats,
            "level": level,
            "color": get_vibration_color(level),
        }
    return result


def assess_sensor_record(record: Mapping[str, Any]) -> dict[str, dict]:
    """Assess a full sensor record (config, thresholds and ``last_data``)."""
    config = AcquisitionConfig.from_record(record)
    online = record.get("connectivity", "online") != "offline"
    return assess_sensor_axes(
        record.get("last_data") or record.get("data"),
        config,
        thresholds_for_sensor(record),
        online=online,
    )
