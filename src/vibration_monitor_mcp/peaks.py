"""
Peak extraction from magnitude spectra.

A peak is a strict interior local maximum: ``m[i] > m[i-1]`` and
``m[i] > m[i+1]``. The first and last bins are never candidates, and flat
plateaus do not qualify. Candidates are ranked by magnitude (stable sort, so
equal magnitudes keep their frequency order) and the top ``k`` are returned.

Every peak carries its raw spectral amplitude plus an RMS-equivalent display
value (amplitude × 0.707, i.e. ≈ 1/√2 for a sinusoid). This is the single
convention used across the package for displayed peak values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike

RMS_FACTOR = 0.707

# Highlight colours in rank order (highest peak first)
PEAK_COLORS = ("#ef4444", "#f97316", "#eab308", "#a855f7", "#3b82f6")
BASE_POINT_COLOR = "rgba(75, 192, 192, 0.5)"


@dataclass(frozen=True)
class PeakRecord:
    """One local maximum of a spectrum."""
    magnitude: float    # Raw spectral amplitude
    frequency: str      # Frequency label, 2 decimals (Hz)
    index: int          # Bin index in the searched spectrum
    rms: str            # RMS-equivalent display value, 2 decimals

    def to_dict(self) -> dict:
        return {
            "magnitude": self.magnitude,
            "frequency": self.frequency,
            "index": self.index,
            "rms": self.rms,
        }


def rms_equivalent(amplitude: float) -> float:
    """Spectral amplitude -> RMS-equivalent value."""
    return amplitude * RMS_FACTOR


def _format_label(label) -> str:
    try:
        return f"{float(label):.2f}"
    except (TypeError, ValueError):
        return str(label)


def local_maxima(magnitude: ArrayLike) -> np.ndarray:
    """Indices of strict interior local maxima."""
    m = np.asarray(magnitude, dtype=np.float64).ravel()
    if m.size < 3:
        return np.zeros(0, dtype=np.intp)
    inner = m[1:-1]
    mask = (inner > m[:-2]) & (inner > m[2:])
    return np.flatnonzero(mask) + 1


def find_top_peaks(
    magnitude: ArrayLike,
    freq_labels: Sequence | ArrayLike,
    k: int = 5,
    max_index: int | None = None,
) -> tuple[list[PeakRecord], list[str]]:
    """
    Find the ``k`` highest local maxima of a spectrum.

    Args:
        magnitude: Magnitude spectrum (DC usually already removed).
        freq_labels: Frequency of each bin, aligned with ``magnitude``.
        k: Maximum number of peaks to return.
        max_index: Highest index allowed as a peak. Bins past it still act
            as neighbours. Used to keep the search below Nyquist.

    Returns:
        (peaks, colors): peaks sorted by descending magnitude, and a parallel
        list of highlight colours in the same rank order. Fewer than ``k``
        entries when the spectrum has fewer local maxima.
    """
    if k is None or k <= 0:
        return [], []

    m = np.asarray(magnitude, dtype=np.float64).ravel()
    labels = list(freq_labels) if freq_labels is not None else []

    candidates = local_maxima(m)
    if max_index is not None:
        candidates = candidates[candidates <= max_index]
    if candidates.size == 0:
        return [], []

    order = np.argsort(-m[candidates], kind="stable")
    top = candidates[order[:k]]

    peaks = []
    for idx in top:
        value = float(m[idx])
        label = labels[idx] if idx < len(labels) else idx
        peaks.append(PeakRecord(
            magnitude=value,
            frequency=_format_label(label),
            index=int(idx),
            rms=f"{rms_equivalent(value):.2f}",
        ))
    colors = [PEAK_COLORS[i % len(PEAK_COLORS)] for i in range(len(peaks))]
    return peaks, colors


def peak_highlight_colors(
    n_points: int,
    peaks: Sequence[PeakRecord],
    colors: Sequence[str],
    base_color: str = BASE_POINT_COLOR,
) -> list[str]:
    """Per-point colour array for a spectrum chart, peaks highlighted."""
    point_colors = [base_color] * n_points
    for peak, color in zip(peaks, colors):
        if 0 <= peak.index < n_points:
            point_colors[peak.index] = color
    return point_colors
