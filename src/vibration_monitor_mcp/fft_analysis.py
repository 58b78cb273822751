"""
FFT and spectral analysis module.

Provides the frequency-domain steps of the axis pipeline:
- Hann windowing
- Zero-padded FFT magnitude spectrum
- Analytic acceleration -> velocity spectrum conversion

Scaling conventions of the sensor family:

    magnitude[i] = (2.56 / n) * |X[i]|
    frequency[i] = i * fmax / (1600 * 2.56)

``2.56`` is the ratio between sampling rate and analysis bandwidth of the
acquisition chain and ``1600`` the line count the frequency axis was
calibrated against. Both are fixed constants of the device family and are
not derived from the ``lor`` of the buffer being analysed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.signal import windows

logger = logging.getLogger(__name__)

BIN_SCALE = 2.56
FREQUENCY_LINES = 1600


def _empty() -> NDArray[np.float64]:
    return np.zeros(0, dtype=np.float64)


@dataclass
class SpectrumResult:
    """Magnitude spectrum with its aligned frequency axis (index 0 = DC)."""
    magnitude: NDArray[np.float64] = field(default_factory=_empty)
    frequency: NDArray[np.float64] = field(default_factory=_empty)

    def __len__(self) -> int:
        return len(self.magnitude)

    @property
    def is_empty(self) -> bool:
        return len(self.magnitude) == 0

    def without_dc(self) -> "SpectrumResult":
        """Drop bin 0 (the DC component)."""
        return SpectrumResult(self.magnitude[1:], self.frequency[1:])

    def to_dict(self) -> dict:
        return {
            "magnitude": self.magnitude.tolist(),
            "frequency": self.frequency.tolist(),
        }


def frequency_resolution(max_freq: float) -> float:
    """Spacing of the frequency axis in Hz."""
    return max_freq / (FREQUENCY_LINES * BIN_SCALE)


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (n >= 1)."""
    return 1 << max(0, math.ceil(math.log2(n)))


def nyquist_bin(n: int) -> int:
    """
    Last non-aliased bin of an ``n``-sample spectrum.

    The ``n`` kept bins of the padded FFT run past ``n_fft / 2``; everything
    above that index mirrors the lower half and must not be searched for
    peaks.
    """
    if n <= 0:
        return 0
    return next_power_of_two(n) // 2


def apply_hann_window(data: ArrayLike) -> NDArray[np.float64]:
    """
    Multiply by a symmetric Hann window, ``0.5 * (1 - cos(2πi / (n-1)))``.

    Args:
        data: 1D time-domain signal.

    Returns:
        Windowed copy of the signal.
    """
    x = np.asarray(data, dtype=np.float64).ravel()
    if x.size == 0:
        return x.copy()
    return x * windows.hann(x.size, sym=True)


def compute_spectrum(time_data: ArrayLike, max_freq: float = 400.0) -> SpectrumResult:
    """
    Compute the magnitude spectrum of a time-domain buffer.

    The input is zero-padded to the next power of two, transformed, and
    the first ``n`` bins are kept (``n`` = un-padded length).

    Args:
        time_data: 1D time-domain signal.
        max_freq: Analysis bandwidth ``fmax`` in Hz; sets the frequency axis.

    Returns:
        SpectrumResult with ``n`` bins. An empty result means no spectrum
        could be computed (empty or non-finite input); this never raises.
    """
    try:
        x = np.asarray(time_data, dtype=np.float64).ravel()
        n = x.size
        if n == 0:
            raise ValueError("empty buffer")
        if not np.all(np.isfinite(x)):
            raise ValueError("buffer contains non-finite samples")

        n_fft = next_power_of_two(n)
        fft_vals = np.fft.fft(x, n=n_fft)[:n]

        magnitude = (BIN_SCALE / n) * np.abs(fft_vals)
        frequency = np.round(np.arange(n) * frequency_resolution(max_freq), 2)
        return SpectrumResult(magnitude, frequency)
    except (ValueError, TypeError, ZeroDivisionError, OverflowError) as e:
        logger.warning(f"FFT unavailable: {e}")
        return SpectrumResult()


def velocity_spectrum_from_acceleration(
    spectrum: SpectrumResult,
    max_freq: float = 400.0,
) -> SpectrumResult:
    """
    Turn an acceleration spectrum into a velocity spectrum analytically.

    Each bin is divided by ``2π · i · Δf`` (integration in the frequency
    domain). The DC bin has no finite velocity equivalent and is set to 0.

    Args:
        spectrum: Spectrum of an acceleration series (e.g. mm/s²).
        max_freq: Analysis bandwidth used to build ``spectrum``.

    Returns:
        SpectrumResult on the same frequency axis (mm/s for mm/s² input).
    """
    if spectrum.is_empty:
        return SpectrumResult()

    df = frequency_resolution(max_freq)
    omega = 2.0 * np.pi * np.arange(len(spectrum)) * df
    magnitude = np.zeros_like(spectrum.magnitude)
    nonzero = omega > 0
    magnitude[nonzero] = spectrum.magnitude[nonzero] / omega[nonzero]
    return SpectrumResult(magnitude, spectrum.frequency.copy())
