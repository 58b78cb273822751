"""
Unit conversion and time-domain integration of accelerometer samples.

Raw samples arrive as signed 16-bit ADC counts. The full-scale range
(``g_scale``) selects the sensitivity, i.e. how many counts make one g:

    ±2 g  -> 16384 LSB/g
    ±4 g  ->  8192 LSB/g
    ±8 g  ->  4096 LSB/g
    ±16 g ->  2048 LSB/g      (divisor = 32768 / range)

Velocity is derived from acceleration by cumulative trapezoidal integration.
No detrending is applied, so a DC offset in acceleration shows up as a
linear drift in velocity.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.integrate import cumulative_trapezoid

STANDARD_GRAVITY_MM_S2 = 9806.65

SENSITIVITY_LSB_PER_G: dict[int, int] = {
    2: 16384,
    4: 8192,
    8: 4096,
    16: 2048,
}
DEFAULT_SENSITIVITY = SENSITIVITY_LSB_PER_G[2]


def sensitivity_for_range(g_range) -> int:
    """ADC counts per g for a full-scale range; unknown ranges use ±2 g."""
    try:
        return SENSITIVITY_LSB_PER_G.get(g_range, DEFAULT_SENSITIVITY)
    except TypeError:
        return DEFAULT_SENSITIVITY


def adc_to_acceleration_g(adc: ArrayLike, g_range=16):
    """
    Convert raw ADC counts to acceleration in g.

    Args:
        adc: A single ADC reading or an array of readings.
        g_range: Full-scale range (2, 4, 8 or 16). Anything else falls back
            to the ±2 g sensitivity instead of raising.

    Returns:
        float for scalar input, float64 array otherwise.
    """
    sensitivity = sensitivity_for_range(g_range)
    if np.isscalar(adc):
        return float(adc) / sensitivity
    return np.asarray(adc, dtype=np.float64) / sensitivity


def acceleration_g_to_mm_per_sec_squared(accel_g: ArrayLike):
    """g -> mm/s² (1 g = 9806.65 mm/s²)."""
    if np.isscalar(accel_g):
        return float(accel_g) * STANDARD_GRAVITY_MM_S2
    return np.asarray(accel_g, dtype=np.float64) * STANDARD_GRAVITY_MM_S2


def adc_to_mm_per_sec_squared(adc: ArrayLike, g_range=16) -> NDArray[np.float64]:
    """Shortcut for ADC -> g -> mm/s² over a whole buffer."""
    return acceleration_g_to_mm_per_sec_squared(
        adc_to_acceleration_g(np.asarray(adc, dtype=np.float64), g_range)
    )


def acceleration_to_velocity(accel: ArrayLike, dt: float) -> NDArray[np.float64]:
    """
    Integrate an acceleration series into velocity (trapezoidal rule).

    ``v[0] = 0`` and ``v[i+1] = v[i] + 0.5 * dt * (a[i] + a[i+1])``; every
    entry is the running integral up to that sample.

    Args:
        accel: Acceleration samples (e.g. mm/s²).
        dt: Time step between samples in seconds.

    Returns:
        Velocity array with the same length as ``accel`` (mm/s for mm/s² input).
    """
    a = np.asarray(accel, dtype=np.float64).ravel()
    if a.size == 0:
        return np.zeros(0, dtype=np.float64)
    return cumulative_trapezoid(a, dx=float(dt), initial=0)
