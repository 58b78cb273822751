"""
Synthetic sensor buffers for tests and demos.

Signals are built from sinusoidal components given in g, then quantised to
ADC counts with the sensitivity of the requested full-scale range, so they
go through exactly the same conversion path as real sensor data.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .conversion import sensitivity_for_range
from .sensor_config import DEFAULT_FMAX_HZ, DEFAULT_G_SCALE, DEFAULT_LOR, sample_interval


def synthetic_adc_buffer(
    n_samples: int,
    components: list[dict],
    fmax: float = DEFAULT_FMAX_HZ,
    lor: float = DEFAULT_LOR,
    g_scale: int = DEFAULT_G_SCALE,
    noise_g: float = 0.0,
    offset_g: float = 0.0,
    seed: int = 42,
) -> NDArray[np.float64]:
    """
    Generate one axis buffer of raw ADC counts.

    Args:
        n_samples: Buffer length.
        components: List of dicts with 'frequency' (Hz), 'amplitude' (g) and
            optional 'phase' (rad).
        fmax: Analysis bandwidth, sets the time base with ``lor``.
        lor: Lines of resolution.
        g_scale: Full-scale range used for quantisation.
        noise_g: Standard deviation of additive Gaussian noise (g).
        offset_g: Constant DC offset (g).
        seed: Random seed for reproducibility.

    Returns:
        Integer-valued float64 array of ADC counts, clipped to int16.
    """
    rng = np.random.default_rng(seed)
    dt = sample_interval(n_samples, fmax, lor)
    t = np.arange(n_samples) * dt
    signal = np.full(n_samples, float(offset_g))

    for comp in components:
        f = comp["frequency"]
        a = comp["amplitude"]
        phi = comp.get("phase", 0.0)
        signal += a * np.sin(2 * np.pi * f * t + phi)

    if noise_g > 0:
        signal += rng.normal(0, noise_g, n_samples)

    counts = np.round(signal * sensitivity_for_range(g_scale))
    return np.clip(counts, -32768, 32767)


def synthetic_sensor_record(
    sensor_id: str = "S-001",
    n_samples: int = 1600,
    fmax: float = DEFAULT_FMAX_HZ,
    lor: int = DEFAULT_LOR,
    g_scale: int = DEFAULT_G_SCALE,
    axis_components: Optional[dict[str, list[dict]]] = None,
    noise_g: float = 0.0,
    seed: int = 42,
    **fields,
) -> dict:
    """
    Build a sensor record in the shape returned by the sensor API.

    ``axis_components`` maps 'h'/'v'/'a' to component lists; axes not given
    get a single small 25 Hz tone. Extra keyword arguments (``name``,
    ``threshold_min``, ``connectivity``...) are copied into the record.
    """
    default = [{"frequency": 25.0, "amplitude": 0.01}]
    axis_components = axis_components or {}
    last_data = {}
    for i, axis in enumerate(("h", "v", "a")):
        buf = synthetic_adc_buffer(
            n_samples,
            axis_components.get(axis, default),
            fmax=fmax,
            lor=lor,
            g_scale=g_scale,
            noise_g=noise_g,
            seed=seed + i,
        )
        last_data[axis] = [int(x) for x in buf]

    record = {
        "id": sensor_id,
        "fmax": fmax,
        "lor": lor,
        "g_scale": g_scale,
        "connectivity": "online",
        "last_data": last_data,
    }
    record.update(fields)
    return record
