"""
Acquisition configuration for the wireless vibration sensors.

Each buffer fetched from the sensor API arrives with a small configuration
record describing how it was acquired:

- ``fmax``: maximum analysis frequency (Hz)
- ``lor``: lines of resolution, the sample-count basis of the time span
- ``g_scale``: accelerometer full-scale range (±2/4/8/16 g)
- ``time_interval``: reporting cadence (not used in per-buffer math)

The total acquisition time span is ``lor / fmax`` seconds and the time step
between two of the ``n`` samples is ``span / (n - 1)``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from .severity import VibrationThresholds

SUPPORTED_G_SCALES = (2, 4, 8, 16)

# Fallbacks used by the dashboard when a sensor record omits a field
DEFAULT_FMAX_HZ = 400.0
DEFAULT_LOR = 6400
DEFAULT_G_SCALE = 16


def _positive_number(value: Any, default: float) -> float:
    """Coerce an API field to a positive float, or return the default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


@dataclass
class AcquisitionConfig:
    """Scalar parameters accompanying one acquisition buffer."""
    fmax: float = DEFAULT_FMAX_HZ
    lor: int = DEFAULT_LOR
    g_scale: int = DEFAULT_G_SCALE
    time_interval: float = 0.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> "AcquisitionConfig":
        """
        Build a config from a sensor record as returned by the sensor API.

        Missing, zero or unparseable values fall back to the defaults, the
        same way the dashboard treats ``sensor.fmax || 400``.
        """
        record = record or {}
        return cls(
            fmax=_positive_number(record.get("fmax"), DEFAULT_FMAX_HZ),
            lor=int(_positive_number(record.get("lor"), DEFAULT_LOR)),
            g_scale=int(_positive_number(record.get("g_scale"), DEFAULT_G_SCALE)),
            time_interval=_positive_number(record.get("time_interval"), 0.0),
        )

    def validate(self) -> None:
        """Raise ValueError when the config violates ``fmax > 0`` / ``lor > 0``."""
        if not (self.fmax > 0):
            raise ValueError(f"fmax must be > 0, got {self.fmax}")
        if not (self.lor > 0):
            raise ValueError(f"lor must be > 0, got {self.lor}")

    @property
    def time_span_s(self) -> float:
        """Total sample time span in seconds."""
        return self.lor / self.fmax

    def sample_interval(self, n_samples: int) -> float:
        """Time between consecutive samples of an ``n_samples`` buffer."""
        return sample_interval(n_samples, self.fmax, self.lor)

    @property
    def is_known_g_scale(self) -> bool:
        return self.g_scale in SUPPORTED_G_SCALES

    def to_dict(self) -> dict:
        return asdict(self)


def sample_interval(n_samples: int, fmax: float, lor: float) -> float:
    """
    Per-sample time delta ``(lor / fmax) / (n - 1)``.

    Buffers with fewer than two samples use a divisor of 1.
    """
    span = lor / fmax
    return span / (n_samples - 1 if n_samples > 1 else 1)


@dataclass
class AnalysisSettings:
    """Defaults applied by the integration layer (MCP server)."""
    max_peaks: int = 5
    cache_size: int = 128
    thresholds: VibrationThresholds = field(default_factory=VibrationThresholds)


settings = AnalysisSettings()
