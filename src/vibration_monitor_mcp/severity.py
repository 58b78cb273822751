"""
Vibration severity classification.

A velocity magnitude (mm/s) is mapped onto four ordered levels using three
ascending thresholds:

    velocity <  min              -> normal
    min    <= velocity < medium  -> warning
    medium <= velocity < max     -> concern
    velocity >= max              -> critical

Thresholds are configured per sensor; when a sensor has none the system
defaults apply. The classifier is stateless: there is no hysteresis, so a
value hovering around a boundary flips between adjacent levels.

Also provides the ISO 10816 machine-group bands as an alternative threshold
source.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

VibrationLevel = Literal["normal", "warning", "concern", "critical"]

LEVELS: tuple[VibrationLevel, ...] = ("normal", "warning", "concern", "critical")

# System defaults (mm/s)
DEFAULT_THRESHOLD_MIN = 0.1
DEFAULT_THRESHOLD_MAX = 0.15

LEVEL_COLORS: dict[str, str] = {
    "normal": "#22c55e",
    "warning": "#ffff00",
    "concern": "#ff6600",
    "critical": "#ff0000",
}
OFFLINE_COLOR = "#9ca3af"


# ---------------------------------------------------------------------------
# ISO 10816 Vibration Severity (RMS velocity mm/s)
# ---------------------------------------------------------------------------

ISO_10816_THRESHOLDS: dict[str, dict[str, float]] = {
    # Group 1: Large machines > 300 kW on rigid foundations
    "group1": {"A_good": 2.8, "B_acceptable": 7.1, "C_alarm": 18.0},
    # Group 2: Medium machines 15–300 kW on rigid foundations
    "group2": {"A_good": 1.4, "B_acceptable": 2.8, "C_alarm": 7.1},
    # Group 3: Large machines on flexible foundations
    "group3": {"A_good": 3.5, "B_acceptable": 9.0, "C_alarm": 22.4},
    # Group 4: Small machines < 15 kW
    "group4": {"A_good": 0.71, "B_acceptable": 1.8, "C_alarm": 4.5},
}


def _threshold_value(value: Any) -> Optional[float]:
    """Parse a threshold field; empty, zero or unparseable means 'not set'."""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number == 0:
        return None
    return number


@dataclass(frozen=True)
class VibrationThresholds:
    """
    Three ascending band edges over velocity (mm/s).

    ``medium`` defaults to the midpoint of ``min`` and ``max``. The ordering
    ``min <= medium <= max`` is the caller's responsibility and is not
    enforced here.
    """
    min: float = DEFAULT_THRESHOLD_MIN
    medium: Optional[float] = None
    max: float = DEFAULT_THRESHOLD_MAX

    @property
    def resolved_medium(self) -> float:
        if self.medium is None:
            return (self.min + self.max) / 2.0
        return self.medium

    @classmethod
    def from_values(
        cls,
        min: Any = None,
        medium: Any = None,
        max: Any = None,
    ) -> "VibrationThresholds":
        """Build thresholds from optional raw values, defaulting what is unset."""
        lo = _threshold_value(min)
        hi = _threshold_value(max)
        return cls(
            min=DEFAULT_THRESHOLD_MIN if lo is None else lo,
            medium=_threshold_value(medium),
            max=DEFAULT_THRESHOLD_MAX if hi is None else hi,
        )

    @classmethod
    def from_config(cls, record: Mapping[str, Any] | None) -> "VibrationThresholds":
        """
        Read ``threshold_min`` / ``threshold_medium`` / ``threshold_max`` from
        a sensor record. Values may be numbers or numeric strings.
        """
        record = record or {}
        return cls.from_values(
            record.get("threshold_min"),
            record.get("threshold_medium"),
            record.get("threshold_max"),
        )

    def to_dict(self) -> dict:
        return {"min": self.min, "medium": self.resolved_medium, "max": self.max}


DEFAULT_THRESHOLDS = VibrationThresholds()


def iso_thresholds(machine_group: str = "group2") -> VibrationThresholds:
    """ISO 10816 zone limits (A/B, B/C, C/D) as classifier thresholds."""
    bands = ISO_10816_THRESHOLDS.get(machine_group, ISO_10816_THRESHOLDS["group2"])
    return VibrationThresholds(
        min=bands["A_good"],
        medium=bands["B_acceptable"],
        max=bands["C_alarm"],
    )


def thresholds_for_sensor(record: Mapping[str, Any] | None) -> VibrationThresholds:
    """
    Pick the thresholds for a sensor record.

    Explicit ``threshold_*`` fields win. Otherwise a ``machine_class`` equal
    to one of the ISO 10816 group keys (``group1`` .. ``group4``) selects
    that group's bands. Only those keys are recognised: the sensor API's own
    machine class names are not mapped and fall back to the system defaults,
    as does a record with neither.
    """
    record = record or {}
    has_explicit = any(
        _threshold_value(record.get(key)) is not None
        for key in ("threshold_min", "threshold_medium", "threshold_max")
    )
    if has_explicit:
        return VibrationThresholds.from_config(record)
    machine_class = record.get("machine_class")
    if machine_class in ISO_10816_THRESHOLDS:
        return iso_thresholds(machine_class)
    return DEFAULT_THRESHOLDS


def get_vibration_level(
    velocity: float,
    thresholds: VibrationThresholds | None = None,
) -> VibrationLevel:
    """
    Classify a velocity magnitude (mm/s).

    Args:
        velocity: Velocity value in mm/s. NaN or unparseable values classify
            as normal; infinities go through the bands like any other value.
        thresholds: Per-sensor thresholds; system defaults when None.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    try:
        v = float(velocity)
    except (TypeError, ValueError):
        return "normal"
    if math.isnan(v):
        return "normal"

    if v < t.min:
        return "normal"
    if v < t.resolved_medium:
        return "warning"
    if v < t.max:
        return "concern"
    return "critical"


def level_rank(level: str) -> int:
    """Position of a level in band order (normal = 0 ... critical = 3)."""
    return LEVELS.index(level) if level in LEVELS else 0


def get_vibration_color(level: str, offline: bool = False) -> str:
    """Hex colour used by status dots and cards for a level."""
    if offline:
        return OFFLINE_COLOR
    return LEVEL_COLORS.get(level, LEVEL_COLORS["normal"])
