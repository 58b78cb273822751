from __future__ import annotations

import numpy as np
import pytest

from vibration_monitor_mcp.severity import (
    DEFAULT_THRESHOLDS,
    LEVEL_COLORS,
    LEVELS,
    OFFLINE_COLOR,
    VibrationThresholds,
    get_vibration_color,
    get_vibration_level,
    iso_thresholds,
    level_rank,
    thresholds_for_sensor,
)

# -- default bands ----------------------------------------------------------------


@pytest.mark.parametrize(
    "velocity,expected",
    [
        (0.0, "normal"),
        (0.099, "normal"),
        (0.1, "warning"),
        (0.124, "warning"),
        (0.125, "concern"),
        (0.149, "concern"),
        (0.15, "critical"),
        (12.0, "critical"),
    ],
)
def test_default_bands(velocity: float, expected: str) -> None:
    assert get_vibration_level(velocity) == expected


def test_default_medium_is_midpoint() -> None:
    assert DEFAULT_THRESHOLDS.resolved_medium == pytest.approx(0.125)


def test_nan_and_unparseable_velocity_is_normal() -> None:
    assert get_vibration_level(float("nan")) == "normal"
    assert get_vibration_level("not a number") == "normal"  # type: ignore[arg-type]
    assert get_vibration_level(None) == "normal"  # type: ignore[arg-type]


def test_infinite_velocity_goes_through_bands() -> None:
    assert get_vibration_level(float("inf")) == "critical"
    assert get_vibration_level(float("-inf")) == "normal"


def test_level_is_monotonic() -> None:
    values = [*np.linspace(0.0, 0.3, 301), 1e300, float("inf")]
    ranks = [level_rank(get_vibration_level(v)) for v in values]
    assert ranks == sorted(ranks)
    assert ranks[-1] == level_rank("critical")


def test_explicit_medium() -> None:
    t = VibrationThresholds(min=1.0, medium=4.0, max=5.0)
    assert get_vibration_level(3.9, t) == "warning"
    assert get_vibration_level(4.0, t) == "concern"


# -- threshold parsing ------------------------------------------------------------


def test_from_config_parses_strings() -> None:
    t = VibrationThresholds.from_config(
        {"threshold_min": "0.2", "threshold_medium": "", "threshold_max": "0.4"}
    )
    assert t.min == 0.2
    assert t.max == 0.4
    assert t.resolved_medium == pytest.approx(0.3)


def test_from_config_zero_or_missing_uses_defaults() -> None:
    t = VibrationThresholds.from_config({"threshold_min": 0, "threshold_max": "abc"})
    assert t.min == 0.1
    assert t.max == 0.15
    assert VibrationThresholds.from_config(None) == DEFAULT_THRESHOLDS


def test_thresholds_to_dict() -> None:
    assert DEFAULT_THRESHOLDS.to_dict() == {"min": 0.1, "medium": 0.125, "max": 0.15}


def test_iso_thresholds() -> None:
    t = iso_thresholds("group2")
    assert (t.min, t.resolved_medium, t.max) == (1.4, 2.8, 7.1)
    assert get_vibration_level(3.0, t) == "concern"
    assert iso_thresholds("unknown") == t


def test_thresholds_for_sensor_priority() -> None:
    assert thresholds_for_sensor({"threshold_max": 3}).max == 3.0
    assert thresholds_for_sensor({"machine_class": "group4"}) == iso_thresholds("group4")
    assert thresholds_for_sensor({"machine_class": "boiler"}) == DEFAULT_THRESHOLDS
    assert thresholds_for_sensor({"machine_class": "Group 2"}) == DEFAULT_THRESHOLDS
    assert thresholds_for_sensor(None) == DEFAULT_THRESHOLDS


# -- ranks and colours ------------------------------------------------------------


def test_level_rank_order() -> None:
    assert [level_rank(level) for level in LEVELS] == [0, 1, 2, 3]
    assert level_rank("bogus") == 0


def test_colors() -> None:
    assert get_vibration_color("critical") == LEVEL_COLORS["critical"]
    assert get_vibration_color("bogus") == LEVEL_COLORS["normal"]
    assert get_vibration_color("critical", offline=True) == OFFLINE_COLOR
