"""
generate_sample_data.py — Create synthetic sensor records for testing.

Generates JSON files in the shape returned by the sensor API (config,
thresholds and raw h/v/a ADC buffers), so the MCP server can be exercised
without actual hardware via ``load_buffer_file``.

Usage:
    python generate_sample_data.py

Outputs:
    examples/sample_data/healthy_pump.json
    examples/sample_data/unbalance_motor.json
    examples/sample_data/offline_fan.json
"""

import json
import os

from vibration_monitor_mcp.synthetic import synthetic_sensor_record


def main():
    out_dir = os.path.join(os.path.dirname(__file__), "sample_data")
    os.makedirs(out_dir, exist_ok=True)

    shaft_rpm = 1470.0
    shaft_freq = shaft_rpm / 60.0  # 24.5 Hz

    # --- 1. Healthy pump ---
    healthy = synthetic_sensor_record(
        "pump-01",
        fmax=400,
        lor=6400,
        g_scale=2,
        axis_components={
            axis: [
                {"frequency": shaft_freq, "amplitude": 0.0004, "phase": 0},
                {"frequency": 2 * shaft_freq, "amplitude": 0.0001, "phase": 0.5},
            ]
            for axis in ("h", "v", "a")
        },
        noise_g=0.00002,
        seed=42,
        name="Centrifugal pump DE",
        machine_name="Pump 01",
        threshold_min=0.1,
        threshold_max=0.15,
    )
    _write(out_dir, "healthy_pump.json", healthy)

    # --- 2. Motor with unbalance (dominant 1× on the radial axes) ---
    unbalance = synthetic_sensor_record(
        "motor-07",
        fmax=400,
        lor=6400,
        g_scale=4,
        axis_components={
            "h": [
                {"frequency": shaft_freq, "amplitude": 0.02, "phase": 0},
                {"frequency": 2 * shaft_freq, "amplitude": 0.002, "phase": 0.3},
            ],
            "v": [{"frequency": shaft_freq, "amplitude": 0.012, "phase": 1.2}],
            "a": [{"frequency": shaft_freq, "amplitude": 0.002, "phase": 0}],
        },
        noise_g=0.0005,
        seed=43,
        name="Induction motor NDE",
        machine_name="Motor 07",
        machine_class="group2",
    )
    _write(out_dir, "unbalance_motor.json", unbalance)

    # --- 3. Offline fan ---
    offline = synthetic_sensor_record(
        "fan-03",
        seed=44,
        name="Cooling fan",
        connectivity="offline",
    )
    _write(out_dir, "offline_fan.json", offline)

    print(f"\nAll sample data files saved to: {out_dir}")


def _write(out_dir: str, filename: str, record: dict) -> None:
    with open(os.path.join(out_dir, filename), "w") as f:
        json.dump(record, f, indent=2)
    n = len(record["last_data"]["h"])
    print(f"Created {filename} ({n} samples per axis)")


if __name__ == "__main__":
    main()
