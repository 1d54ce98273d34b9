"""Configuration dataclasses for the running-metrics engine."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class CadenceConfig:
    # Tuned for a left-ankle mount: Z is sagittal rotation, Y faces forward.
    stance_threshold: float = -2.0   # gyro Z (rad/s) that marks stance onset
    window_seconds: float = 10.0     # live sliding window horizon
    update_interval: float = 3.0     # live recompute period (s)
    min_samples: int = 20            # ~1 s at 20 Hz
    min_spm: float = 60.0
    max_spm: float = 300.0


@dataclass
class DistanceConfig:
    max_horizontal_accuracy: float = 20.0  # m, exclusive
    max_realistic_speed: float = 15.0      # m/s (54 km/h), exclusive
    earth_radius: float = 6371000.0        # m


@dataclass
class StrideModelConfig:
    min_records: int = 5


@dataclass
class CalibrationConfig:
    target_distance: float = 100.0   # m
    tick_interval: float = 0.1       # s
    grace_delay: float = 0.5         # s after the target is crossed
    min_steps: int = 20
    min_elapsed_seconds: float = 10.0


@dataclass
class MetricsConfig:
    cadence: CadenceConfig = field(default_factory=CadenceConfig)
    distance: DistanceConfig = field(default_factory=DistanceConfig)
    stride_model: StrideModelConfig = field(default_factory=StrideModelConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    log_level: str = "INFO"
    event_log_dir: Optional[Path] = None
