"""
Data models and types for the running-metrics engine.

Defines the sensor and location inputs consumed by the engine and the
snapshots it publishes back to the host application.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class SensorSample:
    """
    Single ankle-worn inertial reading.

    Accelerometer in g, gyroscope in rad/s. Axes follow the ankle mount:
    X points out of the sole, Y faces forward, Z is the sagittal rotation axis.
    """
    timestamp: float  # Unix timestamp (seconds)
    accel_x: float
    accel_y: float
    accel_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    heart_rate: Optional[float] = None  # BPM

    @property
    def accel_vector(self) -> np.ndarray:
        """Acceleration as numpy array."""
        return np.array([self.accel_x, self.accel_y, self.accel_z])

    @property
    def gyro_vector(self) -> np.ndarray:
        """Gyroscope data as numpy array."""
        return np.array([self.gyro_x, self.gyro_y, self.gyro_z])

    @property
    def accel_magnitude(self) -> float:
        """Magnitude of acceleration vector."""
        return float(np.linalg.norm(self.accel_vector))

    @property
    def gyro_magnitude(self) -> float:
        """Magnitude of rotation-rate vector."""
        return float(np.linalg.norm(self.gyro_vector))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wearable's transfer payload."""
        data = {
            "accelerometerX": self.accel_x,
            "accelerometerY": self.accel_y,
            "accelerometerZ": self.accel_z,
            "gyroscopeX": self.gyro_x,
            "gyroscopeY": self.gyro_y,
            "gyroscopeZ": self.gyro_z,
            "timestamp": self.timestamp,
        }
        if self.heart_rate is not None:
            data["heartRate"] = self.heart_rate
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SensorSample":
        """
        Build a sample from a transfer payload.

        Raises:
            KeyError: if a required axis or the timestamp is missing
        """
        return cls(
            timestamp=float(data["timestamp"]),
            accel_x=float(data["accelerometerX"]),
            accel_y=float(data["accelerometerY"]),
            accel_z=float(data["accelerometerZ"]),
            gyro_x=float(data["gyroscopeX"]),
            gyro_y=float(data["gyroscopeY"]),
            gyro_z=float(data["gyroscopeZ"]),
            heart_rate=data.get("heartRate"),
        )


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationFix:
    """
    GPS fix from the platform location service.

    horizontal_accuracy is the uncertainty radius in meters; a negative value
    means the fix carries no valid position.
    """
    timestamp: float  # Unix timestamp (seconds)
    latitude: float
    longitude: float
    horizontal_accuracy: float  # m
    speed: float = 0.0  # m/s as reported by the hardware
    altitude: float = 0.0
    vertical_accuracy: float = -1.0
    course: float = -1.0

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "location",
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "horizontalAccuracy": self.horizontal_accuracy,
            "verticalAccuracy": self.vertical_accuracy,
            "speed": self.speed,
            "course": self.course,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationFix":
        """
        Build a fix from a transfer payload.

        Raises:
            ValueError: if the payload is not tagged as a location message
            KeyError: if a required field is missing
        """
        if data.get("type") != "location":
            raise ValueError(f"Not a location payload: {data.get('type')!r}")

        return cls(
            timestamp=float(data["timestamp"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            horizontal_accuracy=float(data["horizontalAccuracy"]),
            speed=float(data.get("speed", 0.0)),
            altitude=float(data.get("altitude", 0.0)),
            vertical_accuracy=float(data.get("verticalAccuracy", -1.0)),
            course=float(data.get("course", -1.0)),
        )


@dataclass
class LiveMetrics:
    """
    Snapshot of the live outputs published to the host.

    Rebuilt on every query; holding on to one does not track later updates.
    """
    timestamp: float
    cadence: float = 0.0             # SPM
    total_steps: int = 0             # live cumulative (both feet)
    gps_distance: float = 0.0        # m
    stride_distance: float = 0.0     # m, 0 while no stride model is active
    speed: float = 0.0               # m/s
    path: List[Coordinate] = field(default_factory=list)
    stride_model_active: bool = False


@dataclass
class RunSummary:
    """
    Summary of one finished live monitoring window.
    """
    distance: float = 0.0            # m
    duration: float = 0.0            # s
    average_cadence: float = 0.0     # SPM
    average_heart_rate: float = 0.0  # BPM
    average_speed: float = 0.0       # m/s
    total_steps: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def distance_km(self) -> float:
        return self.distance / 1000.0

    @property
    def average_pace(self) -> float:
        """Average pace in minutes per kilometer (0 when no distance)."""
        if self.distance_km <= 0:
            return 0.0
        return self.duration / 60.0 / self.distance_km

    @property
    def formatted_duration(self) -> str:
        total = int(self.duration)
        hours, minutes, seconds = total // 3600, (total % 3600) // 60, total % 60
        if hours > 0:
            return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def formatted_pace(self) -> str:
        total = int(self.average_pace * 60)
        return f"{total // 60}'{total % 60:02d}\""
