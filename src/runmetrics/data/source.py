"""
Data source abstraction and mock implementation.

A data source yields the two inbound streams the engine consumes, sensor
samples and GPS fixes, merged in timestamp order. Platform integrations
(watch link, location service) should inherit from DataSource.
"""

from abc import ABC, abstractmethod
import math
from typing import Iterator, Optional, Union

import numpy as np

from .models import LocationFix, SensorSample

SourceItem = Union[SensorSample, LocationFix]


class DataSource(ABC):
    """
    Abstract base class for run data sources.

    read() returns the next sample or fix; items come out in timestamp order.
    """

    @abstractmethod
    def read(self) -> SourceItem:
        pass

    @abstractmethod
    def close(self) -> None:
        """Clean up resources (close connections, stop threads, etc.)."""
        pass

    def stream(self, until: float) -> Iterator[SourceItem]:
        """Yield items with timestamps before until."""
        while True:
            item = self.read()
            if item.timestamp >= until:
                return
            yield item


class MockRunSource(DataSource):
    """
    Synthetic ankle IMU and GPS stream of a steady run.

    Simulates:
    - IMU: one sinusoidal gait cycle per two steps. Gyro Z swings positive
      with forward acceleration, then dips well below the stance threshold
    - Heart rate: constant effort with noise
    - GPS: fixes moving due north along a meridian at a constant speed
    """

    SAMPLE_RATE = 20.0     # Hz
    GYRO_AMPLITUDE = 4.0   # rad/s
    ACCEL_AMPLITUDE = 1.0  # g
    ACCEL_OFFSET = 0.2     # g
    EARTH_RADIUS = 6371000.0

    def __init__(
        self,
        cadence: float = 150.0,
        speed: float = 3.0,
        sample_rate: float = SAMPLE_RATE,
        gps_interval: float = 1.0,
        gps_accuracy: float = 5.0,
        heart_rate: float = 150.0,
        noise_level: float = 0.05,
        start_time: float = 0.0,
        start_latitude: float = 37.3349,
        start_longitude: float = -122.0090,
        seed: Optional[int] = None,
    ):
        """
        Initialize mock run source.

        Args:
            cadence: Steps per minute (both feet)
            speed: Ground speed in m/s
            sample_rate: IMU sampling frequency in Hz
            gps_interval: Seconds between GPS fixes
            gps_accuracy: Reported horizontal accuracy of every fix (m)
            heart_rate: Mean heart rate in BPM
            noise_level: Standard deviation of IMU noise (0 for a clean signal)
            start_time: Timestamp of the first sample and fix
            start_latitude: Latitude of the first fix (degrees)
            start_longitude: Longitude of every fix (degrees)
            seed: Random seed for reproducible noise
        """
        if cadence <= 0:
            raise ValueError(f"cadence must be positive, got {cadence}")

        self.cadence = cadence
        self.speed = speed
        self.sample_interval = 1.0 / sample_rate
        self.gps_interval = gps_interval
        self.gps_accuracy = gps_accuracy
        self.heart_rate = heart_rate
        self.noise_level = noise_level
        self.start_time = start_time
        self.start_latitude = start_latitude
        self.start_longitude = start_longitude

        # One instrumented ankle completes a gait cycle every two steps
        self.cycle_period = 120.0 / cadence

        self._rng = np.random.default_rng(seed)
        self._sample_index = 0
        self._fix_index = 0

    def read(self) -> SourceItem:
        sample_time = self.start_time + self._sample_index * self.sample_interval
        fix_time = self.start_time + self._fix_index * self.gps_interval

        if fix_time <= sample_time:
            self._fix_index += 1
            return self.location_at(fix_time)

        self._sample_index += 1
        return self.sample_at(sample_time)

    def sample_at(self, timestamp: float) -> SensorSample:
        """Generate the IMU sample for a point in time."""
        phase = 2 * math.pi * (timestamp - self.start_time) / self.cycle_period
        swing = math.sin(phase)

        noise = (self._rng.normal(0, self.noise_level, 6) if self.noise_level > 0
                 else np.zeros(6))

        return SensorSample(
            timestamp=timestamp,
            accel_x=float(0.3 * math.cos(phase) + noise[0]),
            accel_y=float(self.ACCEL_AMPLITUDE * swing + self.ACCEL_OFFSET + noise[1]),
            accel_z=float(-1.0 + noise[2]),
            gyro_x=float(noise[3]),
            gyro_y=float(noise[4]),
            gyro_z=float(self.GYRO_AMPLITUDE * swing + noise[5]),
            heart_rate=float(self.heart_rate + self._rng.normal(0, 2.0)),
        )

    def location_at(self, timestamp: float) -> LocationFix:
        """Generate the GPS fix for a point in time."""
        travelled = self.speed * (timestamp - self.start_time)
        latitude = self.start_latitude + math.degrees(travelled / self.EARTH_RADIUS)

        return LocationFix(
            timestamp=timestamp,
            latitude=latitude,
            longitude=self.start_longitude,
            horizontal_accuracy=self.gps_accuracy,
            speed=self.speed,
            course=0.0,
        )

    def close(self) -> None:
        """Clean up (no-op for mock source)."""
        pass
