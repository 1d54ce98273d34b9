"""Common test fixtures for runmetrics tests."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from runmetrics.data.models import LocationFix, SensorSample
from runmetrics.data.records import CalibrationRecord
from runmetrics.data.source import MockRunSource
from runmetrics.distance import DistanceTracker
from runmetrics.store import InMemoryCalibrationStore

EARTH_RADIUS = 6371000.0
START_LATITUDE = 37.0
START_LONGITUDE = -122.0


@pytest.fixture
def make_sample():
    """Factory for a sample with only the detector axes set."""

    def _make(timestamp, gyro_z=0.0, accel_y=0.0, heart_rate=None):
        return SensorSample(
            timestamp=timestamp,
            accel_x=0.0,
            accel_y=accel_y,
            accel_z=-1.0,
            gyro_x=0.0,
            gyro_y=0.0,
            gyro_z=gyro_z,
            heart_rate=heart_rate,
        )

    return _make


@pytest.fixture
def gait_samples():
    """
    Factory for a clean 20 Hz gait signal.

    At 150 SPM the detector records a peak at 0.5 s and then every 0.8 s.
    """

    def _make(cadence=150.0, duration=10.0, start=0.0):
        source = MockRunSource(cadence=cadence, noise_level=0.0, start_time=start, seed=0)
        count = int(round(duration * 20))
        return [source.sample_at(start + i * 0.05) for i in range(count)]

    return _make


@pytest.fixture
def make_fix():
    """Factory for fixes along a meridian, where distance is exactly R * dphi."""

    def _make(timestamp, meters_north=0.0, accuracy=5.0):
        latitude = START_LATITUDE + math.degrees(meters_north / EARTH_RADIUS)
        return LocationFix(
            timestamp=timestamp,
            latitude=latitude,
            longitude=START_LONGITUDE,
            horizontal_accuracy=accuracy,
        )

    return _make


@pytest.fixture
def tracker():
    return DistanceTracker()


@pytest.fixture
def store():
    return InMemoryCalibrationStore()


@pytest.fixture
def make_records():
    """Factory for records whose step length is an exact linear function of cadence."""

    def _make(cadences=(140.0, 150.0, 160.0, 170.0, 180.0), alpha=0.01, beta=-0.5):
        base = datetime(2024, 5, 1, 7, 0, tzinfo=timezone.utc)
        records = []
        for i, cadence in enumerate(cadences):
            step_length = alpha * cadence + beta
            records.append(CalibrationRecord(
                total_steps=int(round(100.0 / step_length)),
                average_cadence=cadence,
                elapsed_seconds=40.0,
                average_step_length=step_length,
                measured_at=base + timedelta(days=i),
            ))
        return records

    return _make
