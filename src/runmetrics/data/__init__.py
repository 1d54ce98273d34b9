"""Data models, persisted records and the input layer."""

from .models import (
    SensorSample,
    Coordinate,
    LocationFix,
    LiveMetrics,
    RunSummary,
)
from .records import CalibrationRecord, StrideModel
from .source import DataSource, MockRunSource

__all__ = [
    "SensorSample",
    "Coordinate",
    "LocationFix",
    "LiveMetrics",
    "RunSummary",
    "CalibrationRecord",
    "StrideModel",
    "DataSource",
    "MockRunSource",
]
