"""
Running-metrics engine.

Turns an ankle-worn motion stream and GPS fixes into live cadence, step
count and distance, and learns a personal stride model from calibration runs.
"""

from .cadence import CadenceEstimator, CadenceResult, LiveCadenceMonitor, PeakDetector
from .calibration import CalibrationSession, CalibrationState
from .config import (
    CadenceConfig,
    CalibrationConfig,
    DistanceConfig,
    MetricsConfig,
    StrideModelConfig,
)
from .distance import DistanceTracker, haversine_distance
from .event_logger import RunEventLogger
from .monitor import RunMonitor, create_monitor
from .store import InMemoryCalibrationStore, JsonCalibrationStore, StoreError
from .stride_model import StrideCalibrator, StrideModelFitter

__version__ = "0.1.0"

__all__ = [
    "CadenceEstimator",
    "CadenceResult",
    "LiveCadenceMonitor",
    "PeakDetector",
    "CalibrationSession",
    "CalibrationState",
    "CadenceConfig",
    "CalibrationConfig",
    "DistanceConfig",
    "MetricsConfig",
    "StrideModelConfig",
    "DistanceTracker",
    "haversine_distance",
    "RunEventLogger",
    "RunMonitor",
    "create_monitor",
    "InMemoryCalibrationStore",
    "JsonCalibrationStore",
    "StoreError",
    "StrideCalibrator",
    "StrideModelFitter",
]
