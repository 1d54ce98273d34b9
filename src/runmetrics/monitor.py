"""
Main running-metrics orchestrator.

Coordinates all engine components:
- Live cadence over the sliding window
- GPS and stride-projected distance
- Calibration runs and the personal stride model
- Calibration persistence and the diagnostic journal

The host pushes samples and fixes in, drives time through tick(now), and
reads LiveMetrics snapshots back out.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

import numpy as np

from .cadence import CadenceEstimator, LiveCadenceMonitor
from .calibration import CalibrationSession
from .config import MetricsConfig
from .data.models import LiveMetrics, LocationFix, RunSummary, SensorSample
from .data.records import CalibrationRecord, StrideModel
from .data.source import DataSource
from .distance import DistanceTracker, FixOutcome
from .event_logger import RunEventLogger
from .store import CalibrationStore, InMemoryCalibrationStore, JsonCalibrationStore
from .stride_model import StrideCalibrator, StrideModelFitter

logger = logging.getLogger(__name__)


class RunMonitor:
    """
    Running-metrics engine.

    Owns one instance of every component, wired to a single configuration and
    a single calibration store.
    """

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        store: Optional[CalibrationStore] = None,
        event_logger: Optional[RunEventLogger] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (None for defaults)
            store: Calibration persistence (None for an in-memory store)
            event_logger: Diagnostic journal (None to build one from
                config.event_log_dir, or to run without one)
        """
        self.config = config or MetricsConfig()

        if event_logger is None and self.config.event_log_dir is not None:
            event_logger = RunEventLogger(self.config.event_log_dir)
        self.event_logger = event_logger

        self.estimator = CadenceEstimator(self.config.cadence)
        self.live_cadence = LiveCadenceMonitor(self.estimator)
        self.tracker = DistanceTracker(self.config.distance)
        self.calibrator = StrideCalibrator(
            store=store if store is not None else InMemoryCalibrationStore(),
            tracker=self.tracker,
            fitter=StrideModelFitter(self.config.stride_model),
            event_logger=self.event_logger,
        )
        self.session = CalibrationSession(
            tracker=self.tracker,
            estimator=self.estimator,
            config=self.config.calibration,
            event_logger=self.event_logger,
        )

        # Subscribers, called in registration order
        self.on_metrics: List[Callable[[LiveMetrics], None]] = []
        self.on_calibration_record: List[Callable[[CalibrationRecord], None]] = []
        self.on_model_changed: List[Callable[[Optional[StrideModel]], None]] = []

        self.session.on_auto_complete.append(self._handle_auto_complete)
        self.calibrator.on_model_changed.append(self._handle_model_changed)

        # Monitoring window state
        self.monitoring = False
        self._start_time: Optional[float] = None
        self._run_samples: List[SensorSample] = []
        self._last_time: Optional[float] = None

    def load(self) -> None:
        """Restore calibration history and stride model from the store."""
        self.calibrator.load()

    # ------------------------------------------------------------------
    # Inbound streams
    # ------------------------------------------------------------------

    def add_sample(self, sample: SensorSample) -> None:
        """Route one sensor sample to the live monitor and any calibration run."""
        if self.monitoring:
            self.live_cadence.add_sample(sample)
            self._run_samples.append(sample)
        self.session.add_sample(sample)

    def add_location(self, fix: LocationFix) -> FixOutcome:
        outcome = self.tracker.add_location(fix)
        if outcome.rejected_reason and self.event_logger:
            self.event_logger.log_gps_rejected(
                fix.timestamp, outcome.rejected_reason, fix.horizontal_accuracy
            )
        return outcome

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_monitoring(self, now: float) -> None:
        """Open a fresh live window: distance, steps and cadence restart at zero."""
        self.tracker.reset_distance()
        self.live_cadence.start(now)
        self._run_samples = []
        self._start_time = now
        self.monitoring = True
        logger.info("Monitoring started")

    def stop_monitoring(self, now: float) -> RunSummary:
        """
        Close the live window and summarize it.

        Returns:
            RunSummary of the window (empty if monitoring was not running)
        """
        if not self.monitoring:
            logger.warning("Stop requested while not monitoring")
            return RunSummary()

        summary = self._summarize(now)
        self.live_cadence.stop()
        self.monitoring = False
        logger.info(
            "Monitoring stopped: %.0fm in %s, %.1f SPM",
            summary.distance, summary.formatted_duration, summary.average_cadence,
        )
        return summary

    def start_calibration(self, now: float) -> bool:
        return self.session.start(now)

    def stop_calibration(self, now: float) -> Optional[CalibrationRecord]:
        """
        Finish the calibration run; a valid record joins the history.

        Returns:
            The record, or None if the run was not valid
        """
        record = self.session.stop(now)
        if record is None:
            return None

        self.calibrator.add_record(record)
        for callback in list(self.on_calibration_record):
            callback(record)
        return record

    def cancel_calibration(self, now: Optional[float] = None) -> None:
        self.session.cancel(now)

    def remove_calibration(self, index: int) -> Optional[StrideModel]:
        return self.calibrator.remove_record(index)

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def tick(self, now: float) -> None:
        """
        Drive both periodic schedules: the live cadence recompute and the
        calibration progress tick. Call at least every tick_interval.
        """
        self._last_time = now

        cadence = self.live_cadence.tick(now)
        if cadence is not None:
            self.tracker.update_steps(self.live_cadence.total_steps, cadence)
            metrics = self.snapshot(now)
            for callback in list(self.on_metrics):
                callback(metrics)

        self.session.tick(now)

    def replay(self, source: DataSource, until: float) -> None:
        """
        Feed a source into the engine up to a timestamp, ticking at the
        calibration tick interval along the way.
        """
        interval = self.config.calibration.tick_interval
        next_tick = self._last_time

        for item in source.stream(until):
            if next_tick is None:
                next_tick = item.timestamp
            while next_tick <= item.timestamp:
                self.tick(next_tick)
                next_tick += interval

            if isinstance(item, LocationFix):
                self.add_location(item)
            else:
                self.add_sample(item)

        while next_tick is not None and next_tick < until:
            self.tick(next_tick)
            next_tick += interval

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def snapshot(self, now: Optional[float] = None) -> LiveMetrics:
        """Current live outputs."""
        return LiveMetrics(
            timestamp=now if now is not None else (self._last_time or 0.0),
            cadence=self.live_cadence.current_cadence,
            total_steps=self.live_cadence.total_steps,
            gps_distance=self.tracker.total_distance,
            stride_distance=self.tracker.stride_distance,
            speed=self.tracker.current_speed,
            path=list(self.tracker.locations),
            stride_model_active=self.tracker.stride_projection_active,
        )

    def _summarize(self, now: float) -> RunSummary:
        duration = now - self._start_time if self._start_time is not None else 0.0

        distance = self.tracker.total_distance
        if distance <= 0:
            distance = self.tracker.stride_distance

        heart_rates = [s.heart_rate for s in self._run_samples if s.heart_rate is not None]

        return RunSummary(
            distance=distance,
            duration=duration,
            average_cadence=self.estimator.calculate_cadence(self._run_samples),
            average_heart_rate=float(np.mean(heart_rates)) if heart_rates else 0.0,
            average_speed=distance / duration if duration > 0 else 0.0,
            total_steps=self.live_cadence.total_steps,
            start_time=self._start_time,
            end_time=now,
        )

    def _handle_auto_complete(self, now: float) -> None:
        logger.info("Calibration target reached, completing run")
        self.stop_calibration(now)

    def _handle_model_changed(self, model: Optional[StrideModel]) -> None:
        for callback in list(self.on_model_changed):
            callback(model)

    def get_status(self) -> dict:
        """Get current engine status."""
        status = {
            "monitoring": self.monitoring,
            "start_time": self._start_time,
            "cadence": self.live_cadence.get_status(),
            "distance": self.tracker.get_status(),
            "calibration": self.session.get_status(),
            "stride_model": self.calibrator.get_status(),
        }

        if self.event_logger:
            status["daily_metrics"] = self.event_logger.get_daily_metrics()

        return status


def create_monitor(
    config: Optional[MetricsConfig] = None,
    store_directory: Optional[Union[Path, str]] = None,
) -> RunMonitor:
    """
    Create an engine and restore its calibration state.

    Args:
        config: Engine configuration
        store_directory: Directory for JSON calibration files (None for in-memory)

    Returns:
        Loaded RunMonitor instance
    """
    store = JsonCalibrationStore(store_directory) if store_directory else None
    monitor = RunMonitor(config=config, store=store)
    monitor.load()
    return monitor
