"""
Calibration run state machine.

IDLE → RUNNING → {COMPLETED | CANCELLED} → IDLE

A run covers a fixed real-world distance measured by GPS. Every sensor
sample received while RUNNING is buffered for the whole run, and on stop the
batch cadence estimator produces the final step count and cadence. The host
drives time through tick(now); the session owns no timers.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Callable, List, Optional

from .cadence import CadenceEstimator, CadenceResult
from .config import CalibrationConfig
from .data.models import SensorSample
from .data.records import CalibrationRecord
from .distance import DistanceTracker
from .event_logger import RunEventLogger

logger = logging.getLogger(__name__)

# Float drift tolerated between host tick times and the schedule (s)
TICK_SLACK = 1e-6


class CalibrationState(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


def is_valid_run(
    total_steps: int, elapsed_seconds: float, config: Optional[CalibrationConfig] = None
) -> bool:
    """Gate that keeps degenerate short runs out of the regression."""
    config = config or CalibrationConfig()
    return total_steps >= config.min_steps and elapsed_seconds >= config.min_elapsed_seconds


class CalibrationSession:
    """
    One bounded measurement run over config.target_distance meters.

    Callbacks:
    - on_target_reached(elapsed): first tick at which GPS distance reaches the target
    - on_auto_complete(now): grace_delay after the target was reached; the owner
      is expected to call stop()
    """

    def __init__(
        self,
        tracker: DistanceTracker,
        estimator: Optional[CadenceEstimator] = None,
        config: Optional[CalibrationConfig] = None,
        event_logger: Optional[RunEventLogger] = None,
    ):
        self.config = config or CalibrationConfig()
        if self.config.target_distance <= 0:
            raise ValueError(f"target_distance must be positive, got {self.config.target_distance}")

        self.tracker = tracker
        self.estimator = estimator or CadenceEstimator()
        self.event_logger = event_logger

        self.on_target_reached: List[Callable[[float], None]] = []
        self.on_auto_complete: List[Callable[[float], None]] = []

        self.state = CalibrationState.IDLE
        self.start_time: Optional[float] = None
        self.elapsed_time = 0.0
        self.current_distance = 0.0
        self.target_reached = False
        self.last_result: Optional[CadenceResult] = None
        self.record: Optional[CalibrationRecord] = None

        self._samples: List[SensorSample] = []
        self._next_tick: Optional[float] = None
        self._auto_complete_at: Optional[float] = None

        self.history = []

    @property
    def is_running(self) -> bool:
        return self.state == CalibrationState.RUNNING

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def auto_complete_pending(self) -> bool:
        return self._auto_complete_at is not None

    def start(self, now: float) -> bool:
        """
        Begin a run. Resets the session buffer and the tracker's GPS path.

        Returns:
            False if a run is already in progress.
        """
        if self.state == CalibrationState.RUNNING:
            logger.warning("Calibration already running; start ignored")
            return False

        self.reset()
        self.tracker.reset_gps()

        self.start_time = now
        self._next_tick = now + self.config.tick_interval
        self._transition(CalibrationState.RUNNING, now, "Run started")

        if self.event_logger:
            self.event_logger.log_calibration_started(now, self.config.target_distance)
        return True

    def add_sample(self, sample: SensorSample) -> None:
        if self.state == CalibrationState.RUNNING:
            self._samples.append(sample)

    def tick(self, now: float) -> bool:
        """
        Update elapsed time and distance, and fire due signals.

        Returns:
            True if the tick was due and processed.
        """
        if self.state != CalibrationState.RUNNING or self._next_tick is None:
            return False
        if now + TICK_SLACK < self._next_tick:
            return False

        # Advance on the schedule, not from now
        while self._next_tick <= now + TICK_SLACK:
            self._next_tick += self.config.tick_interval
        self.elapsed_time = now - self.start_time
        self.current_distance = self.tracker.total_distance

        if not self.target_reached and self.current_distance >= self.config.target_distance:
            self.target_reached = True
            self._auto_complete_at = now + self.config.grace_delay
            logger.info(
                "Target %.0fm reached after %.1fs", self.config.target_distance, self.elapsed_time
            )
            for callback in list(self.on_target_reached):
                callback(self.elapsed_time)

        elif self._auto_complete_at is not None and now >= self._auto_complete_at:
            self._auto_complete_at = None
            for callback in list(self.on_auto_complete):
                callback(now)

        return True

    def stop(self, now: float) -> Optional[CalibrationRecord]:
        """
        Finish the run and evaluate it over the whole buffer.

        Returns:
            A CalibrationRecord, or None when no run is in progress, no
            samples arrived, or the run fails the step/duration gate.
        """
        if self.state != CalibrationState.RUNNING:
            logger.warning("Calibration stop requested while %s", self.state.value)
            return None

        self._cancel_timers()
        self.elapsed_time = now - self.start_time
        self.current_distance = self.tracker.total_distance
        self._transition(CalibrationState.COMPLETED, now, "Run stopped")

        if not self._samples:
            logger.warning("Calibration stopped with no sensor samples")
            self.last_result = CadenceResult()
            self._log_result(now, None)
            return None

        self.last_result = self.estimator.analyze(self._samples)
        total_steps = self.last_result.total_steps

        if not is_valid_run(total_steps, self.elapsed_time, self.config):
            logger.info(
                "Calibration rejected (steps: %d, time: %.1fs)", total_steps, self.elapsed_time
            )
            self._log_result(now, None)
            return None

        self.record = CalibrationRecord.create(
            total_steps=total_steps,
            average_cadence=self.last_result.spm,
            elapsed_seconds=self.elapsed_time,
            nominal_distance=self.config.target_distance,
            measured_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        logger.info(
            "Calibration complete: %d steps, %.1f SPM, %.3fm/step over %d samples",
            total_steps, self.last_result.spm, self.record.average_step_length, len(self._samples),
        )
        self._log_result(now, self.record)
        return self.record

    def cancel(self, now: Optional[float] = None) -> None:
        """Abort a running session, discarding the buffer without a result."""
        if self.state != CalibrationState.RUNNING:
            return

        self._cancel_timers()
        self._samples.clear()
        if now is not None:
            self.elapsed_time = now - self.start_time
        self._transition(CalibrationState.CANCELLED, now, "Run cancelled")

        if self.event_logger and now is not None:
            self.event_logger.log_calibration_cancelled(now, self.elapsed_time)

    def reset(self) -> None:
        """Return to IDLE, clearing buffers and timers. Persisted history is untouched."""
        self._cancel_timers()
        self._samples.clear()
        self.start_time = None
        self.elapsed_time = 0.0
        self.current_distance = 0.0
        self.target_reached = False
        self.last_result = None
        self.record = None
        if self.state != CalibrationState.IDLE:
            self._transition(CalibrationState.IDLE, None, "Reset")

    def _cancel_timers(self) -> None:
        self._next_tick = None
        self._auto_complete_at = None

    def _transition(self, new_state: CalibrationState, now: Optional[float], reason: str) -> None:
        self.history.append({
            "time": now,
            "from": self.state.value,
            "to": new_state.value,
            "reason": reason
        })
        self.state = new_state

    def _log_result(self, now: float, record: Optional[CalibrationRecord]) -> None:
        if self.event_logger:
            self.event_logger.log_calibration_result(
                now,
                record,
                total_steps=self.last_result.total_steps,
                elapsed_seconds=self.elapsed_time,
                average_cadence=self.last_result.spm,
            )

    def get_status(self) -> dict:
        return {
            "state": self.state.value,
            "elapsed": self.elapsed_time,
            "distance": self.current_distance,
            "target_distance": self.config.target_distance,
            "target_reached": self.target_reached,
            "samples": len(self._samples),
        }
