"""
Cadence estimation from ankle-worn inertial samples.

Peak detection is a three-state machine over gyroscope Z and accelerometer Y:

1. WAITING_POSITIVE: swing phase starts (gyro Z > 0 AND accel Y > 0)
2. WAITING_FIRST_NEGATIVE: first stance-onset impulse (gyro Z <= threshold)
   is recorded as a peak
3. IGNORING_UNTIL_POSITIVE: secondary negative ringing is ignored until
   gyro Z turns positive again

Only one ankle is instrumented, so N peaks span N - 1 completed gait cycles,
i.e. (N - 1) * 2 steps for both feet. The incomplete trailing cycle is
discarded.

Two modes share the same machine:
- Batch: CadenceEstimator over a whole finished session
- Live: LiveCadenceMonitor over a 10 s sliding window, recomputed every 3 s
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Deque, Iterable, List, Optional, Sequence

from .config import CadenceConfig
from .data.models import SensorSample

logger = logging.getLogger(__name__)


class DetectionState(Enum):
    WAITING_POSITIVE = "waiting_positive"
    WAITING_FIRST_NEGATIVE = "waiting_first_negative"
    IGNORING_UNTIL_POSITIVE = "ignoring_until_positive"


class PeakDetector:
    """
    Incremental stance-onset detector.

    Feed samples in timestamp order; update() returns True on the sample that
    is recorded as a peak.
    """

    def __init__(self, stance_threshold: float = CadenceConfig.stance_threshold):
        self.stance_threshold = stance_threshold
        self.state = DetectionState.WAITING_POSITIVE
        self.peak_count = 0

    def update(self, sample: SensorSample) -> bool:
        if self.state == DetectionState.WAITING_POSITIVE:
            if sample.gyro_z > 0 and sample.accel_y > 0:
                self.state = DetectionState.WAITING_FIRST_NEGATIVE

        elif self.state == DetectionState.WAITING_FIRST_NEGATIVE:
            if sample.gyro_z <= self.stance_threshold:
                self.state = DetectionState.IGNORING_UNTIL_POSITIVE
                self.peak_count += 1
                return True

        elif self.state == DetectionState.IGNORING_UNTIL_POSITIVE:
            if sample.gyro_z > 0:
                self.state = DetectionState.WAITING_POSITIVE

        return False

    def reset(self) -> None:
        self.state = DetectionState.WAITING_POSITIVE
        self.peak_count = 0


def detect_peaks(
    samples: Iterable[SensorSample],
    stance_threshold: float = CadenceConfig.stance_threshold,
) -> List[int]:
    """Indices of stance-onset peaks, running a fresh detector once over samples."""
    detector = PeakDetector(stance_threshold)
    return [i for i, sample in enumerate(samples) if detector.update(sample)]


def steps_from_peaks(peak_count: int) -> int:
    """Both-feet steps over completed single-foot intervals."""
    return max(0, peak_count - 1) * 2


@dataclass
class CadenceResult:
    peak_count: int = 0
    total_steps: int = 0
    running_time: float = 0.0  # s between first and last peak
    spm: float = 0.0


class CadenceEstimator:
    """
    Batch cadence computation over a sample sequence.

    Stateless apart from its configuration, so one instance can serve both
    the live monitor and end-of-session calculations.
    """

    def __init__(self, config: Optional[CadenceConfig] = None):
        self.config = config or CadenceConfig()

    def detect_peaks(self, samples: Sequence[SensorSample]) -> List[int]:
        return detect_peaks(samples, self.config.stance_threshold)

    def analyze(self, samples: Sequence[SensorSample]) -> CadenceResult:
        """
        Run the peak state machine once and derive steps and SPM.

        total_steps is reported whenever two or more peaks exist; spm is 0
        when there are fewer than min_samples samples, fewer than two peaks,
        no elapsed time between peaks, or the value falls outside
        [min_spm, max_spm].
        """
        peaks = self.detect_peaks(samples)
        result = CadenceResult(
            peak_count=len(peaks),
            total_steps=steps_from_peaks(len(peaks)),
        )

        if len(samples) < self.config.min_samples or len(peaks) < 2:
            return result

        result.running_time = samples[peaks[-1]].timestamp - samples[peaks[0]].timestamp
        if result.running_time <= 0:
            return result

        spm = (result.total_steps / result.running_time) * 60.0
        if not (self.config.min_spm <= spm <= self.config.max_spm):
            logger.debug("Rejected cadence %.1f SPM as sensor artifact", spm)
            return result

        result.spm = spm
        return result

    def calculate_cadence(self, samples: Sequence[SensorSample]) -> float:
        """Average cadence (SPM, both feet) over the samples."""
        return self.analyze(samples).spm

    def count_steps(self, samples: Sequence[SensorSample]) -> int:
        return self.analyze(samples).total_steps


class LiveCadenceMonitor:
    """
    Live cadence over a sliding window.

    The host drives time through tick(now); nothing here owns a timer. After
    stop() the monitor ignores samples and ticks until started again.
    """

    def __init__(
        self,
        estimator: Optional[CadenceEstimator] = None,
        config: Optional[CadenceConfig] = None,
    ):
        self.config = config or (estimator.config if estimator else CadenceConfig())
        self.estimator = estimator or CadenceEstimator(self.config)

        self.running = False
        self.current_cadence = 0.0

        self._window: Deque[SensorSample] = deque()
        self._detector = PeakDetector(self.config.stance_threshold)
        self._next_update: Optional[float] = None

    @property
    def window_size(self) -> int:
        return len(self._window)

    @property
    def total_steps(self) -> int:
        """Steps since start(), from every sample seen (not just the window)."""
        return steps_from_peaks(self._detector.peak_count)

    def start(self, now: float) -> None:
        self.stop()
        self.running = True
        self.current_cadence = 0.0
        self._next_update = now + self.config.update_interval
        logger.info("Live cadence monitoring started")

    def stop(self) -> None:
        was_running = self.running
        self.running = False
        self._next_update = None
        self._window.clear()
        self._detector.reset()
        if was_running:
            logger.info("Live cadence monitoring stopped")

    def add_sample(self, sample: SensorSample) -> None:
        if not self.running:
            return

        self._window.append(sample)
        self._detector.update(sample)

        cutoff = sample.timestamp - self.config.window_seconds
        while self._window and self._window[0].timestamp < cutoff:
            self._window.popleft()

    def tick(self, now: float) -> Optional[float]:
        """
        Recompute cadence if an update is due.

        Returns:
            The new cadence, or None when no recompute happened.
        """
        if not self.running or self._next_update is None or now < self._next_update:
            return None

        while self._next_update <= now:
            self._next_update += self.config.update_interval

        self.current_cadence = self.estimator.calculate_cadence(list(self._window))
        logger.debug(
            "Live cadence: %.1f SPM (%d samples)", self.current_cadence, len(self._window)
        )
        return self.current_cadence

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "cadence": self.current_cadence,
            "window_samples": len(self._window),
            "total_steps": self.total_steps,
            "next_update": self._next_update,
        }
