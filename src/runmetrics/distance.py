"""
Distance tracking.

Maintains two independent estimates:
- GPS: great-circle distance between accepted fixes, with accuracy and
  implied-speed filtering
- Stride projection: step increments times the stride length predicted by
  the personal StrideModel at the current cadence
"""

from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import List, Optional

from .config import DistanceConfig
from .data.models import Coordinate, LocationFix
from .data.records import StrideModel

logger = logging.getLogger(__name__)

EARTH_RADIUS = 6371000.0  # m


def haversine_distance(
    lat1: float, lon1: float, lat2: float, lon2: float, radius: float = EARTH_RADIUS
) -> float:
    """Great-circle distance in meters between two coordinates in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return radius * c


def predict_stride(model: StrideModel, cadence: float) -> float:
    """Stride length (m) predicted by the model at the given cadence."""
    return model.predict(cadence)


class SignalQuality(Enum):
    NONE = "none"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    WEAK = "weak"


def evaluate_signal_quality(fix: Optional[LocationFix]) -> SignalQuality:
    """Grade a fix by its horizontal accuracy for display."""
    accuracy = fix.horizontal_accuracy if fix is not None else -1.0

    if accuracy < 0:
        return SignalQuality.NONE
    elif accuracy < 10:
        return SignalQuality.EXCELLENT
    elif accuracy < 20:
        return SignalQuality.GOOD
    elif accuracy < 50:
        return SignalQuality.FAIR
    return SignalQuality.WEAK


@dataclass
class FixOutcome:
    """What add_location did with a fix."""
    accepted: bool              # passed the accuracy gate
    distance_added: float = 0.0
    rejected_reason: Optional[str] = None


class DistanceTracker:
    """
    GPS and stride-projected distance for one tracking window.

    reset_distance() is the only way to start a fresh window.
    """

    def __init__(self, config: Optional[DistanceConfig] = None):
        self.config = config or DistanceConfig()

        # GPS path
        self.total_distance = 0.0  # m
        self.current_speed = 0.0   # m/s
        self.locations: List[Coordinate] = []
        self._previous_fix: Optional[LocationFix] = None

        # Stride-projection path
        self.stride_distance = 0.0  # m
        self.stride_model: Optional[StrideModel] = None
        self._previous_steps = 0

        self.rejected_fixes = 0
        self.rejected_jumps = 0

    # ------------------------------------------------------------------
    # GPS path
    # ------------------------------------------------------------------

    def add_location(self, fix: LocationFix) -> FixOutcome:
        """
        Accept or discard a GPS fix.

        Fixes outside (0, max_horizontal_accuracy) are dropped and never
        become the reference point. A segment implying a speed at or above
        max_realistic_speed (or a non-positive time step) adds no distance but
        still moves the reference to the new fix.
        """
        if not self.is_valid_fix(fix):
            self.rejected_fixes += 1
            logger.debug("Dropped inaccurate GPS fix (accuracy: %.1fm)", fix.horizontal_accuracy)
            return FixOutcome(accepted=False, rejected_reason="accuracy")

        outcome = FixOutcome(accepted=True)
        previous = self._previous_fix

        if previous is not None:
            distance = haversine_distance(
                previous.latitude, previous.longitude,
                fix.latitude, fix.longitude,
                radius=self.config.earth_radius,
            )
            time_delta = fix.timestamp - previous.timestamp

            if self.is_realistic_speed(distance, time_delta):
                self.total_distance += distance
                self.current_speed = distance / time_delta
                outcome.distance_added = distance
            else:
                self.rejected_jumps += 1
                outcome.rejected_reason = "speed"
                logger.debug(
                    "Dropped GPS jump (%.1fm over %.2fs)", distance, time_delta
                )

        self._previous_fix = fix
        self.locations.append(fix.coordinate)
        return outcome

    def is_valid_fix(self, fix: LocationFix) -> bool:
        return 0 < fix.horizontal_accuracy < self.config.max_horizontal_accuracy

    def is_realistic_speed(self, distance: float, time_delta: float) -> bool:
        if time_delta <= 0:
            return False
        return distance / time_delta < self.config.max_realistic_speed

    def reset_gps(self) -> None:
        """Zero the GPS path only, leaving stride projection running."""
        self.total_distance = 0.0
        self.current_speed = 0.0
        self.locations.clear()
        self._previous_fix = None

    # ------------------------------------------------------------------
    # Stride-projection path
    # ------------------------------------------------------------------

    def set_stride_model(self, model: Optional[StrideModel]) -> None:
        self.stride_model = model

    @property
    def stride_projection_active(self) -> bool:
        return self.stride_model is not None

    def update_steps(self, current_steps: int, current_cadence: float) -> float:
        """
        Project distance for the steps taken since the last update.

        Inert while no model is set. The step reference only advances on a
        positive increment.

        Returns:
            Distance added (m).
        """
        if self.stride_model is None:
            return 0.0

        step_increment = current_steps - self._previous_steps
        if step_increment <= 0:
            return 0.0

        added = step_increment * predict_stride(self.stride_model, current_cadence)
        self.stride_distance += added
        self._previous_steps = current_steps
        return added

    # ------------------------------------------------------------------

    def reset_distance(self) -> None:
        """Zero both paths and every reference point."""
        self.reset_gps()
        self.stride_distance = 0.0
        self._previous_steps = 0
        logger.debug("Distance tracking reset")

    @property
    def last_fix(self) -> Optional[LocationFix]:
        return self._previous_fix

    def get_status(self) -> dict:
        return {
            "gps_distance": self.total_distance,
            "stride_distance": self.stride_distance,
            "speed": self.current_speed,
            "points": len(self.locations),
            "rejected_fixes": self.rejected_fixes,
            "rejected_jumps": self.rejected_jumps,
            "stride_model_active": self.stride_projection_active,
            "signal_quality": evaluate_signal_quality(self._previous_fix).value,
        }
