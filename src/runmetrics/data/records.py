"""
Persisted records for stride calibration.

A CalibrationRecord is the outcome of one measured run over a known distance.
A StrideModel is the linear fit of stride length against cadence computed
from the record history.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CalibrationRecord:
    """
    Result of one calibration run.

    average_step_length is stored rather than derived so that records written
    with a different nominal distance stay consistent when reloaded.
    """
    total_steps: int            # both feet
    average_cadence: float      # SPM
    elapsed_seconds: float      # s
    average_step_length: float  # m
    measured_at: datetime
    nominal_distance: float = 100.0  # m

    @classmethod
    def create(
        cls,
        total_steps: int,
        average_cadence: float,
        elapsed_seconds: float,
        nominal_distance: float = 100.0,
        measured_at: Optional[datetime] = None,
    ) -> "CalibrationRecord":
        """
        Build a record, deriving the step length from the nominal distance.

        Args:
            total_steps: Steps counted over the run (both feet)
            average_cadence: Run cadence in SPM
            elapsed_seconds: Duration of the run
            nominal_distance: Real-world distance of the run in meters
            measured_at: Measurement time (now, UTC, if omitted)
        """
        if total_steps < 0:
            raise ValueError(f"total_steps must be non-negative, got {total_steps}")

        step_length = nominal_distance / total_steps if total_steps > 0 else 0.0
        return cls(
            total_steps=total_steps,
            average_cadence=average_cadence,
            elapsed_seconds=elapsed_seconds,
            average_step_length=step_length,
            measured_at=measured_at or _utcnow(),
            nominal_distance=nominal_distance,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["measured_at"] = self.measured_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationRecord":
        return cls(
            total_steps=int(data["total_steps"]),
            average_cadence=float(data["average_cadence"]),
            elapsed_seconds=float(data["elapsed_seconds"]),
            average_step_length=float(data["average_step_length"]),
            measured_at=datetime.fromisoformat(data["measured_at"]),
            nominal_distance=float(data.get("nominal_distance", 100.0)),
        )

    def to_json(self, path: Optional[Union[Path, str]] = None) -> str:
        """
        Serialize to JSON.

        Args:
            path: If provided, write to file. Otherwise return string.
        """
        json_str = json.dumps(self.to_dict(), indent=2)

        if path:
            Path(path).write_text(json_str)

        return json_str

    @classmethod
    def from_json(cls, json_str: str) -> "CalibrationRecord":
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(json_str))


@dataclass(frozen=True)
class StrideModel:
    """
    Linear model: stride = alpha * cadence + beta.
    """
    alpha: float       # m per SPM
    beta: float        # m
    r_squared: float   # 0-1, fit quality
    sample_count: int  # records used in the fit
    created_at: datetime

    def predict(self, cadence: float) -> float:
        """Predicted stride length (m) at the given cadence."""
        return self.alpha * cadence + self.beta

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrideModel":
        return cls(
            alpha=float(data["alpha"]),
            beta=float(data["beta"]),
            r_squared=float(data["r_squared"]),
            sample_count=int(data["sample_count"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def to_json(self, path: Optional[Union[Path, str]] = None) -> str:
        json_str = json.dumps(self.to_dict(), indent=2)

        if path:
            Path(path).write_text(json_str)

        return json_str

    @classmethod
    def from_json(cls, json_str: str) -> "StrideModel":
        return cls.from_dict(json.loads(json_str))
