"""
Personal stride model.

StrideModelFitter fits stride length as a linear function of cadence by
ordinary least squares:

    stride = alpha * cadence + beta
    alpha  = sum((x - x_mean) * (y - y_mean)) / sum((x - x_mean) ** 2)
    beta   = y_mean - alpha * x_mean
    R^2    = 1 - SS_res / SS_tot   (0 when SS_tot is 0)

StrideCalibrator owns the calibration history, refits on every change,
injects the model into the DistanceTracker and mirrors both to the store.
"""

from datetime import datetime, timezone
import logging
import time
from typing import Callable, List, Optional, Sequence

import numpy as np

from .config import StrideModelConfig
from .data.records import CalibrationRecord, StrideModel
from .distance import DistanceTracker
from .event_logger import RunEventLogger
from .store import CalibrationStore

logger = logging.getLogger(__name__)


class StrideModelFitter:
    """OLS fit of average step length against average cadence."""

    def __init__(self, config: Optional[StrideModelConfig] = None):
        self.config = config or StrideModelConfig()

    def fit(
        self,
        records: Sequence[CalibrationRecord],
        created_at: Optional[datetime] = None,
    ) -> Optional[StrideModel]:
        """
        Fit a model from calibration records.

        Returns:
            The model, or None with fewer than min_records records or when
            every cadence is identical.
        """
        if len(records) < self.config.min_records:
            return None

        x = np.array([r.average_cadence for r in records], dtype=float)
        y = np.array([r.average_step_length for r in records], dtype=float)

        x_mean = x.mean()
        y_mean = y.mean()
        dx = x - x_mean

        denominator = float(np.sum(dx ** 2))
        if np.ptp(x) == 0 or denominator <= 0:
            logger.info("Stride fit undefined: all %d cadences are identical", len(records))
            return None

        alpha = float(np.sum(dx * (y - y_mean))) / denominator
        beta = float(y_mean - alpha * x_mean)

        predicted = alpha * x + beta
        ss_res = float(np.sum((y - predicted) ** 2))
        ss_tot = float(np.sum((y - y_mean) ** 2))
        r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0

        return StrideModel(
            alpha=alpha,
            beta=beta,
            r_squared=r_squared,
            sample_count=len(records),
            created_at=created_at or datetime.now(timezone.utc),
        )


class StrideCalibrator:
    """
    Calibration history and the active stride model.

    History is kept newest first. Store failures are logged and never roll
    back or block the in-memory history and model.
    """

    def __init__(
        self,
        store: Optional[CalibrationStore] = None,
        tracker: Optional[DistanceTracker] = None,
        fitter: Optional[StrideModelFitter] = None,
        event_logger: Optional[RunEventLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.tracker = tracker
        self.fitter = fitter or StrideModelFitter()
        self.event_logger = event_logger
        self.clock = clock

        self.records: List[CalibrationRecord] = []
        self.model: Optional[StrideModel] = None
        self.history_loaded = True

        self.on_model_changed: List[Callable[[Optional[StrideModel]], None]] = []

    @property
    def min_records(self) -> int:
        return self.fitter.config.min_records

    def load(self) -> None:
        """
        Restore history from the store and rebuild the model.

        A persisted model is reused only when it was fitted from the same
        number of records; otherwise the model is refitted and saved.

        If the history cannot be read, store writes are suspended until a
        later load succeeds, so the unreadable history is never overwritten.
        Records added meanwhile are kept in memory only.
        """
        records = self._persist("load_records", lambda s: s.load_records())
        self.history_loaded = self.store is None or records is not None
        self.records = list(records) if records else []
        if not self.history_loaded:
            logger.warning("Calibration history unavailable; store writes suspended")

        cached = None
        if len(self.records) >= self.min_records:
            cached = self._persist("load_model", lambda s: s.load_model())

        if cached is not None and cached.sample_count == len(self.records):
            self._set_model(cached)
            logger.info("Restored stride model from %d records", len(self.records))
        else:
            self.recalculate()

    def add_record(self, record: CalibrationRecord) -> Optional[StrideModel]:
        """Add a record as the newest entry, persist, and refit."""
        self.records.insert(0, record)
        self._persist("save_records", lambda s: s.save_records(self.records))
        return self.recalculate()

    def remove_record(self, index: int) -> Optional[StrideModel]:
        """
        Delete the record at index (0 is newest), persist, and refit.

        An index outside the history is ignored and the current model returned.
        """
        if not 0 <= index < len(self.records):
            logger.warning("No calibration record at index %d (%d records)",
                           index, len(self.records))
            return self.model

        self.records.pop(index)
        if self.records:
            self._persist("save_records", lambda s: s.save_records(self.records))
        else:
            self._persist("delete_records", lambda s: s.delete_records())
        return self.recalculate()

    def recalculate(self) -> Optional[StrideModel]:
        """
        Refit from the current history.

        Below min_records, or when the fit is undefined, the active model is
        cleared and the persisted model deleted.
        """
        model = self.fitter.fit(self.records)

        if model is None:
            had_model = self.model is not None
            self._set_model(None)
            self._persist("delete_model", lambda s: s.delete_model())
            if had_model:
                logger.info("Stride model cleared (%d records)", len(self.records))
                if self.event_logger:
                    self.event_logger.log_model_cleared(self.clock(), len(self.records))
            return None

        self._set_model(model)
        self._persist("save_model", lambda s: s.save_model(model))
        logger.info(
            "Stride model updated: alpha=%.5f beta=%.3f R2=%.3f (n=%d)",
            model.alpha, model.beta, model.r_squared, model.sample_count,
        )
        if self.event_logger:
            self.event_logger.log_model_updated(self.clock(), model)
        return model

    def _set_model(self, model: Optional[StrideModel]) -> None:
        changed = model != self.model
        self.model = model

        if self.tracker is not None:
            self.tracker.set_stride_model(model)

        if changed:
            for callback in list(self.on_model_changed):
                callback(model)

    def _persist(self, operation: str, action):
        """Run one store call; failures are logged and reported as None."""
        if self.store is None:
            return None
        if not self.history_loaded and not operation.startswith("load"):
            logger.debug("Skipping store %s until history loads", operation)
            return None
        try:
            return action(self.store)
        except Exception as e:
            logger.warning("Calibration store %s failed: %s", operation, e)
            if self.event_logger:
                self.event_logger.log_persistence_failure(self.clock(), operation, str(e))
            return None

    def get_status(self) -> dict:
        return {
            "records": len(self.records),
            "min_records": self.min_records,
            "model_active": self.model is not None,
            "alpha": self.model.alpha if self.model else None,
            "beta": self.model.beta if self.model else None,
            "r_squared": self.model.r_squared if self.model else None,
        }
