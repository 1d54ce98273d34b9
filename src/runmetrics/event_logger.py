"""
Event Logging Module
Diagnostic journal of calibration runs, stride-model changes and dropped data
"""

import json
import logging
from collections import deque
from datetime import datetime, date
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np

from .data.records import CalibrationRecord, StrideModel

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event type classifications"""
    CALIBRATION_STARTED = "calibration_started"
    CALIBRATION_COMPLETED = "calibration_completed"
    CALIBRATION_REJECTED = "calibration_rejected"
    CALIBRATION_CANCELLED = "calibration_cancelled"
    STRIDE_MODEL_UPDATED = "stride_model_updated"
    STRIDE_MODEL_CLEARED = "stride_model_cleared"
    GPS_FIX_REJECTED = "gps_fix_rejected"
    PERSISTENCE_FAILURE = "persistence_failure"


def _empty_daily_metrics(day: date) -> Dict:
    return {
        'date': day.isoformat(),
        'calibration': {
            'started': 0,
            'completed': 0,
            'rejected': 0,
            'cancelled': 0,
            'cadences': [],
            'step_lengths': []
        },
        'stride_model': {
            'updates': 0,
            'clears': 0,
            'last_r_squared': None
        },
        'gps': {
            'rejected': 0,
            'reasons': {}
        },
        'persistence_failures': 0
    }


class RunEventLogger:
    """
    Manages run event logging with JSON output and aggregation

    Features:
    - Per-event JSON records (skipped when no directory is configured)
    - Daily aggregation
    - In-memory event buffer
    """

    def __init__(self, log_directory: Optional[Union[Path, str]] = None, buffer_size: int = 100):
        """
        Args:
            log_directory: Directory for JSON journal files (None keeps events in memory only)
            buffer_size: Recent events held in memory
        """
        self.log_directory = Path(log_directory) if log_directory else None
        self.buffer_size = buffer_size

        if self.log_directory is not None:
            self.log_directory.mkdir(parents=True, exist_ok=True)

        self.event_buffer = deque(maxlen=buffer_size)

        self.current_date: Optional[date] = None
        self.daily_metrics = _empty_daily_metrics(date.today())

        self.event_counter = 0

    def log_calibration_started(self, timestamp: float, target_distance: float) -> Dict:
        event = self.log_event(
            EventType.CALIBRATION_STARTED, timestamp, target_distance=target_distance
        )
        self.daily_metrics['calibration']['started'] += 1
        return event

    def log_calibration_result(self,
                               timestamp: float,
                               record: Optional[CalibrationRecord],
                               total_steps: int,
                               elapsed_seconds: float,
                               average_cadence: float) -> Dict:
        """
        Log the outcome of a stopped calibration run

        Args:
            timestamp: Stop time
            record: Emitted record, or None when the run failed validation
            total_steps: Steps counted over the run
            elapsed_seconds: Run duration
            average_cadence: Batch cadence over the run (SPM)

        Returns:
            Event record dictionary
        """
        event_type = (EventType.CALIBRATION_COMPLETED if record is not None
                      else EventType.CALIBRATION_REJECTED)

        event = self._new_event(event_type, timestamp)
        event['run'] = {
            'total_steps': total_steps,
            'elapsed_seconds': round(elapsed_seconds, 2),
            'average_cadence': round(average_cadence, 1),
            'average_step_length': (round(record.average_step_length, 3)
                                    if record is not None else None)
        }

        self._add_event(event)

        calibration = self.daily_metrics['calibration']
        if record is not None:
            calibration['completed'] += 1
            calibration['cadences'].append(record.average_cadence)
            calibration['step_lengths'].append(record.average_step_length)
        else:
            calibration['rejected'] += 1

        return event

    def log_calibration_cancelled(self, timestamp: float, elapsed_seconds: float) -> Dict:
        event = self.log_event(
            EventType.CALIBRATION_CANCELLED, timestamp,
            elapsed_seconds=round(elapsed_seconds, 2)
        )
        self.daily_metrics['calibration']['cancelled'] += 1
        return event

    def log_model_updated(self, timestamp: float, model: StrideModel) -> Dict:
        event = self.log_event(
            EventType.STRIDE_MODEL_UPDATED, timestamp,
            alpha=model.alpha,
            beta=model.beta,
            r_squared=model.r_squared,
            sample_count=model.sample_count
        )
        self.daily_metrics['stride_model']['updates'] += 1
        self.daily_metrics['stride_model']['last_r_squared'] = model.r_squared
        return event

    def log_model_cleared(self, timestamp: float, record_count: int) -> Dict:
        event = self.log_event(
            EventType.STRIDE_MODEL_CLEARED, timestamp, record_count=record_count
        )
        self.daily_metrics['stride_model']['clears'] += 1
        return event

    def log_gps_rejected(self, timestamp: float, reason: str, accuracy: float) -> Dict:
        event = self.log_event(
            EventType.GPS_FIX_REJECTED, timestamp, reason=reason, accuracy=accuracy
        )
        gps = self.daily_metrics['gps']
        gps['rejected'] += 1
        gps['reasons'][reason] = gps['reasons'].get(reason, 0) + 1
        return event

    def log_persistence_failure(self, timestamp: float, operation: str, error: str) -> Dict:
        event = self.log_event(
            EventType.PERSISTENCE_FAILURE, timestamp, operation=operation, error=error
        )
        self.daily_metrics['persistence_failures'] += 1
        return event

    def log_event(self, event_type: EventType, timestamp: float, **kwargs) -> Dict:
        """
        Journal an event with an arbitrary payload under 'data'

        Returns:
            The stored event dictionary
        """
        event = self._new_event(event_type, timestamp)
        event['data'] = kwargs

        self._add_event(event)

        return event

    def _new_event(self, event_type: EventType, timestamp: float) -> Dict:
        self.event_counter += 1
        return {
            'event_id': self.event_counter,
            'event_type': event_type.value,
            'timestamp': timestamp,
            'datetime': datetime.fromtimestamp(timestamp).isoformat()
        }

    def _add_event(self, event: Dict) -> None:
        self._check_daily_reset(event['timestamp'])
        self.event_buffer.append(event)

        if self.log_directory is not None:
            stamp = datetime.fromtimestamp(event['timestamp']).strftime('%Y%m%d_%H%M%S')
            name = f"{stamp}_{event['event_id']}_{event['event_type']}.json"
            self._write_json(self.log_directory / name, event)

    def _write_json(self, path: Path, payload: Dict) -> None:
        """Journal writes never interrupt the engine; failures are only logged"""
        try:
            path.write_text(json.dumps(payload, indent=2))
        except OSError as e:
            logger.warning("Could not write journal file %s: %s", path, e)

    def _check_daily_reset(self, timestamp: float) -> None:
        """Roll the daily metrics over when an event lands on a new day"""
        event_date = datetime.fromtimestamp(timestamp).date()

        if self.current_date is None:
            self.current_date = event_date
            self.daily_metrics['date'] = event_date.isoformat()
        elif event_date != self.current_date:
            if self.log_directory is not None:
                path = self.log_directory / f"daily_metrics_{self.daily_metrics['date']}.json"
                self._write_json(path, self._summarize(self.daily_metrics))
            self.daily_metrics = _empty_daily_metrics(event_date)
            self.current_date = event_date

    def _summarize(self, metrics: Dict) -> Dict:
        calibration = metrics['calibration']
        summary = json.loads(json.dumps(metrics))
        summary['calibration']['avg_cadence'] = (
            float(np.mean(calibration['cadences'])) if calibration['cadences'] else 0.0
        )
        summary['calibration']['avg_step_length'] = (
            float(np.mean(calibration['step_lengths'])) if calibration['step_lengths'] else 0.0
        )
        del summary['calibration']['cadences']
        del summary['calibration']['step_lengths']
        return summary

    def get_recent_events(self, n: int = 10, event_type: Optional[EventType] = None) -> List[Dict]:
        """
        Newest n buffered events, oldest first

        Args:
            n: Maximum number of events
            event_type: Only return events of this type
        """
        if event_type is None:
            events = list(self.event_buffer)
        else:
            events = [e for e in self.event_buffer if e['event_type'] == event_type.value]

        return events[-n:]

    def get_daily_metrics(self) -> Dict:
        """Current daily metrics with averages computed"""
        return self._summarize(self.daily_metrics)

    def clear_buffer(self) -> None:
        self.event_buffer.clear()

    def load_events_from_disk(self, max_events: Optional[int] = None) -> int:
        """
        Refill the buffer with the newest journaled events.

        Args:
            max_events: Maximum number of events to load (None for buffer_size)

        Returns:
            Number of events now buffered
        """
        if self.log_directory is None:
            return 0

        events = []
        for path in self.log_directory.glob("*.json"):
            if path.name.startswith("daily_metrics_"):
                continue
            try:
                event = json.loads(path.read_text())
            except (OSError, json.JSONDecodeError) as e:
                logger.debug("Skipping unreadable journal file %s: %s", path, e)
                continue

            events.append(event)
            self.event_counter = max(self.event_counter, event.get('event_id', 0))

        events.sort(key=lambda e: e.get('timestamp', 0))
        limit = max_events or self.buffer_size
        self.event_buffer = deque(events[-limit:], maxlen=self.buffer_size)

        return len(self.event_buffer)
