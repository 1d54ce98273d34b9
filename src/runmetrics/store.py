"""
Persistence for calibration history and the fitted stride model.

The engine only ever talks to a CalibrationStore; any failure is reported as
StoreError and handled by the caller without touching in-memory state.
"""

import json
import os
from pathlib import Path
from typing import List, Optional, Protocol, Union

from .data.records import CalibrationRecord, StrideModel


class StoreError(Exception):
    """Raised by a store when a save, load or delete cannot be completed."""


class CalibrationStore(Protocol):
    """
    Protocol for calibration persistence back-ends.

    Records are stored as one list, newest first.
    """

    def save_records(self, records: List[CalibrationRecord]) -> None:
        ...

    def load_records(self) -> List[CalibrationRecord]:
        ...

    def delete_records(self) -> None:
        ...

    def save_model(self, model: StrideModel) -> None:
        ...

    def load_model(self) -> Optional[StrideModel]:
        ...

    def delete_model(self) -> None:
        ...


class InMemoryCalibrationStore:
    """Store kept in process memory, for tests and hosts with their own persistence."""

    def __init__(self):
        self.records: List[CalibrationRecord] = []
        self.model: Optional[StrideModel] = None

    def save_records(self, records: List[CalibrationRecord]) -> None:
        self.records = list(records)

    def load_records(self) -> List[CalibrationRecord]:
        return list(self.records)

    def delete_records(self) -> None:
        self.records = []

    def save_model(self, model: StrideModel) -> None:
        self.model = model

    def load_model(self) -> Optional[StrideModel]:
        return self.model

    def delete_model(self) -> None:
        self.model = None


class JsonCalibrationStore:
    """
    Store backed by two JSON files in a directory.

    - calibration_records.json: list of record dicts, newest first
    - stride_model.json: the current model
    """

    RECORDS_FILE = "calibration_records.json"
    MODEL_FILE = "stride_model.json"

    def __init__(self, directory: Union[Path, str]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    @property
    def records_path(self) -> Path:
        return self.directory / self.RECORDS_FILE

    @property
    def model_path(self) -> Path:
        return self.directory / self.MODEL_FILE

    def save_records(self, records: List[CalibrationRecord]) -> None:
        self._write(self.records_path, [r.to_dict() for r in records])

    def load_records(self) -> List[CalibrationRecord]:
        data = self._read(self.records_path)
        if data is None:
            return []
        try:
            return [CalibrationRecord.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Corrupt calibration history in {self.records_path}: {e}") from e

    def delete_records(self) -> None:
        self._unlink(self.records_path)

    def save_model(self, model: StrideModel) -> None:
        self._write(self.model_path, model.to_dict())

    def load_model(self) -> Optional[StrideModel]:
        data = self._read(self.model_path)
        if data is None:
            return None
        try:
            return StrideModel.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Corrupt stride model in {self.model_path}: {e}") from e

    def delete_model(self) -> None:
        self._unlink(self.model_path)

    def _write(self, path: Path, payload) -> None:
        """Write through a temp file so a failed write leaves the old file intact"""
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2))
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Could not write {path}: {e}") from e

    def _read(self, path: Path):
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Could not delete {path}: {e}") from e
