"""Trial record storage and CSV persistence.

:class:`DataRecorder` keeps the main-block trial records of one session in
execution order and writes them to a single CSV file at the end of the
session.  Numbers are written with a fixed significant-digit format so the
files are identical across platforms.
"""
from __future__ import annotations

import csv
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .design import Trial


logger = logging.getLogger(__name__)

DATA_FIELDS: Tuple[str, ...] = (
    "TrialNumber",
    "R1",
    "R2",
    "RotationSpeed",
    "Direction",
    "AdjustedAmplitude",
    "Confidence",
    "ReactionTime",
    "Timestamp",
)

SESSION_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class DataSaveError(RuntimeError):
    """Raised when the session data file cannot be written."""


def format_number(value: float, significant_digits: int = 6) -> str:
    """Format ``value`` with a fixed number of significant digits."""

    return format(float(value), f".{significant_digits}g")


@dataclass(frozen=True)
class TrialRecord:
    """Response captured for one main-block trial."""

    trial_number: int
    trial: Trial
    adjusted_amplitude: float
    confidence: float
    reaction_time: float
    timestamp: str

    def __post_init__(self) -> None:
        if self.trial_number < 0:
            raise ValueError(f"trial_number must be >= 0, got {self.trial_number}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must lie in [0, 1], got {self.confidence}")
        if self.reaction_time < 0:
            raise ValueError(f"reaction_time must be >= 0, got {self.reaction_time}")

    def as_row(self, significant_digits: int = 6) -> Dict[str, str]:
        """Return the CSV row for this record keyed by :data:`DATA_FIELDS`."""

        def fmt(value: float) -> str:
            return format_number(value, significant_digits)

        return {
            "TrialNumber": str(self.trial_number),
            "R1": fmt(self.trial.r1),
            "R2": fmt(self.trial.r2),
            "RotationSpeed": fmt(self.trial.rotation_speed),
            "Direction": self.trial.direction.value,
            "AdjustedAmplitude": fmt(self.adjusted_amplitude),
            "Confidence": fmt(self.confidence),
            "ReactionTime": fmt(self.reaction_time),
            "Timestamp": self.timestamp,
        }


class DataRecorder:
    """Append-only store for the trial records of a session."""

    def __init__(
        self,
        results_directory: str | os.PathLike[str] = "DepthAdjustmentData",
        *,
        data_fields: Sequence[str] = DATA_FIELDS,
        significant_digits: int = 6,
    ):
        self.results_directory = Path(results_directory)
        self.data_fields: List[str] = list(data_fields)
        self.significant_digits = significant_digits
        self.flush_count = 0
        self._records: List[TrialRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Tuple[TrialRecord, ...]:
        return tuple(self._records)

    def append(self, record: TrialRecord) -> None:
        """Store ``record``; trial numbers must continue the 0, 1, 2, ... sequence."""

        expected = len(self._records)
        if record.trial_number != expected:
            raise ValueError(
                f"Expected trial number {expected}, got {record.trial_number}"
            )
        self._records.append(record)

    def filename_for(self, participant_id: str, session_timestamp: datetime) -> Path:
        participant = _safe_participant(participant_id)
        stamp = session_timestamp.strftime(SESSION_TIMESTAMP_FORMAT)
        return self.results_directory / f"{participant}_{stamp}.csv"

    def flush(
        self,
        participant_id: str,
        session_timestamp: datetime,
        *,
        session_info: Optional[Mapping[str, object]] = None,
    ) -> Path:
        """Write all records to the session CSV and return its path.

        Call this exactly once per session, when the session ends.  A second
        call is not blocked: it rewrites the same file with the records held
        at that moment, which is only correct if nothing was appended in
        between.  Keeping to a single flush is the caller's responsibility.

        ``session_info`` is stored as a JSON file with the same stem when
        given.  Any file-system failure is raised as :class:`DataSaveError`.
        """

        if self.flush_count:
            logger.warning(
                "DataRecorder.flush called %d times this session", self.flush_count + 1
            )
        filename = self.filename_for(participant_id, session_timestamp)
        try:
            filename.parent.mkdir(parents=True, exist_ok=True)
            with filename.open("w", newline="", encoding="utf-8") as csv_file:
                writer = csv.DictWriter(
                    csv_file, fieldnames=self.data_fields, extrasaction="ignore"
                )
                writer.writeheader()
                for record in self._records:
                    writer.writerow(record.as_row(self.significant_digits))
            if session_info is not None:
                info_filename = filename.with_suffix(".json")
                with info_filename.open("w", encoding="utf-8") as info_file:
                    json.dump(dict(session_info), info_file, indent=2, default=str)
        except OSError as exc:
            raise DataSaveError(f"Could not save session data to '{filename}': {exc}") from exc

        self.flush_count += 1
        logger.info("Saved %d trial records to %s", len(self._records), filename)
        return filename


def _safe_participant(participant_id: str) -> str:
    cleaned = str(participant_id).strip().replace(os.sep, "_").replace("/", "_")
    return cleaned or "unknown"


__all__ = [
    "DATA_FIELDS",
    "DataRecorder",
    "DataSaveError",
    "TrialRecord",
    "format_number",
]
