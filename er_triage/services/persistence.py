"""
ER Triage - Patient File Store

Line-delimited persistence of the waiting list. Each line holds one patient:

    id,name,severity,yyyy-MM-dd HH:mm:ss

The whole file is rewritten after every change, in arrival order.
Malformed lines are skipped with a warning so one bad row never blocks
a restart.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError, field_validator

from er_triage.config import Settings
from er_triage.core.exceptions import PatientFileError
from er_triage.core.types import PatientRecord, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


# =============================================================================
# Row Schema
# =============================================================================

class PatientRow(BaseModel):
    """One validated line of the patient file."""

    id: int = Field(gt=0)
    name: str
    severity: int
    arrival_time: datetime

    @field_validator("arrival_time", mode="before")
    @classmethod
    def _parse_arrival_time(cls, value):
        if isinstance(value, str):
            return parse_timestamp(value)
        return value

    @classmethod
    def from_line(cls, line: str) -> "PatientRow":
        """
        Parse a stored line.

        The id is taken up to the first comma and severity/timestamp from
        the last two commas, so names containing commas survive.

        Raises:
            ValueError: Wrong field count
            ValidationError: Bad id, severity or timestamp
        """
        head, sep, rest = line.partition(",")
        if not sep:
            raise ValueError("expected 4 comma-separated fields")
        parts = rest.rsplit(",", 2)
        if len(parts) != 3:
            raise ValueError("expected 4 comma-separated fields")
        name, severity, arrival = parts
        return cls(
            id=head.strip(),
            name=name.strip(),
            severity=severity.strip(),
            arrival_time=arrival.strip(),
        )

    @classmethod
    def from_record(cls, record: PatientRecord) -> "PatientRow":
        return cls(
            id=record.id,
            name=record.name,
            severity=record.severity,
            arrival_time=record.arrival_time,
        )

    def to_line(self) -> str:
        return f"{self.id},{self.name},{self.severity},{format_timestamp(self.arrival_time)}"


# =============================================================================
# Protocol
# =============================================================================

@runtime_checkable
class PatientStore(Protocol):
    """Durable storage for the waiting list."""

    @abstractmethod
    def load(self) -> List[PatientRow]:
        """Read every valid stored row, in stored order."""
        ...

    @abstractmethod
    def save(self, records: Iterable[PatientRecord]) -> None:
        """Replace stored contents with ``records``."""
        ...


# =============================================================================
# File Implementation
# =============================================================================

class FilePatientStore:
    """
    Whole-file patient store.

    Writes go to a temporary sibling file that then replaces the target,
    so a failed save leaves the previous file intact.
    """

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)
        logger.info("FilePatientStore initialized: path=%s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[PatientRow]:
        """
        Read stored rows.

        Returns:
            Valid rows; empty if the file does not exist

        Raises:
            PatientFileError: If the file exists but cannot be read
        """
        if not self._path.exists():
            logger.info("No patient file at %s, starting empty", self._path)
            return []

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise PatientFileError(
                f"Error loading file: {e}", details={"path": str(self._path)}
            ) from e

        rows: List[PatientRow] = []
        skipped = 0
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                rows.append(PatientRow.from_line(line))
            except (ValueError, ValidationError) as e:
                skipped += 1
                logger.warning(
                    "Skipping malformed line %d in %s: %s",
                    lineno,
                    self._path,
                    str(e).splitlines()[0],
                )

        logger.info(
            "Loaded %d patients from %s (%d skipped)", len(rows), self._path, skipped
        )
        return rows

    def save(self, records: Iterable[PatientRecord]) -> None:
        """
        Overwrite the file with ``records`` in the given order.

        Raises:
            PatientFileError: If the file cannot be written
        """
        lines = [PatientRow.from_record(r).to_line() for r in records]
        tmp_name: Optional[str] = None
        try:
            directory = self._path.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PatientFileError(
                f"Error saving to file: {e}", details={"path": str(self._path)}
            ) from e

        logger.debug("Saved %d patients to %s", len(lines), self._path)


# =============================================================================
# No-Op Implementation (when persistence disabled)
# =============================================================================

class NoOpPatientStore:
    """No-op implementation when persistence is disabled."""

    def load(self) -> List[PatientRow]:
        return []

    def save(self, records: Iterable[PatientRecord]) -> None:
        pass


# =============================================================================
# Factory Function
# =============================================================================

def create_patient_store(settings: Settings) -> PatientStore:
    """
    Create a patient store based on settings.

    Args:
        settings: Application settings

    Returns:
        Configured PatientStore instance
    """
    if not settings.enable_persistence:
        logger.info("Persistence disabled, using no-op patient store")
        return NoOpPatientStore()

    return FilePatientStore(settings.patient_file)
