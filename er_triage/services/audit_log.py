"""
ER Triage - Audit Log

Append-only record of patients leaving the registry, one line per event:

    Treated: [ID:3, Meera, Severity:9, Arrived:2026-10-19 08:12:44]

Logging is best effort: the service layer reports failures but never lets
them affect registry state.
"""

from __future__ import annotations

import logging
import os
from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from er_triage.config import Settings
from er_triage.core.exceptions import AuditLogError
from er_triage.core.types import AuditAction, PatientRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class AuditLog(Protocol):
    """Sink for removal and treatment events."""

    @abstractmethod
    def record(self, action: AuditAction, patient: PatientRecord) -> None:
        ...


class FileAuditLog:
    """Appends one line per event to a text file."""

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)
        logger.info("FileAuditLog initialized: path=%s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, action: AuditAction, patient: PatientRecord) -> None:
        """
        Append ``"<Action>: <patient>"``.

        Raises:
            AuditLogError: If the line cannot be written
        """
        line = f"{action.value}: {patient}\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise AuditLogError(
                f"Error writing log: {e}",
                details={"path": str(self._path), "action": action.value},
            ) from e


class NoOpAuditLog:
    """No-op implementation when the audit log is disabled."""

    def record(self, action: AuditAction, patient: PatientRecord) -> None:
        pass


def create_audit_log(settings: Settings) -> AuditLog:
    """Create an audit log based on settings."""
    if not settings.enable_audit_log:
        logger.info("Audit log disabled, using no-op audit log")
        return NoOpAuditLog()
    return FileAuditLog(settings.audit_log_file)
