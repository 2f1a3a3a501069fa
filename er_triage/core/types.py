"""
ER Triage - Core Domain Types

Domain objects shared by the registry, the service layer and the drivers.

Design Notes:
- PatientRecord is a frozen value object. A severity change produces a new
  record with the same identity, so snapshots handed to callers can never
  alias registry internals.
- Equality and hashing use ``id`` only (the other fields are excluded from
  comparison).
- Timestamps have whole-second resolution, matching the persisted format.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, NewType, Tuple


# =============================================================================
# Type Aliases & Constants
# =============================================================================

PatientId = NewType("PatientId", int)
"""Unique, positive, never-reused patient identifier."""

SEVERITY_MIN = 1
SEVERITY_MAX = 10
EMERGENCY_SEVERITY = SEVERITY_MAX

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
"""Arrival time format used for rendering and the patient file."""

PriorityKey = Tuple[int, datetime, int]


def clamp_severity(severity: int) -> int:
    """Force a severity into the inclusive range [1, 10]."""
    return max(SEVERITY_MIN, min(int(severity), SEVERITY_MAX))


def normalize_name(name: str) -> str:
    """Collapse line breaks to spaces and trim, so the name fits on one stored line."""
    return re.sub(r"[\r\n]+", " ", name).strip()


def current_time() -> datetime:
    """Local wall-clock time truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a ``yyyy-MM-dd HH:mm:ss`` timestamp. Raises ValueError."""
    return datetime.strptime(value.strip(), TIMESTAMP_FORMAT)


# =============================================================================
# Patient Record
# =============================================================================

@dataclass(frozen=True)
class PatientRecord:
    """
    A patient waiting for treatment.

    Attributes:
        id: Registry-assigned identifier
        name: Display name (not unique)
        severity: Clinical severity, always within [1, 10]
        arrival_time: Moment the patient was registered
    """
    id: PatientId
    name: str = field(compare=False)
    severity: int = field(compare=False)
    arrival_time: datetime = field(compare=False)

    def __post_init__(self):
        """Validate constraints."""
        if self.id < 1:
            raise ValueError(f"id must be positive, got {self.id}")
        if not SEVERITY_MIN <= self.severity <= SEVERITY_MAX:
            raise ValueError(
                f"severity must be {SEVERITY_MIN}-{SEVERITY_MAX}, got {self.severity}"
            )

    @property
    def priority_key(self) -> PriorityKey:
        """Sort key: higher severity first, then earlier arrival, then lower id."""
        return (-self.severity, self.arrival_time, self.id)

    def with_severity(self, severity: int) -> "PatientRecord":
        """Copy of this record with a clamped new severity."""
        return replace(self, severity=clamp_severity(severity))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity,
            "arrival_time": format_timestamp(self.arrival_time),
        }

    def __str__(self) -> str:
        return (
            f"[ID:{self.id}, {self.name}, Severity:{self.severity}, "
            f"Arrived:{format_timestamp(self.arrival_time)}]"
        )


# =============================================================================
# Outcomes
# =============================================================================

class AuditAction(str, Enum):
    """Registry outcomes reported to the audit log."""
    REMOVED = "Removed"
    TREATED = "Treated"
