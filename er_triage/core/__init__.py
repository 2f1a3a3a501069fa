"""
ER Triage - Core Package

Contains the patient registry and the domain around it:
- types: PatientRecord and severity/timestamp helpers
- registry: arrival list + priority heap + identity index
- desk: service layer wiring the registry to its collaborators
  (import from er_triage.core.desk)
"""

from .types import (
    AuditAction,
    PatientId,
    PatientRecord,
    clamp_severity,
    normalize_name,
)
from .exceptions import (
    DuplicatePatientError,
    PatientNotFoundError,
    PersistenceError,
    RegistryIntegrityError,
    TriageRegistryError,
)
from .registry import PatientRegistry

__all__ = [
    # Registry
    "PatientRegistry",
    # Types
    "PatientId",
    "PatientRecord",
    "AuditAction",
    "clamp_severity",
    "normalize_name",
    # Errors
    "TriageRegistryError",
    "PatientNotFoundError",
    "DuplicatePatientError",
    "RegistryIntegrityError",
    "PersistenceError",
]
