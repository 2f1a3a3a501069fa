"""
ER Triage - I/O Collaborators

Pluggable persistence and audit logging used by the triage desk.
"""

from .persistence import (
    PatientRow,
    PatientStore,
    FilePatientStore,
    NoOpPatientStore,
    create_patient_store,
)
from .audit_log import (
    AuditLog,
    FileAuditLog,
    NoOpAuditLog,
    create_audit_log,
)

__all__ = [
    "PatientRow",
    "PatientStore",
    "FilePatientStore",
    "NoOpPatientStore",
    "create_patient_store",
    "AuditLog",
    "FileAuditLog",
    "NoOpAuditLog",
    "create_audit_log",
]
