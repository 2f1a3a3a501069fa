"""
ER Triage - Exception Hierarchy

Structured exceptions for consistent error handling across the system.
All exceptions carry an error code so drivers can report them uniformly.
"""

from typing import Optional


class TriageRegistryError(Exception):
    """Base exception for all ER triage errors."""

    code: str = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Registry Errors
# =============================================================================

class RegistryError(TriageRegistryError):
    """Error raised by the patient registry."""
    code = "REGISTRY_ERROR"


class PatientNotFoundError(RegistryError):
    """Referenced patient id is not in the registry."""
    code = "PATIENT_NOT_FOUND"

    def __init__(self, patient_id: int):
        super().__init__(
            f"No patient found with ID: {patient_id}",
            details={"patient_id": patient_id},
        )
        self.patient_id = patient_id


class DuplicatePatientError(RegistryError):
    """Restoring a patient whose id is already registered."""
    code = "DUPLICATE_PATIENT"


class RegistryIntegrityError(RegistryError):
    """The arrival list, priority heap and identity index disagree."""
    code = "REGISTRY_INTEGRITY"


# =============================================================================
# Persistence Errors
# =============================================================================

class PersistenceError(TriageRegistryError):
    """An I/O collaborator could not read or write."""
    code = "PERSISTENCE_ERROR"


class PatientFileError(PersistenceError):
    """Patient file could not be read or written."""
    code = "PATIENT_FILE_ERROR"


class AuditLogError(PersistenceError):
    """Audit log line could not be appended."""
    code = "AUDIT_LOG_ERROR"


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(TriageRegistryError):
    """Configuration error."""
    code = "CONFIGURATION_ERROR"
