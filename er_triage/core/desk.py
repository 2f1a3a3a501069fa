"""
ER Triage - Triage Desk

Service layer coordinating the patient registry with its I/O collaborators.
This is the single entry point used by both the interactive menu and the
auto simulation.

Flow for every mutation:

    1. REGISTRY: apply the change in memory (always succeeds or reports
       not-found)
    2. AUDIT: for removals and treatments, append an audit line
    3. PERSIST: rewrite the patient file from the arrival listing

Steps 2 and 3 are best effort. Their failures are logged, never raised,
and never roll back step 1.

Usage:
    from er_triage.config import get_settings
    from er_triage.core.desk import create_desk

    desk = create_desk(get_settings())
    desk.startup()
    desk.add_patient("Isha", 6)
    treated = desk.treat_next_patient()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from er_triage.config import Settings
from er_triage.core.exceptions import (
    AuditLogError,
    DuplicatePatientError,
    PersistenceError,
)
from er_triage.core.logging import LogContext, mask_patient_name
from er_triage.core.registry import Clock, PatientRegistry
from er_triage.core.types import AuditAction, PatientRecord
from er_triage.services.audit_log import AuditLog, NoOpAuditLog, create_audit_log
from er_triage.services.persistence import (
    NoOpPatientStore,
    PatientStore,
    create_patient_store,
)

logger = logging.getLogger(__name__)


class TriageDesk:
    """
    Orchestrates registry mutations, persistence and audit logging.

    Attributes:
        registry: The live patient registry (read operations are safe to call
            directly)
        last_persistence_error: Most recent save failure, cleared by the next
            successful save
    """

    def __init__(
        self,
        registry: PatientRegistry,
        store: Optional[PatientStore] = None,
        audit_log: Optional[AuditLog] = None,
        anonymize_logs: bool = True,
    ):
        self._registry = registry
        self._store = store or NoOpPatientStore()
        self._audit_log = audit_log or NoOpAuditLog()
        self._anonymize = anonymize_logs
        self.last_persistence_error: Optional[PersistenceError] = None

        logger.info(
            "TriageDesk initialized: store=%s, audit_log=%s",
            type(self._store).__name__,
            type(self._audit_log).__name__,
        )

    @property
    def registry(self) -> PatientRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    def startup(self) -> int:
        """
        Replay the stored waiting list into the registry.

        Rows whose id is already registered are skipped.

        Returns:
            Number of patients restored

        Raises:
            PatientFileError: If the patient file exists but cannot be read
        """
        with LogContext(operation="startup"):
            rows = self._store.load()
            restored = 0
            for row in rows:
                try:
                    self._registry.restore(row.id, row.name, row.severity, row.arrival_time)
                    restored += 1
                except DuplicatePatientError:
                    logger.warning("Skipping duplicate patient id %d", row.id)

            if restored:
                logger.info(
                    "Loaded existing patients from file: %d restored, next id %d",
                    restored,
                    self._registry.next_id,
                )
            return restored

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_patient(self, name: str, severity: int) -> PatientRecord:
        """Register a patient and persist. Returns the stored record."""
        patient_id = self._registry.add(name, severity)
        return self._after_add(patient_id, "add")

    def add_emergency_patient(self, name: str, severity: int) -> PatientRecord:
        """Register a patient with severity of at least 10 and persist."""
        patient_id = self._registry.add_emergency(name, severity)
        return self._after_add(patient_id, "add_emergency")

    def update_severity(self, patient_id: int, new_severity: int) -> Optional[PatientRecord]:
        """
        Change a patient's severity and persist.

        Returns:
            The updated record, or None if the id is not registered
        """
        with LogContext(operation="update_severity", patient_id=patient_id):
            if not self._registry.update_severity(patient_id, new_severity):
                logger.info("Patient not found")
                return None
            record = self._registry.find_by_id(patient_id)
            logger.info("Severity updated to %d", record.severity)
            self._persist()
            return record

    def remove_patient(self, patient_id: int) -> Optional[PatientRecord]:
        """Remove a patient, audit and persist. Returns None if absent."""
        with LogContext(operation="remove", patient_id=patient_id):
            record = self._registry.remove(patient_id)
            if record is None:
                logger.info("Patient not found")
                return None
            logger.info(
                "Removed %s",
                self._describe(record),
                extra=self._event("patient_removed", record),
            )
            self._audit(AuditAction.REMOVED, record)
            self._persist()
            return record

    def treat_next_patient(self) -> Optional[PatientRecord]:
        """Treat the highest-priority patient. Returns None when nobody waits."""
        with LogContext(operation="treat_next"):
            record = self._registry.treat_next()
            if record is None:
                logger.info("No patients to treat")
                return None
            with LogContext(patient_id=record.id):
                logger.info(
                    "Treating %s",
                    self._describe(record),
                    extra=self._event("patient_treated", record),
                )
                self._audit(AuditAction.TREATED, record)
                self._persist()
            return record

    def save(self) -> None:
        """
        Write the arrival listing to the store.

        Raises:
            PersistenceError: If the store cannot be written
        """
        self._store.save(self._registry.list_by_arrival())
        self.last_persistence_error = None

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _after_add(self, patient_id: int, operation: str) -> PatientRecord:
        with LogContext(operation=operation, patient_id=patient_id):
            record = self._registry.get_or_raise(patient_id)
            logger.info("Added %s", self._describe(record))
            self._persist()
            return record

    def _persist(self) -> None:
        try:
            self.save()
        except PersistenceError as e:
            self.last_persistence_error = e
            logger.error("Persistence failed [%s]: %s", e.code, e.message)

    def _audit(self, action: AuditAction, record: PatientRecord) -> None:
        try:
            self._audit_log.record(action, record)
        except AuditLogError as e:
            logger.warning("Audit log write failed [%s]: %s", e.code, e.message)

    def _describe(self, record: PatientRecord) -> str:
        return "%s (severity %d)" % (
            mask_patient_name(record.name, self._anonymize),
            record.severity,
        )

    def _event(self, event_type: str, record: PatientRecord) -> Dict[str, Any]:
        data = record.to_dict()
        data["name"] = mask_patient_name(record.name, self._anonymize)
        data["waiting"] = self._registry.size()
        return {"event_type": event_type, "data": data}


# =============================================================================
# Factory Function
# =============================================================================

def create_desk(settings: Settings, clock: Optional[Clock] = None) -> TriageDesk:
    """
    Create a triage desk with collaborators chosen from settings.

    Args:
        settings: Application settings
        clock: Optional arrival-time source for the registry

    Returns:
        Configured TriageDesk (not yet loaded; call ``startup()``)
    """
    store = create_patient_store(settings)
    audit_log = create_audit_log(settings)

    logger.info(
        "Desk configured: persistence=%s, audit_log=%s",
        settings.patient_file if settings.enable_persistence else "disabled",
        settings.audit_log_file if settings.enable_audit_log else "disabled",
    )

    return TriageDesk(
        registry=PatientRegistry(clock=clock),
        store=store,
        audit_log=audit_log,
        anonymize_logs=settings.anonymize_logs,
    )
