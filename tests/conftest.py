"""
ER Triage - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Ensure the package is importable without installation
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from er_triage.config import Settings
from er_triage.core.desk import TriageDesk
from er_triage.core.registry import PatientRegistry
from er_triage.services.audit_log import FileAuditLog
from er_triage.services.persistence import FilePatientStore


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


# =============================================================================
# Clocks
# =============================================================================

BASE_TIME = datetime(2026, 10, 19, 8, 0, 0)


class StepClock:
    """Deterministic clock advancing by a fixed step on every call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self._next = start
        self._step = step

    def __call__(self) -> datetime:
        value = self._next
        self._next += self._step
        return value


@pytest.fixture
def clock() -> StepClock:
    """Clock that ticks one second per arrival."""
    return StepClock()


@pytest.fixture
def frozen_clock() -> StepClock:
    """Clock that returns the same instant every time."""
    return StepClock(step=timedelta(0))


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every file into the test's temp directory."""
    return Settings(
        app_log_level="WARNING",
        enable_persistence=True,
        patient_file=str(tmp_path / "patients.txt"),
        enable_audit_log=True,
        audit_log_file=str(tmp_path / "treated_log.txt"),
        simulation_steps=5,
        simulation_delay_ms=0,
        simulation_seed=42,
    )


# =============================================================================
# Registry & Collaborator Fixtures
# =============================================================================

@pytest.fixture
def registry(clock: StepClock) -> PatientRegistry:
    """Empty registry with a deterministic clock."""
    return PatientRegistry(clock=clock)


@pytest.fixture
def patient_store(tmp_path: Path) -> FilePatientStore:
    return FilePatientStore(tmp_path / "patients.txt")


@pytest.fixture
def audit_log(tmp_path: Path) -> FileAuditLog:
    return FileAuditLog(tmp_path / "treated_log.txt")


@pytest.fixture
def desk(
    registry: PatientRegistry,
    patient_store: FilePatientStore,
    audit_log: FileAuditLog,
) -> TriageDesk:
    """Desk backed by real files in a temp directory."""
    return TriageDesk(registry=registry, store=patient_store, audit_log=audit_log)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def populated_registry(registry: PatientRegistry) -> PatientRegistry:
    """
    Registry holding five patients (ids 1-5, arriving one second apart):

        1 Aarav  4
        2 Isha   9
        3 Rohan  4
        4 Simran 7
        5 isha   2
    """
    for name, severity in [
        ("Aarav", 4),
        ("Isha", 9),
        ("Rohan", 4),
        ("Simran", 7),
        ("isha", 2),
    ]:
        registry.add(name, severity)
    return registry
