"""
ER Triage - Emergency Room Triage Registry

This package contains:
- core: patient registry, domain types, errors, logging, service layer
- services: patient file persistence and audit log collaborators
- simulation: randomized auto-simulation driver
- cli: interactive menu and command line entry point
"""

__version__ = "0.1.0"
