"""
ER Triage - Structured Logging

Human-readable or JSON logging with context injection for the current
registry operation and patient id. Patient names can be masked to
initials before they reach a log line.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime
from typing import Any, List, Optional


# =============================================================================
# Context Variables
# =============================================================================

operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)
patient_id_var: ContextVar[Optional[int]] = ContextVar("patient_id", default=None)


# =============================================================================
# Masking Utilities
# =============================================================================

def mask_patient_name(name: Optional[str], enabled: bool = True) -> Optional[str]:
    """
    Reduce a patient name to its initials.

    "Aarav Shah" -> "A.S."; empty or missing names become "***".
    """
    if not enabled:
        return name
    if not name or not name.strip():
        return "***"
    return "".join(f"{part[0].upper()}." for part in name.split())


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that injects context variables.

    Output format:
    {
        "timestamp": "2026-10-19T08:00:00.000000",
        "level": "INFO",
        "logger": "er_triage.core.desk",
        "operation": "treat_next",
        "patient_id": 7,
        "message": "Human-readable message",
        "data": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        operation = operation_var.get()
        if operation:
            log_entry["operation"] = operation

        patient_id = patient_id_var.get()
        if patient_id is not None:
            log_entry["patient_id"] = patient_id

        if hasattr(record, "event_type"):
            log_entry["event_type"] = record.event_type

        if hasattr(record, "data") and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Timestamp, level, logger and message, with operation context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        context_parts = []
        operation = operation_var.get()
        if operation:
            context_parts.append(f"op={operation}")
        patient_id = patient_id_var.get()
        if patient_id is not None:
            context_parts.append(f"patient={patient_id}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
    stream: Any = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON lines instead of the human-readable format
        stream: Output stream (defaults to stderr so menu output stays clean)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root_logger.addHandler(handler)


# =============================================================================
# Context Manager
# =============================================================================

class LogContext:
    """
    Context manager for setting log context variables.

    Usage:
        with LogContext(operation="remove", patient_id=12):
            logger.info("Removing patient")
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        patient_id: Optional[int] = None,
    ):
        self._operation = operation
        self._patient_id = patient_id
        self._tokens: List[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "LogContext":
        if self._operation:
            self._tokens.append((operation_var, operation_var.set(self._operation)))
        if self._patient_id is not None:
            self._tokens.append((patient_id_var, patient_id_var.set(self._patient_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False
