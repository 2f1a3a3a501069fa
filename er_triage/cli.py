"""
ER Triage - Command Line Interface

Interactive front desk for the emergency room waiting list, plus the
auto-simulation mode.

Usage:
    er-triage                        # asks for the mode
    er-triage --mode manual
    er-triage --mode simulate --steps 50 --delay-ms 0 --seed 7
    python -m er_triage --no-persist
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from pydantic import ValidationError

from er_triage import __version__
from er_triage.config import Settings, get_settings
from er_triage.core.desk import TriageDesk, create_desk
from er_triage.core.exceptions import ConfigurationError, PersistenceError
from er_triage.core.logging import setup_structured_logging
from er_triage.core.types import PatientRecord
from er_triage.simulation import TriageSimulation, make_rng

logger = logging.getLogger(__name__)


MENU = """
=== Menu ===
1. Add Patient
2. Emergency Add Patient
3. Update Patient Severity
4. Remove Patient
5. Treat Next Patient
6. View Waiting List (Arrival Order)
7. View Patients by Severity Order
8. Search Patient by Name
9. Search Patient by ID
10. View Next Patient to Treat
11. Exit"""

EXIT_CHOICE = 11


# =============================================================================
# Manual Mode
# =============================================================================

class TriageMenu:
    """
    Line-oriented menu over a TriageDesk.

    Input and output streams are injectable; end of input behaves like
    choosing Exit.
    """

    def __init__(
        self,
        desk: TriageDesk,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        self._desk = desk
        self._in = stdin or sys.stdin
        self._out = stdout or sys.stdout
        self._actions: Dict[int, Callable[[], None]] = {
            1: self._add,
            2: self._add_emergency,
            3: self._update_severity,
            4: self._remove,
            5: self._treat_next,
            6: self._view_waiting_list,
            7: self._view_severity_order,
            8: self._search_by_name,
            9: self._search_by_id,
            10: self._view_next,
        }

    def run(self) -> None:
        try:
            while True:
                self._print(MENU)
                choice = self._read_int("Choose: ")
                if choice == EXIT_CHOICE:
                    break
                action = self._actions.get(choice)
                if action is None:
                    self._print("Invalid choice.")
                else:
                    action()
        except EOFError:
            self._print("")
        self._print("Exiting system...")

    # -------------------------------------------------------------------------
    # Menu actions
    # -------------------------------------------------------------------------

    def _add(self) -> None:
        name = self._read_line("Enter name: ")
        severity = self._read_int("Enter severity (1-10): ")
        self._print(f"Added: {self._desk.add_patient(name, severity)}")

    def _add_emergency(self) -> None:
        name = self._read_line("Enter name: ")
        severity = self._read_int("Enter severity (1-10): ")
        self._print(f"Added: {self._desk.add_emergency_patient(name, severity)}")

    def _update_severity(self) -> None:
        patient_id = self._read_int("Enter patient ID: ")
        severity = self._read_int("Enter new severity (1-10): ")
        record = self._desk.update_severity(patient_id, severity)
        self._print(f"Severity updated: {record}" if record else "Patient not found.")

    def _remove(self) -> None:
        patient_id = self._read_int("Enter patient ID: ")
        record = self._desk.remove_patient(patient_id)
        self._print(f"Removed: {record}" if record else "Patient not found.")

    def _treat_next(self) -> None:
        record = self._desk.treat_next_patient()
        self._print(f"Treating: {record}" if record else "No patients to treat.")

    def _view_waiting_list(self) -> None:
        records = self._desk.registry.list_by_arrival()
        if not records:
            self._print("Waiting list is empty.")
            return
        self._print("Waiting List (Arrival Order):")
        self._print_records(records)

    def _view_severity_order(self) -> None:
        records = self._desk.registry.list_by_priority()
        if not records:
            self._print("No patients in queue.")
            return
        self._print("Patients by Severity Order:")
        self._print_records(records)

    def _search_by_name(self) -> None:
        name = self._read_line("Enter patient name: ")
        matches = self._desk.registry.find_by_name(name)
        if not matches:
            self._print(f"No patient found with name: {name}")
        for record in matches:
            self._print(f"Found: {record}")

    def _search_by_id(self) -> None:
        patient_id = self._read_int("Enter patient ID: ")
        record = self._desk.registry.find_by_id(patient_id)
        if record:
            self._print(f"Found by ID: {record}")
        else:
            self._print(f"No patient found with ID: {patient_id}")

    def _view_next(self) -> None:
        record = self._desk.registry.peek_next()
        self._print(f"Next to treat: {record}" if record else "No patients in queue.")

    # -------------------------------------------------------------------------
    # I/O helpers
    # -------------------------------------------------------------------------

    def _read_line(self, prompt: str) -> str:
        self._out.write(prompt)
        self._out.flush()
        line = self._in.readline()
        if not line:
            raise EOFError
        return line.rstrip("\r\n").strip()

    def _read_int(self, prompt: str) -> int:
        text = self._read_line(prompt)
        while True:
            try:
                return int(text)
            except ValueError:
                text = self._read_line("Please enter a valid integer: ")

    def _print_records(self, records: List[PatientRecord]) -> None:
        for record in records:
            self._print(f"   {record}")

    def _print(self, text: str) -> None:
        print(text, file=self._out)


# =============================================================================
# Entry Point
# =============================================================================

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="er-triage",
        description="Emergency room triage registry",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=("manual", "simulate"),
        default=None,
        help="Run mode (asked interactively when omitted)",
    )
    parser.add_argument("--steps", type=int, help="Override simulation steps")
    parser.add_argument("--delay-ms", type=int, help="Override simulation step delay")
    parser.add_argument("--seed", type=int, help="Override simulation seed")
    parser.add_argument("--patient-file", type=str, help="Override patient file path")
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Disable the patient file and audit log",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Return settings with command line overrides applied.

    Raises:
        ConfigurationError: If an override fails settings validation
    """
    overrides = {}
    if args.steps is not None:
        overrides["simulation_steps"] = args.steps
    if args.delay_ms is not None:
        overrides["simulation_delay_ms"] = args.delay_ms
    if args.seed is not None:
        overrides["simulation_seed"] = args.seed
    if args.patient_file:
        overrides["patient_file"] = args.patient_file
    if args.no_persist:
        overrides["enable_persistence"] = False
        overrides["enable_audit_log"] = False
    if not overrides:
        return settings
    try:
        return Settings(**{**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid command line override: {e.errors()[0]['msg']}",
            details={"overrides": overrides},
        ) from e


def choose_mode(stdin: TextIO, stdout: TextIO) -> str:
    print("=== Hospital Emergency Room ===", file=stdout)
    print("1. Manual Mode", file=stdout)
    print("2. Auto-Simulation Mode", file=stdout)
    stdout.write("Choose: ")
    stdout.flush()
    answer = stdin.readline().strip()
    return "manual" if answer == "1" else "simulate"


def main(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    args = parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    try:
        settings = apply_cli_overrides(get_settings(), args)
    except ConfigurationError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 2
    setup_structured_logging(settings.app_log_level, settings.log_json_format)

    desk = create_desk(settings)
    try:
        desk.startup()
    except PersistenceError as e:
        logger.error("Starting with an empty waiting list [%s]: %s", e.code, e.message)
        print(e.message, file=stdout)

    mode = args.mode or choose_mode(stdin, stdout)
    if mode == "manual":
        TriageMenu(desk, stdin=stdin, stdout=stdout).run()
    else:
        TriageSimulation(
            desk,
            rng=make_rng(settings.simulation_seed),
            steps=settings.simulation_steps,
            delay_ms=settings.simulation_delay_ms,
            out=stdout,
        ).run()

    if desk.last_persistence_error is not None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
