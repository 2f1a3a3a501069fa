"""
ER Triage - Auto Simulation

Randomized driver that exercises the triage desk: patients arrive, get
escalated, are treated or walk out. Reproducible when seeded.

Randomness comes from an injected ``numpy.random.Generator``; no global
random state is read or written.
"""

from __future__ import annotations

import logging
import sys
import time
from enum import IntEnum
from typing import Callable, Optional, Sequence, TextIO

import numpy as np

from er_triage.core.desk import TriageDesk
from er_triage.core.types import SEVERITY_MAX, SEVERITY_MIN

logger = logging.getLogger(__name__)


SAMPLE_NAMES = (
    "Aarav", "Isha", "Rohan", "Simran", "Kabir", "Ananya", "Dev", "Meera", "Raj", "Priya",
    "Neha", "Arjun", "Ira", "Vihaan", "Zara", "Vivaan", "Riya", "Kunal", "Tara", "Aditya",
)


class SimulationAction(IntEnum):
    ADD = 0
    ADD_EMERGENCY = 1
    UPDATE_SEVERITY = 2
    TREAT_NEXT = 3
    REMOVE = 4


# Need someone waiting; redrawn from the first three actions otherwise
_NON_EMPTY_ONLY = (SimulationAction.TREAT_NEXT, SimulationAction.REMOVE)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Create the simulation's random source.

    Args:
        seed: Fixed seed for a reproducible run, or None for fresh entropy
    """
    return np.random.default_rng(seed)


class TriageSimulation:
    """
    Step-wise random simulation over a TriageDesk.

    Each step performs one action, then prints the arrival listing and the
    next patient to treat.
    """

    def __init__(
        self,
        desk: TriageDesk,
        rng: np.random.Generator,
        steps: int = 20,
        delay_ms: int = 800,
        out: Optional[TextIO] = None,
        sleep: Callable[[float], None] = time.sleep,
        names: Sequence[str] = SAMPLE_NAMES,
    ):
        """
        Initialize the simulation.

        Args:
            desk: Desk whose registry is exercised
            rng: Random source (see ``make_rng``)
            steps: Number of steps to run
            delay_ms: Pause after each step
            out: Where step reports are printed (defaults to stdout)
            sleep: Pause function, injectable for tests
            names: Pool of patient names
        """
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")
        if not names:
            raise ValueError("names must not be empty")
        self._desk = desk
        self._rng = rng
        self._steps = steps
        self._delay = max(delay_ms, 0) / 1000
        self._out = out or sys.stdout
        self._sleep = sleep
        self._names = tuple(names)

    def run(self) -> None:
        self._print(f"Auto-Simulation started ({self._steps} steps)...")
        for step in range(1, self._steps + 1):
            action = self.step()
            logger.debug("Simulation step %d: %s", step, action.name)

            self._print(
                f"\n--- STATE after step {step} (size={self._desk.registry.size()}) ---"
            )
            self._print_state()
            self._print("-" * 53 + "\n")

            if self._delay:
                self._sleep(self._delay)
        self._print("Auto-Simulation finished.")

    def step(self) -> SimulationAction:
        """Perform one random action and return which one ran."""
        registry = self._desk.registry
        action = SimulationAction(int(self._rng.integers(len(SimulationAction))))
        if registry.is_empty() and action in _NON_EMPTY_ONLY:
            action = SimulationAction(int(self._rng.integers(3)))

        if action is SimulationAction.ADD:
            record = self._desk.add_patient(self._random_name(), self._random_severity())
            self._print(f"Added: {record}")
        elif action is SimulationAction.ADD_EMERGENCY:
            record = self._desk.add_emergency_patient(
                self._random_name(), self._random_severity()
            )
            self._print(f"Added: {record}")
        elif action is SimulationAction.UPDATE_SEVERITY:
            patient_id = self._random_id()
            if patient_id is not None:
                record = self._desk.update_severity(patient_id, self._random_severity())
                self._print(f"Severity updated: {record}")
        elif action is SimulationAction.TREAT_NEXT:
            record = self._desk.treat_next_patient()
            self._print(f"Treating: {record}" if record else "No patients to treat.")
        else:
            patient_id = self._random_id()
            if patient_id is not None:
                record = self._desk.remove_patient(patient_id)
                self._print(f"Removed: {record}")
        return action

    def _print_state(self) -> None:
        waiting = self._desk.registry.list_by_arrival()
        if not waiting:
            self._print("Waiting list is empty.")
        else:
            self._print("Waiting List (Arrival Order):")
            for record in waiting:
                self._print(f"   {record}")

        upcoming = self._desk.registry.peek_next()
        if upcoming is None:
            self._print("No patients in queue.")
        else:
            self._print(f"Next to treat: {upcoming}")

    def _random_name(self) -> str:
        return self._names[int(self._rng.integers(len(self._names)))]

    def _random_severity(self) -> int:
        return int(self._rng.integers(SEVERITY_MIN, SEVERITY_MAX + 1))

    def _random_id(self) -> Optional[int]:
        # sorted so a seeded run is reproducible
        ids = sorted(self._desk.registry.all_ids())
        if not ids:
            return None
        return ids[int(self._rng.integers(len(ids)))]

    def _print(self, text: str) -> None:
        print(text, file=self._out)
