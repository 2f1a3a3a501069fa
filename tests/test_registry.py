"""
ER Triage - Patient Registry Tests

Tests for PatientRegistry. These tests verify:
- Severity clamping and the emergency floor
- Priority order and the arrival tie-break
- Removal splices the arrival list correctly
- The three internal views stay consistent under random operations

Run with: pytest tests/test_registry.py -v
"""

from dataclasses import FrozenInstanceError
from datetime import timedelta
from typing import get_type_hints

import numpy as np
import pytest

from er_triage.core.exceptions import (
    DuplicatePatientError,
    PatientNotFoundError,
)
from er_triage.core.registry import PatientRegistry
from er_triage.core.types import PatientId, PatientRecord, clamp_severity

from conftest import BASE_TIME


def ids(records):
    return [r.id for r in records]


class TestAdd:
    """Tests for add() and add_emergency()."""

    def test_add_assigns_sequential_ids(self, registry: PatientRegistry):
        """Ids start at 1 and increase by one."""
        assert registry.add("Aarav", 5) == 1
        assert registry.add("Isha", 5) == 2
        assert registry.next_id == 3

    def test_add_then_find(self, registry: PatientRegistry):
        """A new patient is retrievable with its name and severity."""
        pid = registry.add("Kabir", 6)
        record = registry.find_by_id(pid)

        assert record.name == "Kabir"
        assert record.severity == 6
        assert record.arrival_time == BASE_TIME

    @pytest.mark.parametrize(
        "given,stored",
        [("Ana\nMaria", "Ana Maria"), (" Ana ", "Ana"), ("Bo\r\n", "Bo"), ("Shah, Aarav", "Shah, Aarav")],
    )
    def test_add_normalizes_name(self, registry: PatientRegistry, given: str, stored: str):
        """Line breaks become spaces and surrounding whitespace is trimmed."""
        pid = registry.add(given, 5)
        assert registry.find_by_id(pid).name == stored

    @pytest.mark.parametrize("given,stored", [(0, 1), (-4, 1), (1, 1), (10, 10), (11, 10), (99, 10)])
    def test_add_clamps_severity(self, registry: PatientRegistry, given: int, stored: int):
        """Out-of-range severity is corrected, never rejected."""
        pid = registry.add("Dev", given)
        assert registry.find_by_id(pid).severity == stored

    def test_emergency_raises_to_ten(self, registry: PatientRegistry):
        pid = registry.add_emergency("Meera", 3)
        assert registry.find_by_id(pid).severity == 10

    def test_emergency_does_not_overshoot(self, registry: PatientRegistry):
        pid = registry.add_emergency("Raj", 10)
        assert registry.find_by_id(pid).severity == 10

        pid = registry.add_emergency("Priya", 42)
        assert registry.find_by_id(pid).severity == 10

    def test_emergency_goes_to_front(self, populated_registry: PatientRegistry):
        """An emergency arrival outranks every non-emergency patient."""
        pid = populated_registry.add_emergency("Neha", 1)
        assert populated_registry.peek_next().id == pid


class TestPriorityOrder:
    """Tests for treat_next(), peek_next() and list_by_priority()."""

    def test_higher_severity_first(self, registry: PatientRegistry):
        """Severity wins regardless of insertion order."""
        low = registry.add("A", 3)
        high = registry.add("B", 8)

        assert registry.treat_next().id == high
        assert registry.treat_next().id == low

    def test_earlier_arrival_wins_tie(self, registry: PatientRegistry):
        """Equal severity: the earlier arrival is treated first."""
        registry.restore(2, "A", 5, BASE_TIME + timedelta(seconds=1))
        registry.restore(1, "B", 5, BASE_TIME + timedelta(seconds=2))

        assert registry.treat_next().name == "A"
        assert registry.treat_next().name == "B"

    def test_same_instant_falls_back_to_id(self, frozen_clock):
        """Same severity and same timestamp: lower id first."""
        registry = PatientRegistry(clock=frozen_clock)
        first = registry.add("A", 5)
        second = registry.add("B", 5)

        assert ids(registry.list_by_priority()) == [first, second]
        assert registry.treat_next().id == first

    def test_list_by_priority_full_order(self, populated_registry: PatientRegistry):
        assert ids(populated_registry.list_by_priority()) == [2, 4, 1, 3, 5]

    def test_list_by_priority_does_not_mutate(self, populated_registry: PatientRegistry):
        """Listing twice gives the same result and leaves the queue intact."""
        first = populated_registry.list_by_priority()
        second = populated_registry.list_by_priority()

        assert first == second
        assert populated_registry.size() == 5
        assert populated_registry.peek_next().id == 2

    def test_treat_order_matches_priority_listing(self, populated_registry: PatientRegistry):
        expected = ids(populated_registry.list_by_priority())
        treated = []
        while not populated_registry.is_empty():
            treated.append(populated_registry.treat_next().id)
        assert treated == expected

    def test_peek_does_not_remove(self, populated_registry: PatientRegistry):
        assert populated_registry.peek_next().id == 2
        assert populated_registry.peek_next().id == 2
        assert 2 in populated_registry

    def test_treat_next_removes_everywhere(self, populated_registry: PatientRegistry):
        treated = populated_registry.treat_next()

        assert treated.id == 2
        assert populated_registry.find_by_id(2) is None
        assert 2 not in ids(populated_registry.list_by_arrival())
        assert 2 not in ids(populated_registry.list_by_priority())
        populated_registry.verify_integrity()

    def test_treat_next_on_empty(self, registry: PatientRegistry):
        """Empty registry signals empty and stays untouched."""
        next_id = registry.next_id

        assert registry.treat_next() is None
        assert registry.peek_next() is None
        assert registry.is_empty()
        assert registry.next_id == next_id


class TestUpdateSeverity:
    """Tests for update_severity()."""

    def test_update_reorders_priority(self, populated_registry: PatientRegistry):
        assert populated_registry.update_severity(5, 10) is True
        assert populated_registry.peek_next().id == 5

    def test_update_keeps_arrival_position(self, populated_registry: PatientRegistry):
        before = ids(populated_registry.list_by_arrival())
        populated_registry.update_severity(1, 10)
        assert ids(populated_registry.list_by_arrival()) == before

    def test_update_preserves_identity(self, populated_registry: PatientRegistry):
        original = populated_registry.find_by_id(3)
        populated_registry.update_severity(3, 8)
        updated = populated_registry.find_by_id(3)

        assert updated == original
        assert updated.name == original.name
        assert updated.arrival_time == original.arrival_time
        assert updated.severity == 8

    def test_update_clamps_high(self, populated_registry: PatientRegistry):
        populated_registry.update_severity(1, 15)
        assert populated_registry.find_by_id(1).severity == 10

    def test_update_clamps_low(self, populated_registry: PatientRegistry):
        populated_registry.update_severity(1, -4)
        assert populated_registry.find_by_id(1).severity == 1

    def test_update_unknown_id(self, populated_registry: PatientRegistry):
        before = populated_registry.list_by_priority()
        assert populated_registry.update_severity(99, 5) is False
        assert populated_registry.list_by_priority() == before

    def test_update_then_tie_break_uses_original_arrival(self, populated_registry: PatientRegistry):
        """Re-inserted patients keep their place among equals."""
        populated_registry.update_severity(3, 9)  # ties with id 2, arrived later
        populated_registry.update_severity(2, 9)

        assert ids(populated_registry.list_by_priority())[:2] == [2, 3]


class TestRemove:
    """Tests for remove()."""

    def test_remove_returns_record(self, populated_registry: PatientRegistry):
        record = populated_registry.remove(3)
        assert record.id == 3
        assert record.name == "Rohan"

    def test_remove_purges_all_views(self, populated_registry: PatientRegistry):
        populated_registry.remove(4)

        assert populated_registry.find_by_id(4) is None
        assert 4 not in ids(populated_registry.list_by_arrival())
        assert 4 not in ids(populated_registry.list_by_priority())
        assert 4 not in populated_registry.all_ids()
        populated_registry.verify_integrity()

    def test_remove_head(self, populated_registry: PatientRegistry):
        populated_registry.remove(1)
        assert ids(populated_registry.list_by_arrival()) == [2, 3, 4, 5]
        populated_registry.verify_integrity()

    def test_remove_tail(self, populated_registry: PatientRegistry):
        populated_registry.remove(5)
        assert ids(populated_registry.list_by_arrival()) == [1, 2, 3, 4]

        # the new tail still accepts appends
        new_id = populated_registry.add("Zara", 3)
        assert ids(populated_registry.list_by_arrival()) == [1, 2, 3, 4, new_id]
        populated_registry.verify_integrity()

    def test_remove_middle(self, populated_registry: PatientRegistry):
        populated_registry.remove(3)
        assert ids(populated_registry.list_by_arrival()) == [1, 2, 4, 5]
        populated_registry.verify_integrity()

    def test_remove_only_patient(self, registry: PatientRegistry):
        pid = registry.add("Ira", 5)
        registry.remove(pid)

        assert registry.is_empty()
        assert registry.list_by_arrival() == []
        registry.add("Tara", 2)
        assert [r.name for r in registry.list_by_arrival()] == ["Tara"]
        registry.verify_integrity()

    def test_remove_unknown_id(self, populated_registry: PatientRegistry):
        assert populated_registry.remove(99) is None
        assert populated_registry.size() == 5

    def test_remove_twice(self, populated_registry: PatientRegistry):
        assert populated_registry.remove(2) is not None
        assert populated_registry.remove(2) is None

    def test_ids_not_reused(self, registry: PatientRegistry):
        pid = registry.add("Riya", 4)
        registry.remove(pid)
        assert registry.add("Kunal", 4) == pid + 1


class TestQueries:
    """Tests for lookup and listing operations."""

    def test_find_by_name_case_insensitive(self, populated_registry: PatientRegistry):
        """All matches, in arrival order."""
        assert ids(populated_registry.find_by_name("ISHA")) == [2, 5]

    def test_find_by_name_trims_query(self, populated_registry: PatientRegistry):
        assert ids(populated_registry.find_by_name(" rohan ")) == [3]

    def test_find_by_name_exact(self, populated_registry: PatientRegistry):
        assert populated_registry.find_by_name("Ish") == []

    def test_find_by_name_none(self, populated_registry: PatientRegistry):
        assert populated_registry.find_by_name("Nobody") == []

    def test_find_by_id_missing(self, populated_registry: PatientRegistry):
        assert populated_registry.find_by_id(42) is None

    def test_get_or_raise(self, populated_registry: PatientRegistry):
        assert populated_registry.get_or_raise(1).name == "Aarav"
        with pytest.raises(PatientNotFoundError) as exc_info:
            populated_registry.get_or_raise(42)
        assert exc_info.value.code == "PATIENT_NOT_FOUND"
        assert exc_info.value.patient_id == 42

    def test_size_and_ids(self, populated_registry: PatientRegistry):
        assert populated_registry.size() == 5
        assert len(populated_registry) == 5
        assert not populated_registry.is_empty()
        assert populated_registry.all_ids() == {1, 2, 3, 4, 5}

    def test_snapshots_are_independent(self, populated_registry: PatientRegistry):
        """Mutating returned collections does not touch the registry."""
        arrival = populated_registry.list_by_arrival()
        arrival.clear()
        priority = populated_registry.list_by_priority()
        priority.pop()
        all_ids = populated_registry.all_ids()
        all_ids.add(99)

        assert populated_registry.size() == 5
        assert len(populated_registry.list_by_priority()) == 5
        assert 99 not in populated_registry

    def test_records_are_immutable(self, populated_registry: PatientRegistry):
        record = populated_registry.find_by_id(1)
        with pytest.raises(FrozenInstanceError):
            record.severity = 10
        assert populated_registry.find_by_id(1).severity == 4

    def test_old_snapshot_unchanged_after_update(self, populated_registry: PatientRegistry):
        before = populated_registry.find_by_id(1)
        populated_registry.update_severity(1, 9)
        assert before.severity == 4


class TestRestore:
    """Tests for restore(), the explicit-id insert path."""

    def test_restore_advances_counter(self, registry: PatientRegistry):
        registry.restore(7, "Vihaan", 5, BASE_TIME)
        registry.restore(3, "Vivaan", 5, BASE_TIME)

        assert registry.next_id == 8
        assert registry.add("Aditya", 5) == 8

    def test_restore_keeps_timestamp(self, registry: PatientRegistry):
        stamp = BASE_TIME - timedelta(hours=2)
        record = registry.restore(4, "Ananya", 6, stamp)
        assert record.arrival_time == stamp
        assert registry.find_by_id(4).arrival_time == stamp

    def test_restore_clamps(self, registry: PatientRegistry):
        assert registry.restore(1, "Dev", 14, BASE_TIME).severity == 10
        assert registry.restore(2, "Raj", 0, BASE_TIME).severity == 1

    def test_restore_duplicate(self, registry: PatientRegistry):
        registry.restore(1, "Dev", 5, BASE_TIME)
        with pytest.raises(DuplicatePatientError):
            registry.restore(1, "Dev", 5, BASE_TIME)
        assert registry.size() == 1

    def test_restore_normalizes_name(self, registry: PatientRegistry):
        assert registry.restore(1, "  Ana\r\nMaria ", 5, BASE_TIME).name == "Ana Maria"

    def test_restore_rejects_non_positive_id(self, registry: PatientRegistry):
        with pytest.raises(ValueError):
            registry.restore(0, "Dev", 5, BASE_TIME)
        assert registry.is_empty()

    def test_restore_appends_in_call_order(self, registry: PatientRegistry):
        registry.restore(9, "Late", 5, BASE_TIME + timedelta(minutes=5))
        registry.restore(2, "Early", 5, BASE_TIME)

        assert ids(registry.list_by_arrival()) == [9, 2]
        assert ids(registry.list_by_priority()) == [2, 9]


class TestPatientRecord:
    """Tests for the PatientRecord value object."""

    def test_ids_are_typed(self):
        """Registry id parameters and results use the PatientId alias."""
        assert get_type_hints(PatientRecord)["id"] is PatientId
        assert get_type_hints(PatientRegistry.add)["return"] is PatientId
        for method in (PatientRegistry.find_by_id, PatientRegistry.remove, PatientRegistry.update_severity):
            assert get_type_hints(method)["patient_id"] is PatientId

    def test_equality_by_id_only(self):
        a = PatientRecord(id=1, name="A", severity=3, arrival_time=BASE_TIME)
        b = PatientRecord(id=1, name="B", severity=9, arrival_time=BASE_TIME + timedelta(1))

        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_rendering(self):
        record = PatientRecord(id=3, name="Meera", severity=9, arrival_time=BASE_TIME)
        assert str(record) == "[ID:3, Meera, Severity:9, Arrived:2026-10-19 08:00:00]"

    def test_rejects_out_of_range_severity(self):
        with pytest.raises(ValueError):
            PatientRecord(id=1, name="A", severity=11, arrival_time=BASE_TIME)

    def test_clamp_helper(self):
        assert [clamp_severity(s) for s in (-3, 1, 5, 10, 12)] == [1, 1, 5, 10, 10]


@pytest.mark.slow
class TestMembershipInvariant:
    """Randomized operation sequences against a reference model."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_views_stay_consistent(self, clock, seed: int):
        rng = np.random.default_rng(seed)
        registry = PatientRegistry(clock=clock)
        model = {}  # id -> (severity, arrival_time)
        arrival = []

        for _ in range(400):
            op = int(rng.integers(6))
            if op in (0, 1):
                severity = int(rng.integers(-3, 14))
                if op == 0:
                    pid = registry.add("P", severity)
                    stored = clamp_severity(severity)
                else:
                    pid = registry.add_emergency("P", severity)
                    stored = max(clamp_severity(severity), 10)
                model[pid] = (stored, registry.find_by_id(pid).arrival_time)
                arrival.append(pid)
            elif op == 2 and model:
                pid = int(rng.choice(sorted(model)))
                severity = int(rng.integers(-3, 14))
                assert registry.update_severity(pid, severity)
                model[pid] = (clamp_severity(severity), model[pid][1])
            elif op == 3:
                expected = min(model, key=lambda i: (-model[i][0], model[i][1], i), default=None)
                treated = registry.treat_next()
                assert (treated.id if treated else None) == expected
                if expected is not None:
                    del model[expected]
                    arrival.remove(expected)
            elif op == 4 and model:
                pid = int(rng.choice(sorted(model)))
                assert registry.remove(pid).id == pid
                del model[pid]
                arrival.remove(pid)
            else:
                assert registry.remove(10_000) is None

            registry.verify_integrity()
            assert registry.all_ids() == set(model)
            assert ids(registry.list_by_arrival()) == arrival
            assert ids(registry.list_by_priority()) == sorted(
                model, key=lambda i: (-model[i][0], model[i][1], i)
            )
