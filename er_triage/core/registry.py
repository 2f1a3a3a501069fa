"""
ER Triage - Patient Registry

In-memory registry of waiting patients with three synchronized views:

    - arrival list: doubly-linked, append at tail, O(1) splice removal
    - priority heap: binary heap with an id -> slot map, so any patient can
      be removed or re-inserted in O(log n) without scanning
    - identity index: dict of id -> arrival node

Every public operation holds a single lock for its whole duration and leaves
all three views agreeing on membership before it returns.

Usage:
    registry = PatientRegistry()
    pid = registry.add("Aarav", 7)
    registry.update_severity(pid, 9)
    treated = registry.treat_next()
"""

from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Callable, Dict, Iterator, List, Optional, Set

from er_triage.core.exceptions import (
    DuplicatePatientError,
    PatientNotFoundError,
    RegistryIntegrityError,
)
from er_triage.core.types import (
    EMERGENCY_SEVERITY,
    PatientId,
    PatientRecord,
    clamp_severity,
    current_time,
    normalize_name,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# =============================================================================
# Arrival List
# =============================================================================

class _ArrivalNode:
    __slots__ = ("record", "prev", "next")

    def __init__(self, record: PatientRecord):
        self.record = record
        self.prev: Optional[_ArrivalNode] = None
        self.next: Optional[_ArrivalNode] = None


# =============================================================================
# Addressable Priority Heap
# =============================================================================

class _PriorityHeap:
    """
    Binary min-heap on ``PatientRecord.priority_key`` with a position map.

    The position map lets the registry remove a patient by id in O(log n).
    Not thread-safe on its own; the registry lock guards it.
    """

    def __init__(self):
        self._items: List[PatientRecord] = []
        self._slots: Dict[PatientId, int] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, patient_id: PatientId) -> bool:
        return patient_id in self._slots

    def ids(self) -> Set[PatientId]:
        return set(self._slots)

    def push(self, record: PatientRecord) -> None:
        self._items.append(record)
        self._slots[record.id] = len(self._items) - 1
        self._sift_up(len(self._items) - 1)

    def peek(self) -> Optional[PatientRecord]:
        return self._items[0] if self._items else None

    def pop(self) -> Optional[PatientRecord]:
        if not self._items:
            return None
        return self._remove_at(0)

    def remove(self, patient_id: PatientId) -> Optional[PatientRecord]:
        slot = self._slots.get(patient_id)
        if slot is None:
            return None
        return self._remove_at(slot)

    def ordered(self) -> List[PatientRecord]:
        """Full priority order, computed on a copy."""
        return sorted(self._items, key=lambda r: r.priority_key)

    def check(self) -> Optional[str]:
        """Return a description of the first broken heap invariant, if any."""
        for slot, record in enumerate(self._items):
            if self._slots.get(record.id) != slot:
                return f"position map out of sync for id {record.id}"
            parent = (slot - 1) // 2
            if slot and self._items[slot].priority_key < self._items[parent].priority_key:
                return f"heap order violated at slot {slot}"
        if len(self._slots) != len(self._items):
            return "position map holds stale ids"
        return None

    def _remove_at(self, slot: int) -> PatientRecord:
        last = len(self._items) - 1
        if slot != last:
            self._swap(slot, last)
        record = self._items.pop()
        del self._slots[record.id]
        if slot < len(self._items):
            # the moved element may need to travel either way
            self._sift_up(slot)
            self._sift_down(slot)
        return record

    def _swap(self, i: int, j: int) -> None:
        items = self._items
        items[i], items[j] = items[j], items[i]
        self._slots[items[i].id] = i
        self._slots[items[j].id] = j

    def _sift_up(self, slot: int) -> None:
        items = self._items
        while slot > 0:
            parent = (slot - 1) // 2
            if items[slot].priority_key < items[parent].priority_key:
                self._swap(slot, parent)
                slot = parent
            else:
                break

    def _sift_down(self, slot: int) -> None:
        items = self._items
        size = len(items)
        while True:
            left = 2 * slot + 1
            right = left + 1
            best = slot
            if left < size and items[left].priority_key < items[best].priority_key:
                best = left
            if right < size and items[right].priority_key < items[best].priority_key:
                best = right
            if best == slot:
                return
            self._swap(slot, best)
            slot = best


# =============================================================================
# Patient Registry
# =============================================================================

class PatientRegistry:
    """
    Dual-indexed registry of patients awaiting treatment.

    Patients can be read in arrival order or in priority order
    (severity descending, then arrival ascending, then id ascending).
    Lookups of an absent id return None/False rather than raising; use
    ``get_or_raise`` when an exception is preferable.

    All list operations return new lists of immutable records.
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize an empty registry.

        Args:
            clock: Source of arrival timestamps (defaults to local time
                truncated to whole seconds)
        """
        self._clock: Clock = clock or current_time
        self._lock = Lock()

        self._head: Optional[_ArrivalNode] = None
        self._tail: Optional[_ArrivalNode] = None
        self._index: Dict[PatientId, _ArrivalNode] = {}
        self._heap = _PriorityHeap()
        self._next_id = 1

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, name: str, severity: int) -> PatientId:
        """Register a patient and return the new id. Never fails."""
        with self._lock:
            return self._add(name, severity)

    def add_emergency(self, name: str, severity: int) -> PatientId:
        """Register a patient with severity raised to at least 10."""
        with self._lock:
            return self._add(name, max(severity, EMERGENCY_SEVERITY))

    def update_severity(self, patient_id: PatientId, new_severity: int) -> bool:
        """
        Change a patient's severity.

        The patient keeps its id, name, arrival time and arrival position;
        only its place in the priority heap changes.

        Returns:
            False if the id is not registered
        """
        with self._lock:
            node = self._index.get(patient_id)
            if node is None:
                logger.debug("update_severity: id %d not found", patient_id)
                return False

            self._heap.remove(patient_id)
            node.record = node.record.with_severity(new_severity)
            self._heap.push(node.record)

            logger.debug(
                "Severity updated: id=%d, severity=%d", patient_id, node.record.severity
            )
            return True

    def remove(self, patient_id: PatientId) -> Optional[PatientRecord]:
        """Remove a patient from every view. Returns None if absent."""
        with self._lock:
            node = self._index.get(patient_id)
            if node is None:
                logger.debug("remove: id %d not found", patient_id)
                return None

            self._heap.remove(patient_id)
            self._unlink(node)
            del self._index[patient_id]
            return node.record

    def treat_next(self) -> Optional[PatientRecord]:
        """Pop the highest-priority patient. Returns None when empty."""
        with self._lock:
            record = self._heap.pop()
            if record is None:
                return None

            node = self._index.pop(record.id)
            self._unlink(node)
            return record

    def restore(
        self,
        patient_id: PatientId,
        name: str,
        severity: int,
        arrival_time: datetime,
    ) -> PatientRecord:
        """
        Insert a patient with an explicit id and arrival time.

        Used when replaying a saved registry. Severity is still clamped, the
        name normalized and the id counter advanced past ``patient_id``.

        Raises:
            ValueError: If the id is not positive
            DuplicatePatientError: If the id is already registered
        """
        if patient_id < 1:
            raise ValueError(f"patient id must be positive, got {patient_id}")

        with self._lock:
            if patient_id in self._index:
                raise DuplicatePatientError(
                    f"Patient ID {patient_id} is already registered",
                    details={"patient_id": patient_id},
                )
            record = PatientRecord(
                id=patient_id,
                name=normalize_name(name),
                severity=clamp_severity(severity),
                arrival_time=arrival_time,
            )
            self._insert(record)
            self._next_id = max(self._next_id, patient_id + 1)
            return record

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def peek_next(self) -> Optional[PatientRecord]:
        """The patient ``treat_next`` would return, without removing it."""
        with self._lock:
            return self._heap.peek()

    def find_by_id(self, patient_id: PatientId) -> Optional[PatientRecord]:
        with self._lock:
            node = self._index.get(patient_id)
            return node.record if node else None

    def get_or_raise(self, patient_id: PatientId) -> PatientRecord:
        """Get a patient by id or raise PatientNotFoundError."""
        record = self.find_by_id(patient_id)
        if record is None:
            raise PatientNotFoundError(patient_id)
        return record

    def find_by_name(self, name: str) -> List[PatientRecord]:
        """All patients whose name matches case-insensitively, in arrival order."""
        wanted = normalize_name(name).casefold()
        with self._lock:
            return [r for r in self._iter_arrival() if r.name.casefold() == wanted]

    def list_by_arrival(self) -> List[PatientRecord]:
        with self._lock:
            return list(self._iter_arrival())

    def list_by_priority(self) -> List[PatientRecord]:
        with self._lock:
            return self._heap.ordered()

    def all_ids(self) -> Set[PatientId]:
        with self._lock:
            return set(self._index)

    def size(self) -> int:
        with self._lock:
            return len(self._index)

    def is_empty(self) -> bool:
        return self.size() == 0

    @property
    def next_id(self) -> PatientId:
        """Id the next ``add`` will assign."""
        with self._lock:
            return PatientId(self._next_id)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, patient_id: object) -> bool:
        with self._lock:
            return patient_id in self._index

    def verify_integrity(self) -> None:
        """
        Check that the three views agree.

        Raises:
            RegistryIntegrityError: Describing the first inconsistency found
        """
        with self._lock:
            arrival_ids: List[int] = []
            prev = None
            node = self._head
            while node is not None:
                if node.prev is not prev:
                    raise RegistryIntegrityError(
                        f"broken back-link at id {node.record.id}"
                    )
                if self._index.get(node.record.id) is not node:
                    raise RegistryIntegrityError(
                        f"index does not point at arrival node for id {node.record.id}"
                    )
                arrival_ids.append(node.record.id)
                prev = node
                node = node.next
            if prev is not self._tail:
                raise RegistryIntegrityError("tail does not match last arrival node")

            if len(arrival_ids) != len(set(arrival_ids)):
                raise RegistryIntegrityError("arrival list holds an id twice")

            index_ids = set(self._index)
            heap_ids = self._heap.ids()
            if set(arrival_ids) != index_ids or heap_ids != index_ids:
                raise RegistryIntegrityError(
                    "views disagree on membership",
                    details={
                        "arrival": sorted(arrival_ids),
                        "index": sorted(index_ids),
                        "heap": sorted(heap_ids),
                    },
                )

            problem = self._heap.check()
            if problem:
                raise RegistryIntegrityError(problem)

            if index_ids and self._next_id <= max(index_ids):
                raise RegistryIntegrityError(
                    f"next id {self._next_id} would collide with a registered id"
                )

    # -------------------------------------------------------------------------
    # Internal (lock held)
    # -------------------------------------------------------------------------

    def _add(self, name: str, severity: int) -> PatientId:
        record = PatientRecord(
            id=PatientId(self._next_id),
            name=normalize_name(name),
            severity=clamp_severity(severity),
            arrival_time=self._clock(),
        )
        self._next_id += 1
        self._insert(record)
        logger.debug("Patient added: id=%d, severity=%d", record.id, record.severity)
        return record.id

    def _insert(self, record: PatientRecord) -> None:
        node = _ArrivalNode(record)
        if self._tail is None:
            self._head = self._tail = node
        else:
            self._tail.next = node
            node.prev = self._tail
            self._tail = node
        self._index[record.id] = node
        self._heap.push(record)

    def _unlink(self, node: _ArrivalNode) -> None:
        if node.prev is not None:
            node.prev.next = node.next
        else:
            self._head = node.next
        if node.next is not None:
            node.next.prev = node.prev
        else:
            self._tail = node.prev
        node.prev = node.next = None

    def _iter_arrival(self) -> Iterator[PatientRecord]:
        node = self._head
        while node is not None:
            yield node.record
            node = node.next
