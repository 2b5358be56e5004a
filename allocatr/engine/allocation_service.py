"""
Assignment create/update/delete orchestration.

The service owns the read-validate-write sequence around the conformance
engine. Its collaborators are passed in explicitly:

- assignments: lookup of an engineer's assignments plus save/update/delete
- engineers: lookup of engineer records (for the capacity ceiling)
- locks: per-engineer critical sections (see allocatr.engine.locking)

Usage:
    service = AssignmentService(AssignmentRepository(db), UserRepository(db), locks)
    saved = service.create(draft)
"""

import logging
from dataclasses import replace
from datetime import date
from typing import List, Optional, Protocol

from allocatr.engine.conformance import ensure_conformance, validate_date_range
from allocatr.engine.errors import AssignmentNotFound, CapacityExceeded, EngineerNotFound
from allocatr.engine.locking import EngineerLocks, NullEngineerLocks
from allocatr.models.entities import Assignment, User

logger = logging.getLogger(__name__)

# Fields whose change puts an existing assignment back under the capacity check
CAPACITY_FIELDS = ("allocation_percentage", "start_date", "end_date")


class AssignmentStore(Protocol):
    def get_by_id(self, assignment_id: str) -> Optional[Assignment]: ...

    def list_for_engineer(self, engineer_id: str, exclude_id: Optional[str] = None) -> List[Assignment]: ...

    def save(self, assignment: Assignment) -> Assignment: ...

    # Must raise AssignmentNotFound when the row no longer exists
    def update(self, assignment: Assignment) -> Assignment: ...

    def delete(self, assignment_id: str) -> bool: ...


class EngineerLookup(Protocol):
    def get_engineer(self, engineer_id: str) -> Optional[User]: ...


class AssignmentService:
    def __init__(
        self,
        assignments: AssignmentStore,
        engineers: EngineerLookup,
        locks: Optional[EngineerLocks] = None,
    ):
        self.assignments = assignments
        self.engineers = engineers
        self.locks = locks or NullEngineerLocks()

    def _require_engineer(self, engineer_id: str) -> User:
        engineer = self.engineers.get_engineer(engineer_id)
        if engineer is None:
            raise EngineerNotFound(engineer_id)
        return engineer

    def _conform(self, candidate: Assignment) -> None:
        """Check the candidate against a fresh snapshot. Caller holds the engineer's lock."""
        # Re-read inside the lock so capacity edits made meanwhile are seen
        engineer = self._require_engineer(candidate.engineer_id)
        existing = self.assignments.list_for_engineer(candidate.engineer_id, exclude_id=candidate.id)
        try:
            result = ensure_conformance(candidate, existing, engineer.max_capacity or 0)
        except CapacityExceeded:
            logger.warning(
                f"Rejected {candidate.allocation_percentage}% for engineer {candidate.engineer_id} "
                f"from {candidate.start_date} to {candidate.end_date}"
            )
            raise
        logger.debug(
            f"Accepted engineer {candidate.engineer_id}: "
            f"{result.total_allocation}/{engineer.max_capacity} over {candidate.start_date}..{candidate.end_date}"
        )

    def _require_assignment(self, assignment_id: str) -> Assignment:
        current = self.assignments.get_by_id(assignment_id)
        if current is None:
            raise AssignmentNotFound(assignment_id)
        return current

    def create(self, draft: Assignment) -> Assignment:
        """
        Validate and persist a new assignment.

        Raises:
            EngineerNotFound: engineer missing or not an engineer
            InvalidRange: end_date not after start_date
            CapacityExceeded: overlapping allocations would exceed capacity
            AllocationBusy: engineer lock not acquired in time
        """
        self._require_engineer(draft.engineer_id)
        validate_date_range(draft.start_date, draft.end_date)
        candidate = replace(draft, id=None)
        with self.locks.hold(candidate.engineer_id):
            self._conform(candidate)
            saved = self.assignments.save(candidate)
        logger.info(f"Created assignment {saved.id} for engineer {saved.engineer_id}")
        return saved

    def update(
        self,
        assignment_id: str,
        allocation_percentage: Optional[float] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        role: Optional[str] = None,
    ) -> Assignment:
        """
        Apply a partial edit to an assignment.

        The capacity check runs only when allocation or dates change, and
        never counts the assignment's own stored state. The read, merge and
        write all happen under the engineer's lock; an assignment deleted
        before the write raises AssignmentNotFound rather than reappearing.
        """
        engineer_id = self._require_assignment(assignment_id).engineer_id
        changes = {
            "allocation_percentage": allocation_percentage,
            "start_date": start_date,
            "end_date": end_date,
            "role": role,
        }
        changes = {k: v for k, v in changes.items() if v is not None}

        with self.locks.hold(engineer_id):
            current = self._require_assignment(assignment_id)
            updated = replace(current, **changes)
            validate_date_range(updated.start_date, updated.end_date)
            if any(getattr(updated, f) != getattr(current, f) for f in CAPACITY_FIELDS):
                self._conform(updated)
            saved = self.assignments.update(updated)
        logger.info(f"Updated assignment {assignment_id}")
        return saved

    def delete(self, assignment_id: str) -> None:
        """Remove an assignment. Other assignments are not re-validated."""
        current = self._require_assignment(assignment_id)
        with self.locks.hold(current.engineer_id):
            if not self.assignments.delete(assignment_id):
                raise AssignmentNotFound(assignment_id)
        logger.info(f"Deleted assignment {assignment_id}")
