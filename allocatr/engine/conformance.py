"""
Capacity Conformance Engine

Decides whether a proposed or edited assignment can be committed without
pushing its engineer over their capacity ceiling.

The check is a date-range-overlap approximation of the per-day invariant:
every existing assignment whose range touches the candidate's range is
counted in full, regardless of how much of the range it actually shares.

Boundary policy:
    Ranges are compared inclusively on both ends, so an assignment ending on
    2024-06-30 overlaps one starting on 2024-06-30. This is stricter than
    half-open interval intersection and must stay that way.

Scope:
    Only the candidate is validated. Other assignments are not re-checked
    after the candidate is inserted.

All functions here are pure. They read the snapshot they are given and never
touch storage, so they are safe to call from any request context.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Union

from allocatr.engine.errors import CapacityExceeded, InvalidRange
from allocatr.models.entities import Assignment


@dataclass(frozen=True)
class Accepted:
    total_allocation: float
    accepted: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Rejected:
    conflicts: List[Assignment]
    total_allocation: float
    max_capacity: float
    accepted: bool = field(default=False, init=False)


ConformanceResult = Union[Accepted, Rejected]


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """
    Check whether two date ranges share at least one day.

    Both ends are inclusive: touching ranges overlap.

    Complexity: O(1)
    """
    return start_a <= end_b and end_a >= start_b


def validate_date_range(start_date: date, end_date: date) -> None:
    """Raise InvalidRange unless end_date is strictly after start_date."""
    if end_date <= start_date:
        raise InvalidRange(start_date, end_date)


def find_overlapping(candidate: Assignment, existing: Iterable[Assignment]) -> List[Assignment]:
    """
    Select the existing assignments that overlap the candidate.

    The candidate's own identity is skipped so that an edited assignment
    is never compared against its stored previous state.

    Args:
        candidate: Assignment being created, or the post-edit state of one being updated
        existing: Assignments currently on file for the candidate's engineer

    Returns:
        Overlapping assignments in input order

    Complexity: O(n) where n = existing assignments
    """
    return [
        a for a in existing
        if (candidate.id is None or a.id != candidate.id)
        and a.engineer_id == candidate.engineer_id
        and ranges_overlap(candidate.start_date, candidate.end_date, a.start_date, a.end_date)
    ]


def validate_assignment(
    candidate: Assignment,
    existing: Iterable[Assignment],
    engineer_max_capacity: float,
) -> ConformanceResult:
    """
    Decide whether a candidate assignment fits within the engineer's capacity.

    Algorithm:
    1. Overlap filter: keep existing assignments with s1 <= e2 and e1 >= s2
    2. Aggregate: sum their allocations plus the candidate's own
    3. Conform: accept when the sum is within capacity

    On rejection the complete overlapping set is reported, not only the
    assignments that tipped the sum over. The set is empty when the
    candidate alone exceeds capacity.

    Args:
        candidate: Assignment being created or the post-edit state of one being updated
        existing: Other assignments of the same engineer
        engineer_max_capacity: Capacity ceiling in percentage points

    Returns:
        Accepted or Rejected

    Complexity: O(n) where n = existing assignments
    """
    overlapping = find_overlapping(candidate, existing)
    total = candidate.allocation_percentage + sum(a.allocation_percentage for a in overlapping)

    if total <= engineer_max_capacity:
        return Accepted(total_allocation=total)
    return Rejected(conflicts=overlapping, total_allocation=total, max_capacity=engineer_max_capacity)


def ensure_conformance(
    candidate: Assignment,
    existing: Iterable[Assignment],
    engineer_max_capacity: float,
) -> Accepted:
    """Same as validate_assignment, but raises CapacityExceeded on rejection."""
    result = validate_assignment(candidate, existing, engineer_max_capacity)
    if isinstance(result, Rejected):
        raise CapacityExceeded(result.conflicts, result.total_allocation, result.max_capacity)
    return result


def compute_available_capacity(
    engineer_id: str,
    as_of: date,
    assignments: Iterable[Assignment],
    max_capacity: float,
) -> float:
    """
    Capacity left for an engineer on a given day.

    Sums the allocations of the engineer's assignments whose range contains
    `as_of` (inclusive both ends) and subtracts them from `max_capacity`.
    The result goes negative when existing data is already over-allocated.
    """
    allocated = sum(
        a.allocation_percentage
        for a in assignments
        if a.engineer_id == engineer_id and a.start_date <= as_of <= a.end_date
    )
    return max_capacity - allocated
