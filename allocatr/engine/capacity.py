from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List

from allocatr.engine.conformance import compute_available_capacity, ranges_overlap
from allocatr.models.entities import Assignment, Project, User


@dataclass(frozen=True)
class CapacityReport:
    engineer_id: str
    name: str
    max_capacity: float
    allocated_capacity: float
    available_capacity: float
    upcoming: List[Assignment] = field(default_factory=list)


@dataclass(frozen=True)
class AvailabilityReport:
    engineer_id: str
    name: str
    max_capacity: float
    available_capacity: float
    assignments: List[Assignment] = field(default_factory=list)


def active_on(assignments: Iterable[Assignment], as_of: date) -> List[Assignment]:
    """Assignments whose range contains `as_of`."""
    return [a for a in assignments if a.start_date <= as_of <= a.end_date]


def build_capacity_report(engineer: User, assignments: Iterable[Assignment], as_of: date) -> CapacityReport:
    """
    Capacity snapshot for one engineer.

    `allocated_capacity` counts only assignments active on `as_of`;
    `upcoming` lists every assignment that has not ended yet, earliest first.
    """
    own = [a for a in assignments if a.engineer_id == engineer.id]
    max_capacity = engineer.max_capacity or 0
    available = compute_available_capacity(engineer.id, as_of, own, max_capacity)
    upcoming = sorted((a for a in own if a.end_date >= as_of), key=lambda a: a.start_date)
    return CapacityReport(
        engineer_id=engineer.id,
        name=engineer.name,
        max_capacity=max_capacity,
        allocated_capacity=max_capacity - available,
        available_capacity=available,
        upcoming=upcoming,
    )


def capacity_overview(
    engineers: Iterable[User], assignments: Iterable[Assignment], as_of: date
) -> Dict[str, CapacityReport]:
    """Capacity report per engineer id."""
    by_engineer: Dict[str, List[Assignment]] = {}
    for a in assignments:
        by_engineer.setdefault(a.engineer_id, []).append(a)
    return {
        e.id: build_capacity_report(e, by_engineer.get(e.id, []), as_of)
        for e in engineers
    }


def availability_for_window(
    engineer: User, assignments: Iterable[Assignment], start_date: date, end_date: date
) -> AvailabilityReport:
    """
    Capacity left over a window, counting every assignment that touches it.

    Uses the same inclusive overlap rule as the conformance check, so a
    window that would be rejected there never reports spare capacity here.
    """
    touching = sorted(
        (
            a for a in assignments
            if a.engineer_id == engineer.id
            and ranges_overlap(start_date, end_date, a.start_date, a.end_date)
        ),
        key=lambda a: a.start_date,
    )
    max_capacity = engineer.max_capacity or 0
    return AvailabilityReport(
        engineer_id=engineer.id,
        name=engineer.name,
        max_capacity=max_capacity,
        available_capacity=max_capacity - sum(a.allocation_percentage for a in touching),
        assignments=touching,
    )


def find_suitable_engineers(project: Project, engineers: Iterable[User]) -> List[User]:
    """Engineers holding at least one of the project's required skills."""
    required = set(project.required_skills)
    return [e for e in engineers if e.is_engineer and required & set(e.skills)]
