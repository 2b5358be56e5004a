from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class UserRole(str, Enum):
    ENGINEER = "engineer"
    MANAGER = "manager"


class Seniority(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class User:
    """A registered person. Only engineers carry a capacity ceiling."""

    id: Optional[str]
    email: str
    name: str
    role: UserRole
    skills: List[str] = field(default_factory=list)
    seniority: Optional[Seniority] = None
    max_capacity: Optional[float] = None  # percentage points, engineers only
    department: Optional[str] = None

    @property
    def is_engineer(self) -> bool:
        return self.role == UserRole.ENGINEER


@dataclass(frozen=True)
class Project:
    id: Optional[str]
    name: str
    description: str
    start_date: date
    end_date: date
    team_size: int
    manager_id: str
    required_skills: List[str] = field(default_factory=list)
    status: ProjectStatus = ProjectStatus.PLANNING


@dataclass(frozen=True)
class Assignment:
    """
    One engineer committed to one project for a date range.

    `id` is None for a draft that has not been persisted yet.
    """

    id: Optional[str]
    engineer_id: str
    project_id: str
    allocation_percentage: float
    start_date: date
    end_date: date
    role: str
