from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from allocatr.api.auth import Principal, get_current_user, require_manager, require_manager_or_self
from allocatr.api.deps import get_assignment_repo, get_user_repo
from allocatr.config.settings import get_settings
from allocatr.engine.capacity import CapacityReport, build_capacity_report, capacity_overview
from allocatr.models.entities import Seniority, User, UserRole
from allocatr.storage.repositories import AssignmentRepository, UserRepository

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


class UserDTO(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    skills: List[str] = []
    seniority: Optional[Seniority] = None
    max_capacity: Optional[float] = None
    department: Optional[str] = None

    @classmethod
    def from_domain(cls, u: User) -> "UserDTO":
        return cls(
            id=u.id,
            email=u.email,
            name=u.name,
            role=u.role,
            skills=u.skills,
            seniority=u.seniority,
            max_capacity=u.max_capacity,
            department=u.department,
        )


class UserCreateDTO(BaseModel):
    email: str = Field(..., min_length=3)
    name: str = Field(..., min_length=1)
    role: UserRole
    skills: List[str] = []
    seniority: Optional[Seniority] = None
    max_capacity: Optional[float] = Field(None, ge=0, le=100)
    department: Optional[str] = None

    @model_validator(mode="after")
    def check_engineer_fields(self):
        """Engineers need a seniority; capacity falls back to the configured default."""
        if self.role == UserRole.ENGINEER:
            if self.seniority is None:
                raise ValueError("seniority is required for engineers")
            if self.max_capacity is None:
                self.max_capacity = settings.default_max_capacity
        return self

    def to_domain(self) -> User:
        return User(
            id=None,
            email=self.email.strip().lower(),
            name=self.name.strip(),
            role=self.role,
            skills=[s.strip() for s in self.skills if s.strip()],
            seniority=self.seniority,
            max_capacity=self.max_capacity if self.role == UserRole.ENGINEER else None,
            department=self.department.strip() if self.department else None,
        )


class UserUpdateDTO(BaseModel):
    name: Optional[str] = None
    skills: Optional[List[str]] = None
    seniority: Optional[Seniority] = None
    max_capacity: Optional[float] = Field(None, ge=0, le=100)
    department: Optional[str] = None


class CapacityAssignmentEntry(BaseModel):
    assignment_id: str
    project_id: str
    start_date: date
    end_date: date
    allocation: float


class CapacityResponse(BaseModel):
    engineer_id: str
    name: str
    max_capacity: float
    allocated_capacity: float
    available_capacity: float
    assignments: List[CapacityAssignmentEntry]

    @classmethod
    def from_report(cls, report: CapacityReport) -> "CapacityResponse":
        return cls(
            engineer_id=report.engineer_id,
            name=report.name,
            max_capacity=report.max_capacity,
            allocated_capacity=report.allocated_capacity,
            available_capacity=report.available_capacity,
            assignments=[
                CapacityAssignmentEntry(
                    assignment_id=a.id,
                    project_id=a.project_id,
                    start_date=a.start_date,
                    end_date=a.end_date,
                    allocation=a.allocation_percentage,
                )
                for a in report.upcoming
            ],
        )


@router.get("/", response_model=List[UserDTO], summary="List engineers")
def list_engineers(
    _: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repo),
):
    return [UserDTO.from_domain(u) for u in users.list_engineers()]


@router.post("/", response_model=UserDTO, status_code=201, summary="Register user profile")
def register_user(
    req: UserCreateDTO,
    _: Principal = Depends(require_manager),
    users: UserRepository = Depends(get_user_repo),
):
    """
    Register an engineer or manager profile.

    Credentials are managed by the token service; only the profile is stored.
    """
    user = req.to_domain()
    if users.get_by_email(user.email) is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    saved = users.save(user)
    logger.info(f"Registered {saved.role.value} {saved.id}")
    return UserDTO.from_domain(saved)


@router.get("/search/skills", response_model=List[UserDTO], summary="Search engineers by skill")
def search_by_skills(
    skills: str = Query("", description="Comma-separated skill names"),
    _: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repo),
):
    wanted = [s.strip() for s in skills.split(",") if s.strip()]
    if not wanted:
        raise HTTPException(status_code=400, detail="Skills parameter is required")
    return [UserDTO.from_domain(u) for u in users.search_by_skills(wanted)]


@router.get("/capacity/all", response_model=Dict[str, CapacityResponse], summary="Capacity of every engineer")
def all_capacity(
    _: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repo),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    reports = capacity_overview(users.list_engineers(), assignments.list_all(), date.today())
    return {eid: CapacityResponse.from_report(r) for eid, r in reports.items()}


@router.get("/{engineer_id}", response_model=UserDTO, summary="Get engineer")
def get_engineer(
    engineer_id: str,
    _: Principal = Depends(require_manager_or_self),
    users: UserRepository = Depends(get_user_repo),
):
    user = users.get_by_id(engineer_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Engineer not found")
    return UserDTO.from_domain(user)


@router.put("/{engineer_id}", response_model=UserDTO, summary="Update engineer profile")
def update_engineer(
    engineer_id: str,
    req: UserUpdateDTO,
    _: Principal = Depends(require_manager_or_self),
    users: UserRepository = Depends(get_user_repo),
):
    """
    Partially update a profile.

    Lowering `max_capacity` does not re-check existing assignments; it only
    tightens the limit applied to future assignment writes.
    """
    user = users.get_by_id(engineer_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Engineer not found")

    changes = req.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    if "skills" in changes:
        changes["skills"] = [s.strip() for s in changes["skills"] if s.strip()]
    if "max_capacity" in changes and not user.is_engineer:
        raise HTTPException(status_code=400, detail="Only engineers carry a capacity")

    saved = users.save(replace(user, **changes))
    logger.info(f"Updated profile {engineer_id}: {sorted(changes)}")
    return UserDTO.from_domain(saved)


@router.get("/{engineer_id}/capacity", response_model=CapacityResponse, summary="Current capacity of an engineer")
def engineer_capacity(
    engineer_id: str,
    _: Principal = Depends(require_manager_or_self),
    users: UserRepository = Depends(get_user_repo),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    engineer = users.get_engineer(engineer_id)
    if engineer is None:
        raise HTTPException(status_code=404, detail="Engineer not found")
    report = build_capacity_report(engineer, assignments.list_for_engineer(engineer_id), date.today())
    return CapacityResponse.from_report(report)
