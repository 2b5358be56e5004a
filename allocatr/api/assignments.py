from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from allocatr.api.auth import Principal, get_current_user, require_manager
from allocatr.api.deps import get_assignment_repo, get_assignment_service, get_project_repo, get_user_repo
from allocatr.engine.allocation_service import AssignmentService
from allocatr.engine.capacity import availability_for_window
from allocatr.engine.errors import (
    AllocationBusy,
    AllocationError,
    AssignmentNotFound,
    CapacityExceeded,
    EngineerNotFound,
    InvalidRange,
    ProjectNotFound,
)
from allocatr.models.entities import Assignment
from allocatr.storage.repositories import AssignmentRepository, ProjectRepository, UserRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class AssignmentDTO(BaseModel):
    id: str
    engineer_id: str
    project_id: str
    allocation_percentage: float
    start_date: date
    end_date: date
    role: str

    @classmethod
    def from_domain(cls, a: Assignment) -> "AssignmentDTO":
        return cls(
            id=a.id,
            engineer_id=a.engineer_id,
            project_id=a.project_id,
            allocation_percentage=a.allocation_percentage,
            start_date=a.start_date,
            end_date=a.end_date,
            role=a.role,
        )


class AssignmentCreateDTO(BaseModel):
    engineer_id: str
    project_id: str
    allocation_percentage: float = Field(..., ge=0, le=100)
    start_date: date
    end_date: date
    role: str = Field(..., min_length=1)

    @field_validator("role")
    @classmethod
    def strip_role(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("role must not be blank")
        return v

    def to_domain(self) -> Assignment:
        return Assignment(
            id=None,
            engineer_id=self.engineer_id,
            project_id=self.project_id,
            allocation_percentage=self.allocation_percentage,
            start_date=self.start_date,
            end_date=self.end_date,
            role=self.role,
        )


class AssignmentUpdateDTO(BaseModel):
    allocation_percentage: Optional[float] = Field(None, ge=0, le=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    role: Optional[str] = None

    @field_validator("role")
    @classmethod
    def strip_role(cls, v: Optional[str]) -> Optional[str]:
        # Blank role means "leave unchanged"
        if v is None:
            return v
        return v.strip() or None


class AvailabilityEntry(BaseModel):
    assignment_id: str
    project_id: str
    project_name: Optional[str] = None
    allocation: float
    start_date: date
    end_date: date


class AvailabilityResponse(BaseModel):
    engineer_id: str
    name: str
    max_capacity: float
    available_capacity: float
    assignments: List[AvailabilityEntry]


def http_error(exc: AllocationError) -> HTTPException:
    """Translate a domain error into the HTTP response the API promises."""
    if isinstance(exc, InvalidRange):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, CapacityExceeded):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "total_allocation": exc.total_allocation,
                "max_capacity": exc.max_capacity,
                "conflicts": [AssignmentDTO.from_domain(a).model_dump(mode="json") for a in exc.conflicts],
            },
        )
    if isinstance(exc, (EngineerNotFound, ProjectNotFound, AssignmentNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AllocationBusy):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/", response_model=List[AssignmentDTO], summary="List assignments")
def list_assignments(
    _: Principal = Depends(get_current_user),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    return [AssignmentDTO.from_domain(a) for a in assignments.list_all()]


@router.get("/engineer/{engineer_id}", response_model=List[AssignmentDTO], summary="Assignments of an engineer")
def list_for_engineer(
    engineer_id: str,
    _: Principal = Depends(get_current_user),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    return [AssignmentDTO.from_domain(a) for a in assignments.list_for_engineer(engineer_id)]


@router.get("/project/{project_id}", response_model=List[AssignmentDTO], summary="Assignments on a project")
def list_for_project(
    project_id: str,
    _: Principal = Depends(get_current_user),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    return [AssignmentDTO.from_domain(a) for a in assignments.list_for_project(project_id)]


@router.post("/", response_model=AssignmentDTO, status_code=201, summary="Create assignment")
def create_assignment(
    req: AssignmentCreateDTO,
    _: Principal = Depends(require_manager),
    projects: ProjectRepository = Depends(get_project_repo),
    service: AssignmentService = Depends(get_assignment_service),
):
    """
    Create an assignment after checking the engineer's capacity.

    Every existing assignment of the engineer that overlaps the requested
    range (boundary days included) is counted in full. The request is
    rejected when that total plus the new allocation exceeds the engineer's
    maximum capacity.

    **Error Handling:**
    - 400: end_date not after start_date
    - 404: unknown engineer or project
    - 409: capacity exceeded; `detail.conflicts` lists every overlapping assignment
    - 503: another write for the same engineer holds the lock
    """
    logger.info(
        f"Create assignment: engineer={req.engineer_id} project={req.project_id} "
        f"allocation={req.allocation_percentage}"
    )
    try:
        if projects.get_by_id(req.project_id) is None:
            raise ProjectNotFound(req.project_id)
        saved = service.create(req.to_domain())
    except AllocationError as exc:
        logger.warning(f"Assignment rejected: {exc}")
        raise http_error(exc)
    return AssignmentDTO.from_domain(saved)


@router.put("/{assignment_id}", response_model=AssignmentDTO, summary="Update assignment")
def update_assignment(
    assignment_id: str,
    req: AssignmentUpdateDTO,
    _: Principal = Depends(require_manager),
    service: AssignmentService = Depends(get_assignment_service),
):
    """
    Partially update an assignment.

    Changing the allocation or either date re-runs the capacity check; the
    assignment's own stored state is never counted against it.
    """
    logger.info(f"Update assignment {assignment_id}")
    try:
        saved = service.update(
            assignment_id,
            allocation_percentage=req.allocation_percentage,
            start_date=req.start_date,
            end_date=req.end_date,
            role=req.role,
        )
    except AllocationError as exc:
        logger.warning(f"Assignment update rejected: {exc}")
        raise http_error(exc)
    return AssignmentDTO.from_domain(saved)


@router.delete("/{assignment_id}", summary="Delete assignment")
def delete_assignment(
    assignment_id: str,
    _: Principal = Depends(require_manager),
    service: AssignmentService = Depends(get_assignment_service),
):
    try:
        service.delete(assignment_id)
    except AllocationError as exc:
        raise http_error(exc)
    return {"message": "Assignment deleted successfully"}


@router.get("/availability/{engineer_id}", response_model=AvailabilityResponse, summary="Engineer availability")
def engineer_availability(
    engineer_id: str,
    start_date: date = Query(..., description="Window start (inclusive)"),
    end_date: date = Query(..., description="Window end (inclusive)"),
    _: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repo),
    projects: ProjectRepository = Depends(get_project_repo),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    """Capacity left over a window, counting every assignment that touches it."""
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    engineer = users.get_engineer(engineer_id)
    if engineer is None:
        raise HTTPException(status_code=404, detail="Engineer not found")

    report = availability_for_window(engineer, assignments.list_for_engineer(engineer_id), start_date, end_date)
    names = {}
    for a in report.assignments:
        if a.project_id not in names:
            project = projects.get_by_id(a.project_id)
            names[a.project_id] = project.name if project else None

    return AvailabilityResponse(
        engineer_id=report.engineer_id,
        name=report.name,
        max_capacity=report.max_capacity,
        available_capacity=report.available_capacity,
        assignments=[
            AvailabilityEntry(
                assignment_id=a.id,
                project_id=a.project_id,
                project_name=names[a.project_id],
                allocation=a.allocation_percentage,
                start_date=a.start_date,
                end_date=a.end_date,
            )
            for a in report.assignments
        ],
    )
