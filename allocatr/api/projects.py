from dataclasses import replace
from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from allocatr.api.assignments import AssignmentDTO
from allocatr.api.auth import Principal, get_current_user, require_manager
from allocatr.api.deps import get_assignment_repo, get_project_repo, get_user_repo
from allocatr.engine.capacity import active_on, find_suitable_engineers
from allocatr.models.entities import Project, ProjectStatus
from allocatr.storage.repositories import AssignmentRepository, ProjectRepository, UserRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class ProjectDTO(BaseModel):
    id: str
    name: str
    description: str
    start_date: date
    end_date: date
    required_skills: List[str]
    team_size: int
    status: ProjectStatus
    manager_id: str

    @classmethod
    def from_domain(cls, p: Project) -> "ProjectDTO":
        return cls(
            id=p.id,
            name=p.name,
            description=p.description,
            start_date=p.start_date,
            end_date=p.end_date,
            required_skills=p.required_skills,
            team_size=p.team_size,
            status=p.status,
            manager_id=p.manager_id,
        )


class ProjectCreateDTO(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    required_skills: List[str] = []
    team_size: int = Field(..., ge=1)
    status: ProjectStatus = ProjectStatus.PLANNING

    @model_validator(mode="after")
    def validate_range(self):
        """Project must end after it starts."""
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    def to_domain(self, manager_id: str) -> Project:
        return Project(
            id=None,
            name=self.name.strip(),
            description=self.description.strip(),
            start_date=self.start_date,
            end_date=self.end_date,
            required_skills=[s.strip() for s in self.required_skills if s.strip()],
            team_size=self.team_size,
            status=self.status,
            manager_id=manager_id,
        )


class ProjectUpdateDTO(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    required_skills: Optional[List[str]] = None
    team_size: Optional[int] = Field(None, ge=1)
    status: Optional[ProjectStatus] = None


class SuitableEngineer(BaseModel):
    id: str
    name: str
    skills: List[str]


class ProjectCreatedResponse(BaseModel):
    project: ProjectDTO
    suitable_engineers: List[SuitableEngineer]


class ProjectDetailResponse(ProjectDTO):
    team_allocation: List[AssignmentDTO]


@router.get("/", response_model=List[ProjectDTO], summary="List projects")
def list_projects(
    _: Principal = Depends(get_current_user),
    projects: ProjectRepository = Depends(get_project_repo),
):
    return [ProjectDTO.from_domain(p) for p in projects.list_all()]


@router.get("/search/status/{status}", response_model=List[ProjectDTO], summary="Projects by status")
def search_by_status(
    status: ProjectStatus,
    _: Principal = Depends(get_current_user),
    projects: ProjectRepository = Depends(get_project_repo),
):
    return [ProjectDTO.from_domain(p) for p in projects.list_by_status(status)]


@router.get("/{project_id}", response_model=ProjectDetailResponse, summary="Get project with current team")
def get_project(
    project_id: str,
    _: Principal = Depends(get_current_user),
    projects: ProjectRepository = Depends(get_project_repo),
    assignments: AssignmentRepository = Depends(get_assignment_repo),
):
    project = projects.get_by_id(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    team = active_on(assignments.list_for_project(project_id), date.today())
    return ProjectDetailResponse(
        **ProjectDTO.from_domain(project).model_dump(),
        team_allocation=[AssignmentDTO.from_domain(a) for a in team],
    )


@router.post("/", response_model=ProjectCreatedResponse, status_code=201, summary="Create project")
def create_project(
    req: ProjectCreateDTO,
    manager: Principal = Depends(require_manager),
    projects: ProjectRepository = Depends(get_project_repo),
    users: UserRepository = Depends(get_user_repo),
):
    """Create a project owned by the calling manager and suggest engineers by skill."""
    saved = projects.save(req.to_domain(manager.user_id))
    suitable = find_suitable_engineers(saved, users.list_engineers())
    logger.info(f"Created project {saved.id}: {len(suitable)} suitable engineers")
    return ProjectCreatedResponse(
        project=ProjectDTO.from_domain(saved),
        suitable_engineers=[SuitableEngineer(id=e.id, name=e.name, skills=e.skills) for e in suitable],
    )


@router.put("/{project_id}", response_model=ProjectDTO, summary="Update project")
def update_project(
    project_id: str,
    req: ProjectUpdateDTO,
    _: Principal = Depends(require_manager),
    projects: ProjectRepository = Depends(get_project_repo),
):
    project = projects.get_by_id(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    updated = replace(project, **req.model_dump(exclude_none=True))
    if updated.end_date <= updated.start_date:
        raise HTTPException(status_code=422, detail="End date must be after start date")
    saved = projects.save(updated)
    logger.info(f"Updated project {project_id}")
    return ProjectDTO.from_domain(saved)


@router.delete("/{project_id}", summary="Delete project")
def delete_project(
    project_id: str,
    _: Principal = Depends(require_manager),
    projects: ProjectRepository = Depends(get_project_repo),
):
    if not projects.delete(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    logger.info(f"Deleted project {project_id}")
    return {"message": "Project deleted successfully"}
