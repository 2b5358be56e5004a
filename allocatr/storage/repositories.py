import uuid
from dataclasses import replace
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from allocatr.engine.errors import AssignmentNotFound
from allocatr.models.entities import Assignment, Project, ProjectStatus, Seniority, User, UserRole
from allocatr.storage.database import AssignmentModel, ProjectModel, UserModel


def new_id() -> str:
    return uuid.uuid4().hex


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        model = self.db.query(UserModel).filter(UserModel.id == user_id).first()
        if not model:
            return None
        return self._model_to_user(model)

    def get_engineer(self, engineer_id: str) -> Optional[User]:
        user = self.get_by_id(engineer_id)
        if user is None or not user.is_engineer:
            return None
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        model = self.db.query(UserModel).filter(UserModel.email == email).first()
        if not model:
            return None
        return self._model_to_user(model)

    def list_engineers(self) -> List[User]:
        models = (
            self.db.query(UserModel)
            .filter(UserModel.role == UserRole.ENGINEER.value)
            .order_by(UserModel.name)
            .all()
        )
        return [self._model_to_user(m) for m in models]

    def search_by_skills(self, skills: Iterable[str]) -> List[User]:
        # Skills live in a JSON column; matching in Python keeps this portable
        wanted = set(skills)
        return [e for e in self.list_engineers() if wanted & set(e.skills)]

    def save(self, user: User) -> User:
        if user.id is None:
            user = replace(user, id=new_id())
        existing = self.db.query(UserModel).filter(UserModel.id == user.id).first()
        if existing:
            existing.email = user.email
            existing.name = user.name
            existing.role = user.role.value
            existing.skills = list(user.skills)
            existing.seniority = user.seniority.value if user.seniority else None
            existing.max_capacity = user.max_capacity
            existing.department = user.department
        else:
            model = UserModel(
                id=user.id,
                email=user.email,
                name=user.name,
                role=user.role.value,
                skills=list(user.skills),
                seniority=user.seniority.value if user.seniority else None,
                max_capacity=user.max_capacity,
                department=user.department,
            )
            self.db.add(model)
        self.db.commit()
        return user

    @staticmethod
    def _model_to_user(model: UserModel) -> User:
        return User(
            id=model.id,
            email=model.email,
            name=model.name,
            role=UserRole(model.role),
            skills=list(model.skills or []),
            seniority=Seniority(model.seniority) if model.seniority else None,
            max_capacity=model.max_capacity,
            department=model.department,
        )


class ProjectRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, project_id: str) -> Optional[Project]:
        model = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).first()
        if not model:
            return None
        return self._model_to_project(model)

    def list_all(self) -> List[Project]:
        models = self.db.query(ProjectModel).order_by(ProjectModel.start_date).all()
        return [self._model_to_project(m) for m in models]

    def list_by_status(self, status: ProjectStatus) -> List[Project]:
        models = (
            self.db.query(ProjectModel)
            .filter(ProjectModel.status == status.value)
            .order_by(ProjectModel.start_date)
            .all()
        )
        return [self._model_to_project(m) for m in models]

    def save(self, project: Project) -> Project:
        if project.id is None:
            project = replace(project, id=new_id())
        existing = self.db.query(ProjectModel).filter(ProjectModel.id == project.id).first()
        if existing:
            existing.name = project.name
            existing.description = project.description
            existing.start_date = project.start_date
            existing.end_date = project.end_date
            existing.required_skills = list(project.required_skills)
            existing.team_size = project.team_size
            existing.status = project.status.value
            existing.manager_id = project.manager_id
        else:
            model = ProjectModel(
                id=project.id,
                name=project.name,
                description=project.description,
                start_date=project.start_date,
                end_date=project.end_date,
                required_skills=list(project.required_skills),
                team_size=project.team_size,
                status=project.status.value,
                manager_id=project.manager_id,
            )
            self.db.add(model)
        self.db.commit()
        return project

    def delete(self, project_id: str) -> bool:
        deleted = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).delete()
        self.db.commit()
        return deleted > 0

    @staticmethod
    def _model_to_project(model: ProjectModel) -> Project:
        return Project(
            id=model.id,
            name=model.name,
            description=model.description,
            start_date=model.start_date,
            end_date=model.end_date,
            required_skills=list(model.required_skills or []),
            team_size=model.team_size,
            status=ProjectStatus(model.status),
            manager_id=model.manager_id,
        )


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, assignment_id: str) -> Optional[Assignment]:
        model = self.db.query(AssignmentModel).filter(AssignmentModel.id == assignment_id).first()
        if not model:
            return None
        return self._model_to_assignment(model)

    def list_all(self) -> List[Assignment]:
        models = self.db.query(AssignmentModel).order_by(AssignmentModel.start_date).all()
        return [self._model_to_assignment(m) for m in models]

    def list_for_engineer(self, engineer_id: str, exclude_id: Optional[str] = None) -> List[Assignment]:
        query = self.db.query(AssignmentModel).filter(AssignmentModel.engineer_id == engineer_id)
        if exclude_id is not None:
            query = query.filter(AssignmentModel.id != exclude_id)
        return [self._model_to_assignment(m) for m in query.order_by(AssignmentModel.start_date).all()]

    def list_for_project(self, project_id: str) -> List[Assignment]:
        models = (
            self.db.query(AssignmentModel)
            .filter(AssignmentModel.project_id == project_id)
            .order_by(AssignmentModel.start_date)
            .all()
        )
        return [self._model_to_assignment(m) for m in models]

    def save(self, assignment: Assignment) -> Assignment:
        if assignment.id is None:
            assignment = replace(assignment, id=new_id())
        existing = self.db.query(AssignmentModel).filter(AssignmentModel.id == assignment.id).first()
        if existing:
            existing.engineer_id = assignment.engineer_id
            existing.project_id = assignment.project_id
            existing.allocation_percentage = assignment.allocation_percentage
            existing.start_date = assignment.start_date
            existing.end_date = assignment.end_date
            existing.role = assignment.role
        else:
            model = AssignmentModel(
                id=assignment.id,
                engineer_id=assignment.engineer_id,
                project_id=assignment.project_id,
                allocation_percentage=assignment.allocation_percentage,
                start_date=assignment.start_date,
                end_date=assignment.end_date,
                role=assignment.role,
            )
            self.db.add(model)
        self.db.commit()
        return assignment

    def update(self, assignment: Assignment) -> Assignment:
        """Overwrite an existing row; a row deleted meanwhile is not recreated."""
        existing = self.db.query(AssignmentModel).filter(AssignmentModel.id == assignment.id).first()
        if not existing:
            raise AssignmentNotFound(assignment.id)
        existing.engineer_id = assignment.engineer_id
        existing.project_id = assignment.project_id
        existing.allocation_percentage = assignment.allocation_percentage
        existing.start_date = assignment.start_date
        existing.end_date = assignment.end_date
        existing.role = assignment.role
        self.db.commit()
        return assignment

    def delete(self, assignment_id: str) -> bool:
        deleted = self.db.query(AssignmentModel).filter(AssignmentModel.id == assignment_id).delete()
        self.db.commit()
        return deleted > 0

    @staticmethod
    def _model_to_assignment(model: AssignmentModel) -> Assignment:
        return Assignment(
            id=model.id,
            engineer_id=model.engineer_id,
            project_id=model.project_id,
            allocation_percentage=model.allocation_percentage,
            start_date=model.start_date,
            end_date=model.end_date,
            role=model.role,
        )
