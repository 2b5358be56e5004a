from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from allocatr.config.settings import get_settings
from allocatr.engine.allocation_service import AssignmentService
from allocatr.engine.locking import EngineerLocks, build_engineer_locks
from allocatr.storage.database import get_db
from allocatr.storage.repositories import AssignmentRepository, ProjectRepository, UserRepository


@lru_cache(maxsize=1)
def get_engineer_locks() -> EngineerLocks:
    # Shared across requests; a per-request instance would serialize nothing
    return build_engineer_locks(get_settings())


def get_user_repo(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_project_repo(db: Session = Depends(get_db)) -> ProjectRepository:
    return ProjectRepository(db)


def get_assignment_repo(db: Session = Depends(get_db)) -> AssignmentRepository:
    return AssignmentRepository(db)


def get_assignment_service(
    assignments: AssignmentRepository = Depends(get_assignment_repo),
    users: UserRepository = Depends(get_user_repo),
    locks: EngineerLocks = Depends(get_engineer_locks),
) -> AssignmentService:
    return AssignmentService(assignments, users, locks)
