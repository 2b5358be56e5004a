import os
from datetime import date

# Must be set before allocatr builds its settings and database engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOCK_BACKEND"] = "local"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from allocatr.api.auth import TokenVerifier
from allocatr.models.entities import Assignment, Project, Seniority, User, UserRole
from allocatr.storage.database import Base, SessionLocal, engine


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory database."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from allocatr.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def verifier():
    return TokenVerifier("test-secret")


@pytest.fixture
def manager():
    return User(
        id="mgr-1",
        email="maria@example.com",
        name="Maria Manager",
        role=UserRole.MANAGER,
    )


@pytest.fixture
def engineer():
    """Full-time engineer with default capacity."""
    return User(
        id="eng-1",
        email="ed@example.com",
        name="Ed Engineer",
        role=UserRole.ENGINEER,
        skills=["python", "react"],
        seniority=Seniority.MID,
        max_capacity=100,
    )


@pytest.fixture
def part_timer():
    """Engineer capped at 50%."""
    return User(
        id="eng-2",
        email="pat@example.com",
        name="Pat Parttime",
        role=UserRole.ENGINEER,
        skills=["go"],
        seniority=Seniority.SENIOR,
        max_capacity=50,
    )


@pytest.fixture
def project():
    return Project(
        id="proj-1",
        name="Billing Revamp",
        description="Rewrite billing service",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        required_skills=["python"],
        team_size=3,
        manager_id="mgr-1",
    )


@pytest.fixture
def spring_assignment():
    """60% from March 1 to June 30, 2024."""
    return Assignment(
        id="asg-1",
        engineer_id="eng-1",
        project_id="proj-1",
        allocation_percentage=60,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 6, 30),
        role="Backend developer",
    )


@pytest.fixture
def manager_headers(verifier, manager):
    return {"Authorization": f"Bearer {verifier.issue(manager.id, manager.role)}"}


@pytest.fixture
def engineer_headers(verifier, engineer):
    return {"Authorization": f"Bearer {verifier.issue(engineer.id, engineer.role)}"}
