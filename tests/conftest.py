import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from core.database import engine
from core.security import get_password_hash
from main import app
from models import Assignment, Branch, User, UserRole, Visit, VisitStatus

PASSWORD = "secret123"

USERS = [
    ("chr-1", "Alice Wonderland", "alice@hrview.com", UserRole.CHR, None, "E001", "Mumbai"),
    ("vhr-1", "Bob The Builder", "bob@hrview.com", UserRole.VHR, "chr-1", "E002", "Mumbai"),
    ("vhr-2", "Carol Danvers", "carol@hrview.com", UserRole.VHR, "chr-1", "E003", "Delhi"),
    ("zhr-1", "David Copperfield", "david@hrview.com", UserRole.ZHR, "vhr-1", "E004", "Pune"),
    ("zhr-2", "Eve Harrington", "eve@hrview.com", UserRole.ZHR, "vhr-1", "E005", "Nagpur"),
    ("zhr-3", "Frank Castle", "frank@hrview.com", UserRole.ZHR, "vhr-2", "E006", "Noida"),
    ("bhr-1", "Grace Hopper", "grace@hrview.com", UserRole.BHR, "zhr-1", "E007", "Pune"),
    ("bhr-2", "Hank Pym", "hank@hrview.com", UserRole.BHR, "zhr-1", None, "Pune"),
    ("bhr-3", "Ivy Pepper", "ivy@hrview.com", UserRole.BHR, "zhr-2", "E009", "Nagpur"),
    ("bhr-4", "Jack Sparrow", "jack@hrview.com", UserRole.BHR, "zhr-3", "E010", "Noida"),
]

BRANCHES = [
    ("branch-1", "North Star Branch", "New York", "Metro Tier A", "NY001"),
    ("branch-2", "Southern Cross Branch", "Los Angeles", "Metro Tier A", "LA001"),
    ("branch-3", "East Gate Branch", "Chicago", "Metro Tier B", "CH001"),
    ("branch-4", "West End Branch", "Houston", "Urban Tier A", "HO001"),
]

ASSIGNMENTS = [
    ("assign-1", "bhr-1", "branch-1"),
    ("assign-2", "bhr-1", "branch-2"),
    ("assign-3", "bhr-2", "branch-3"),
    ("assign-4", "bhr-3", "branch-4"),
]


def days_ago(n: int) -> date:
    return date.today() - timedelta(days=n)


@pytest.fixture(autouse=True)
def db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seeded(session):
    """The demo organisation with branches, assignments and three visits."""
    password_hash = get_password_hash(PASSWORD)
    for position, (user_id, name, email, role, reports_to, e_code, location) in enumerate(USERS):
        session.add(User(
            id=user_id, name=name, email=email, role=role, reports_to=reports_to,
            e_code=e_code, location=location, password_hash=password_hash,
            created_at=datetime(2024, 1, 1) + timedelta(minutes=position),
        ))
    session.commit()

    for branch_id, name, location, category, code in BRANCHES:
        session.add(Branch(id=branch_id, name=name, location=location, category=category, code=code))
    for assignment_id, bhr_id, branch_id in ASSIGNMENTS:
        session.add(Assignment(id=assignment_id, bhr_id=bhr_id, branch_id=branch_id))
    session.commit()

    session.add(Visit(
        id="visit-1", bhr_id="bhr-1", branch_id="branch-1", visit_date=days_ago(5),
        status=VisitStatus.SUBMITTED, hr_connect_conducted=True,
        hr_connect_employees_invited=10, hr_connect_participants=5,
        manning_percentage=95, attrition_percentage=5, cwt_cases=2,
        performance_level="Good", qual_aligned_conduct="yes", qual_abusive_language="no",
        additional_remarks="Discussed targets and morale.",
    ))
    session.add(Visit(
        id="visit-2", bhr_id="bhr-3", branch_id="branch-4", visit_date=days_ago(3),
        status=VisitStatus.SUBMITTED, hr_connect_conducted=False,
        manning_percentage=88, performance_level="Average", qual_aligned_conduct="no",
        additional_remarks='Staff asked about "flexi" shifts.',
    ))
    session.add(Visit(
        id="visit-3", bhr_id="bhr-1", branch_id="branch-2", visit_date=days_ago(1),
        status=VisitStatus.DRAFT, additional_remarks="Draft notes",
    ))
    session.commit()
    return session


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def login(client):
    """Returns auth headers for the given email."""
    def _login(email: str):
        resp = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}
    return _login
