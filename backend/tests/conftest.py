"""
Shared fixtures: a fresh in-memory SQLite database per test, a session on it, a user factory,
and a TestClient whose get_db dependency points at the same database.
"""
import os

# Before any app import: settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["ADMIN_EMAILS"] = "root@example.com"

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import enable_sqlite_foreign_keys, get_db, init_db
from app.main import app
from app.models.project import Project, ProjectMember
from app.models.submission import Submission
from app.models.user import User
from app.services.auth import hash_password

PASSWORD = "secret123"
_counter = itertools.count(1)


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    enable_sqlite_foreign_keys(eng)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_password():
    """Plain password of every make_user user."""
    return PASSWORD


@pytest.fixture(scope="session")
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    def _make(name: str | None = None, role: str = "user") -> User:
        n = next(_counter)
        user = User(
            name=name or f"user{n}",
            email=f"user{n}@tests.example.com",
            password_hash=password_hash,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_project(db):
    """Project with its creator as admin member (same shape create_project produces)."""
    def _make(creator: User, title: str = "Project", members: tuple[User, ...] = ()) -> Project:
        project = Project(title=title, created_by=creator.id, status="active")
        db.add(project)
        db.flush()
        db.add(ProjectMember(project_id=project.id, user_id=creator.id, role="admin"))
        for m in members:
            db.add(ProjectMember(project_id=project.id, user_id=m.id, role="member"))
        db.commit()
        db.refresh(project)
        return project

    return _make


@pytest.fixture
def make_submission(db):
    def _make(project: Project, submitter: User, title: str = "Fix parser") -> Submission:
        submission = Submission(
            title=title,
            code_content="def parse(s):\n    return s.split()\n",
            project_id=project.id,
            submitted_by=submitter.id,
            status="pending",
        )
        db.add(submission)
        db.commit()
        db.refresh(submission)
        return submission

    return _make


@pytest.fixture
def client(session_factory):
    """TestClient with get_db overridden to the per-test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers():
    """Bearer header for a user, signed by the app's own TokenService."""
    def _headers(user: User) -> dict[str, str]:
        token = app.state.token_service.issue(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers
