# File: tests/conftest.py

import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="uservoice-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/test.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALLOW_SELF_REGISTRATION"] = "true"
for key in ("SMTP_HOST", "RESEND_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE", "VAPID_PRIVATE_KEY", "EMAIL_REDIRECT_TO"):
    os.environ.pop(key, None)

import pytest
from fastapi.testclient import TestClient

from uservoice.core.config import settings
from uservoice.core.security import hash_password, make_tokens
from uservoice.db.base import Base
from uservoice.db.init_db import seed_defaults
from uservoice.db.session import SessionLocal, engine
from uservoice.main import app
from uservoice.models.project import Project, ProjectMember, ProjectRole
from uservoice.models.request import Request, RequestStatus
from uservoice.models.user import User, UserRole

PASSWORD = "password123"
_password_hash = hash_password(PASSWORD)


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_defaults(db)
    finally:
        db.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def default_project(db):
    return db.query(Project).filter(Project.slug == settings.default_project_slug).one()


@pytest.fixture
def make_project(db):
    def _make(slug: str, name: str | None = None) -> Project:
        project = Project(name=name or slug.title(), slug=slug)
        db.add(project)
        db.commit()
        db.refresh(project)
        return project
    return _make


@pytest.fixture
def make_user(db, default_project):
    def _make(email: str, name: str, role: UserRole = UserRole.employee,
              project: Project | None = None, project_role: ProjectRole = ProjectRole.member,
              **fields) -> User:
        values = {"is_active": True, "is_verified": True}
        values.update(fields)
        user = User(email=email, name=name, role=role, hashed_password=_password_hash, **values)
        db.add(user)
        db.flush()
        if role != UserRole.super_admin:
            db.add(ProjectMember(project_id=(project or default_project).id, user_id=user.id, role=project_role))
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def headers():
    def _headers(user: User, project: Project | None = None) -> dict:
        out = {"Authorization": f"Bearer {make_tokens(user.email, user.role.value)['access_token']}"}
        if project is not None:
            out["X-Project-Id"] = str(project.id)
        return out
    return _headers


@pytest.fixture
def employee(make_user):
    return make_user("alice@company.com", "Alice Smith")


@pytest.fixture
def other_employee(make_user):
    return make_user("bob@company.com", "Bob Jones")


@pytest.fixture
def admin(make_user):
    return make_user("admin@company.com", "Admin User", role=UserRole.admin, project_role=ProjectRole.admin)


@pytest.fixture
def super_admin(make_user):
    return make_user("root@company.com", "Root Admin", role=UserRole.super_admin)


@pytest.fixture
def make_request(db, default_project):
    def _make(user: User, title: str = "Export reports to Excel", project: Project | None = None, **fields) -> Request:
        values = {
            "category": "new_feature",
            "priority": "medium",
            "status": RequestStatus.pending,
            "team": "Sales",
            "region": "EMEA",
        }
        values.update(fields)
        request = Request(project_id=(project or default_project).id, user_id=user.id, title=title, **values)
        db.add(request)
        db.commit()
        db.refresh(request)
        return request
    return _make
