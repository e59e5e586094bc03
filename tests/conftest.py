# tests/conftest.py
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_SECRET = "k3Y!tests-only-9fQ2#mZ7@vL4&pR8*xW1^nB6"
TEST_DB_URL = "sqlite:///:memory:"

# api.server builds an app at import time from the environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("JWT_SECRET", TEST_SECRET)
os.environ.setdefault("DATABASE_URL", TEST_DB_URL)
os.environ.setdefault("COOKIE_SECURE", "false")

from api.auth import issue_token  # noqa: E402
from core.models import (  # noqa: E402
    Guardian,
    School,
    SchoolClass,
    Student,
    User,
    dispose_db_manager,
    get_db_manager,
)
from core.rbac import Role  # noqa: E402
from core.security import hash_password  # noqa: E402
from core.settings import Settings  # noqa: E402

PASSWORD = "correct horse battery staple"


@pytest.fixture
def settings():
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url=TEST_DB_URL,
        cookie_secure=False,
        verify_timeout_seconds=2.0,
    )


@pytest.fixture
def db_manager():
    """Fresh in-memory database shared by the app and the test."""
    manager = get_db_manager(TEST_DB_URL, reset=True)
    yield manager
    manager.drop_tables()
    dispose_db_manager()


@pytest.fixture
def seeded(db_manager):
    """Two schools with classes, students and guardians, and one user per role."""
    password_hash = hash_password(PASSWORD, rounds=4)
    with db_manager.get_session_context() as session:
        session.add_all(
            [
                School(id="school-1", name="Hillside Primary", address="1 Hill Rd"),
                School(id="school-2", name="Riverside High", address="2 River Rd"),
            ]
        )
        session.flush()
        session.add_all(
            [
                User(id="u-global", email="root@example.com", role=Role.GLOBAL_ADMIN.value,
                     password_hash=password_hash),
                User(id="u-admin1", email="admin1@example.com", role=Role.TENANT_ADMIN.value,
                     tenant_id="school-1", password_hash=password_hash),
                User(id="u-staff1", email="teacher1@example.com", role=Role.STAFF.value,
                     tenant_id="school-1", password_hash=password_hash),
                User(id="u-inactive", email="gone@example.com", role=Role.STAFF.value,
                     tenant_id="school-1", password_hash=password_hash, active=False),
                User(id="u-staff2", email="teacher2@example.com", role=Role.STAFF.value,
                     tenant_id="school-2", password_hash=password_hash),
            ]
        )
        session.flush()
        session.add_all(
            [
                SchoolClass(id="class-1a", tenant_id="school-1", name="Grade 4 A", grade="4",
                            section="A", capacity=30, teacher_id="u-staff1"),
                SchoolClass(id="class-1b", tenant_id="school-1", name="Grade 5 B", grade="5",
                            section="B", capacity=25),
                SchoolClass(id="class-2a", tenant_id="school-2", name="Grade 4 A", grade="4",
                            section="A", capacity=30, teacher_id="u-staff2"),
            ]
        )
        session.flush()
        ada = Student(id="stu-1a", tenant_id="school-1", class_id="class-1a",
                      first_name="Ada", last_name="Banda", grade_level="4")
        chi = Student(id="stu-2a", tenant_id="school-2", class_id="class-2a",
                      first_name="Chi", last_name="Mwale", grade_level="4")
        session.add_all(
            [
                ada,
                Student(id="stu-1b", tenant_id="school-1", first_name="Ben", last_name="Phiri",
                        active=False),
                chi,
            ]
        )
        session.flush()
        session.add_all(
            [
                Guardian(id="g-1", tenant_id="school-1", first_name="Grace", last_name="Banda",
                         email="grace@example.com", students=[ada]),
                Guardian(id="g-2", tenant_id="school-2", first_name="Hugo", last_name="Mwale",
                         email="hugo@example.com", students=[chi]),
            ]
        )
    return db_manager


@pytest.fixture
def app(settings, db_manager):
    from api.server import create_app

    return create_app(settings)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app, follow_redirects=False) as c:
        yield c


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from api.routes.auth import limiter

    limiter.reset()
    yield


@pytest.fixture
def token_for(settings):
    """Issue a signed token for an arbitrary role/school."""

    def _token(role: Role, tenant_id=None, user_id="u-test", **kwargs):
        return issue_token(user_id, role, tenant_id, settings, **kwargs)

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(role: Role, tenant_id=None, user_id="u-test"):
        return {"Authorization": f"Bearer {token_for(role, tenant_id, user_id)}"}

    return _headers


@pytest.fixture
def password():
    return PASSWORD
