"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one. Tables are created before each test and dropped
after, so every test starts clean.
"""

import os

# Must be set before the application settings are first read
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from usg_portal.api.deps import create_access_token
from usg_portal.main import app
from usg_portal.models import Base, User, UserRole
from usg_portal.models.base import get_db


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


def make_user(db, name="Student", email="student@usg.test", role=UserRole.STUDENT):
    user = User(name=name, email=email, role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """For tests that need more than one session, e.g. concurrent writers."""
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def admin_user(db_session):
    return make_user(
        db_session, name="Admin", email="admin@usg.test", role=UserRole.ADMIN
    )


@pytest.fixture
def student_user(db_session):
    return make_user(db_session)


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def student_headers(student_user):
    return {"Authorization": f"Bearer {create_access_token(student_user.id)}"}


@pytest.fixture
def client(db_session):
    """
    Provide a test client bound to the test session.

    get_db is overridden so the app uses the same session the
    test sees.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
