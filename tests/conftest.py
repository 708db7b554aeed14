"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from themis.api.deps import get_db
from themis.api.main import app
from themis.core.rbac import Actor, Role
from themis.db.base import Base
from themis.db.session import enable_sqlite_savepoints
import themis.db.models  # noqa: F401


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Database session bound to the in-memory engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def client(db_session):
    """API client using the test database session."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project_manager():
    return Actor(user_id="pm-1", role=Role.PROJECT_MANAGER, department_id="eng")


@pytest.fixture
def sub_pmo():
    return Actor(user_id="sub-1", role=Role.SUB_PMO, department_id="eng")


@pytest.fixture
def main_pmo():
    return Actor(user_id="main-1", role=Role.MAIN_PMO)


@pytest.fixture
def developer():
    return Actor(user_id="dev-1", role=Role.DEVELOPER, department_id="eng")
