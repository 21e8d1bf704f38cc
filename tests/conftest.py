"""Pytest configuration and shared fixtures."""

import os

# Keep the module-level engine in memory and the todo integration off
os.environ.setdefault("ASSET_HUB_DATABASE_URL", "sqlite://")
os.environ.setdefault("ASSET_HUB_TODO_BASE_URL", "")
os.environ.setdefault("ASSET_HUB_TODO_TOKEN", "")

import pytest
from fastapi.testclient import TestClient

from assethub.core.config import Settings
from assethub.db.base import Base
from assethub.db.session import build_engine, build_session_factory


@pytest.fixture()
def engine():
    """Isolated in-memory SQLite engine with the full schema."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    """A session bound to the per-test engine."""
    session = build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture()
def todo_settings():
    """Settings with the todo integration configured."""
    return Settings(
        todo_base_url="https://todo.example.com/api",
        todo_token="secret-token",
        todo_link_base="https://assets.example.com",
        _env_file=None,
    )


@pytest.fixture()
def client(db_session):
    """TestClient sharing the test session, with notifications disabled."""
    from assethub.api.deps import get_db, get_notifier
    from assethub.api.main import app
    from assethub.services.notifications import NullNotificationPropagator

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = NullNotificationPropagator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def user_headers():
    return {"X-User-Id": "U1", "X-User-Name": "Alice"}


@pytest.fixture()
def approver_headers():
    return {"X-User-Id": "U2", "X-User-Name": "Bob"}
