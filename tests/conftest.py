"""Shared pytest fixtures: in-memory database and API client."""

import os

os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["AUTH_COOKIE_SECURE"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_RESEND_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "development"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from photodrop.auth.config import get_auth_settings
from photodrop.database import get_db
from photodrop.metadata import Base


@pytest.fixture(autouse=True)
def _fresh_auth_settings():
    get_auth_settings.cache_clear()
    yield
    get_auth_settings.cache_clear()


@pytest.fixture
def test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return sessionmaker(bind=test_engine)


@pytest.fixture
def test_db(test_session_factory):
    session = test_session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_session_factory):
    from photodrop.api import app

    def _override_get_db():
        db = test_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
