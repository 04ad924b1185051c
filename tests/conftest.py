import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicops.auth.security import create_access_token
from clinicops.cache import cache
from clinicops.db import Base, get_db
from clinicops.main import app
from clinicops.models import models  # noqa: F401
from clinicops.services.users import create_user


_counter = itertools.count(1)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def make_user(session_factory):
    def _make(role="STAFF", position="NURSE", name=None, password="secret123"):
        n = next(_counter)
        session = session_factory()
        try:
            return create_user(session, f"user{n}@clinic.com", name or f"User {n}", password, role=role, position=position)
        finally:
            session.close()

    return _make


@pytest.fixture()
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture()
def staff(make_user):
    return make_user("STAFF", "NURSE", name="Staff Nurse")


@pytest.fixture()
def supervisor(make_user):
    return make_user("SUPERVISOR", "MANAGER", name="Supervisor")


@pytest.fixture()
def admin(make_user):
    return make_user("ADMIN", "ADMIN", name="Admin")
