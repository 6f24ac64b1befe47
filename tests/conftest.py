from __future__ import annotations

import copy

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import ghgi.core.redis as redis_mod
import ghgi.db.models  # noqa: F401
from ghgi.auth.deps import get_current_user
from ghgi.core.config import settings
from ghgi.db.base import Base
from ghgi.db.models.user import Role, User
from ghgi.db.session import enable_sqlite_foreign_keys, get_db
from ghgi.modules.forms import service as forms

YEAR = 2023

SAMPLE_FIELDS = [
    {"key": "fuel_type", "label": "Fuel Type", "type": "select", "required": True, "options": ["LPG", "Diesel"]},
    {"key": "annual_total_consumption", "label": "Annual Total Consumption", "type": "number", "required": True, "min": 0},
    {"key": "data_source_identifier", "label": "Data Source Identifier", "type": "text", "required": False},
    {"key": "date_transcribed", "label": "Date Transcribed / Date Sourced", "type": "date", "required": False},
]


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "")
    monkeypatch.setattr(redis_mod, "_client", None)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def _user(db, username: str, role: Role) -> User:
    # empty hash: login is never attempted with bcrypt in tests
    u = User(full_name=username.title(), username=username, password_hash="", role=role, is_active=True)
    db.add(u)
    db.commit()
    return u


@pytest.fixture()
def admin(db) -> User:
    return _user(db, "admin", Role.ADMIN)


@pytest.fixture()
def enumerator(db) -> User:
    return _user(db, "enum1", Role.ENUMERATOR)


@pytest.fixture()
def fields():
    return copy.deepcopy(SAMPLE_FIELDS)


@pytest.fixture()
def form_type(db):
    return forms.create_form_type(
        db,
        key="stat-comb-residential",
        name="Stat Comb-Residential Data",
        sector_key="stationary_combustion",
        description="Stationary combustion activity data (residential).",
    )


@pytest.fixture()
def schema(db, form_type, fields):
    return forms.create_schema_version(db, form_type.id, YEAR, fields, status="active")


@pytest.fixture()
def client(db, admin):
    from ghgi.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: admin
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def act_as(client):
    """Switch the user the API sees for the rest of the test."""
    from ghgi.main import app

    def _set(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _set
