from datetime import datetime, time, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from timekeeper.db import Base, get_db
from timekeeper.main import app
from timekeeper.models.models import Department, Profile
from timekeeper.routes.attendance import current_timezone, get_now
from timekeeper.services.engine_config import EngineConfig


FROZEN_NOW = datetime(2024, 5, 9, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def seeded(db_session):
    support = Department(
        name="Support",
        shift_start_time=time(9, 0),
        shift_end_time=time(17, 0),
        grace_period_minutes=30,
    )
    db_session.add(support)
    db_session.flush()
    alice = Profile(full_name="Alice Archer", department_id=support.id)
    bob = Profile(full_name="Bob Baker", department_id=support.id)
    carol = Profile(full_name="Carol Cole", department_id=support.id, is_manually_absent=True)
    db_session.add_all([alice, bob, carol])
    db_session.commit()
    return {"department": support, "alice": alice, "bob": bob, "carol": carol}


@pytest.fixture
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_now] = lambda: FROZEN_NOW
    app.dependency_overrides[current_timezone] = lambda: "UTC"
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
