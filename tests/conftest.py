"""
Pytest configuration and fixtures

Every test gets a fresh in-memory SQLite schema, a pinned clock and test
settings. The FastAPI dependencies are overridden so requests made through
``client`` hit the same session the test inspects.
"""
import os

# must be set before playearth modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from playearth.core.clock import FixedClock, get_clock
from playearth.core.config import Settings, get_settings
from playearth.core.db import Base, create_tables, enable_sqlite_savepoints, get_db
from playearth.core.security import create_access_token
from playearth.deps.services import get_feedback_limiter
from playearth.main import app
from playearth.models.action import ActionType
from playearth.models.quest import Quest
from playearth.services.feedback import FixedWindowLimiter


NOON_2025_06_15 = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    return eng


@pytest.fixture
def db_session(engine):
    create_tables(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        supabase_jwt_secret="test-jwt-secret",
        session_secret="test-session-secret",
        enc_master_key="test-master-key",
        strava_client_id="12345",
        strava_client_secret="strava-secret",
        strava_redirect_uri="http://testserver/api/strava/callback",
        resend_api_key=None,
        admin_email="admin@example.com",
        leaderboard_anonymize=False,
    )


@pytest.fixture
def clock():
    return FixedClock(NOON_2025_06_15)


@pytest.fixture
def client(db_session, settings, clock):
    limiter = FixedWindowLimiter(clock=clock)
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_feedback_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(settings):
    """Build an Authorization header for a user id (and optional email)."""

    def _headers(user_id="user-1", email=None):
        token = create_access_token(user_id, email=email, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def action_types(db_session):
    rows = [
        ActionType(id="repaired-item", title="Repaired Item", category="Waste", base_reward_credits=30),
        ActionType(id="refill-bottle", title="Refill Water Bottle", category="Waste", base_reward_credits=10),
        ActionType(id="tiny-step", title="Tiny Step", category="Energy", base_reward_credits=1),
        ActionType(id="retired", title="Retired Action", category="Energy", base_reward_credits=10, is_active=False),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {r.id: r for r in rows}


@pytest.fixture
def quests(db_session):
    rows = [
        Quest(id="park-cleanup", title="Local Park Cleanup", verification_type="photo", points=200),
        Quest(id="nature-walk", title="Nature Walk", verification_type="gps", points=50, min_duration_sec=900),
        Quest(id="energy-quiz", title="Energy Saver Sprint", verification_type="quiz", points=250),
        Quest(id="compost-setup", title="Compost Setup", verification_type="video", points=150),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {r.id: r for r in rows}
