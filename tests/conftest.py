"""
Shared pytest fixtures for all tests.

Provides an in-memory database, an HTTP client bound to it, default
users and a frozen clock. Builders live in factories.py.
"""

import os

# Test environment must be in place before the app modules read it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for _unset in (
    "RESEND_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "DODO_PAYMENTS_API_KEY",
    "DODO_PAYMENTS_WEBHOOK_SECRET",
    "ZOOM_ACCOUNT_ID",
    "ZOOM_CLIENT_ID",
    "ZOOM_CLIENT_SECRET",
    "ZOOM_WEBHOOK_SECRET_TOKEN",
    "GOOGLE_MAPS_API_KEY",
):
    os.environ[_unset] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from factories import NOW, make_admin, make_doctor, make_patient  # noqa: E402


# ============================================================================
# DATABASE & CLIENT
# ============================================================================


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin the service clock to NOW."""
    monkeypatch.setattr("app.shared.timeutils.utcnow", lambda: NOW)
    return NOW


# ============================================================================
# DEFAULT USERS
# ============================================================================


@pytest.fixture
def patient(db):
    return make_patient(db)


@pytest.fixture
def doctor(db):
    return make_doctor(db)


@pytest.fixture
def admin(db):
    return make_admin(db)
