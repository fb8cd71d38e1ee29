import os


# Ensure sensible defaults for tests before app import
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("OTP_MODE", "dev")
os.environ.setdefault("OTP_PURGE_POLL_SECS", "0")
os.environ.setdefault("SMS_PROVIDER", "log")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RL_EXEMPT_OTP", "true")
# Keep global rate limit generous; specific tests can override as needed
os.environ.setdefault("RL_LIMIT_PER_MINUTE_OVERRIDE", "100000")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import SessionLocal, session_scope  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with session_scope() as s:
        for table in reversed(Base.metadata.sorted_tables):
            s.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
