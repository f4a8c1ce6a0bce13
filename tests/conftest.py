import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time, so these must be in place before stockbook is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "stockbook-test-secret")
os.environ.setdefault("AI_PROVIDER", "stub")

import stockbook.models  # noqa: E402,F401
from stockbook.core.config import settings  # noqa: E402
from stockbook.core.deps import get_db  # noqa: E402
from stockbook.core.rate_limit import login_rate_limiter  # noqa: E402
from stockbook.db.base import Base  # noqa: E402
from stockbook.main import app  # noqa: E402


@pytest.fixture()
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def test_context(session_local, monkeypatch):
    """A TestClient bound to a fresh in-memory database, plus the session factory behind it."""
    monkeypatch.setattr(settings, "secret_key", "stockbook-test-secret")
    monkeypatch.setattr(settings, "ai_provider", "stub")

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as client:
            yield client, session_local
    finally:
        app.dependency_overrides.clear()
        login_rate_limiter.clear()
