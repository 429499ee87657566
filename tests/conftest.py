import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import stockledger.models  # noqa: F401,E402
from stockledger.core.config import settings  # noqa: E402
from stockledger.core.deps import get_db  # noqa: E402
from stockledger.db.base import Base  # noqa: E402
from stockledger.db.session import create_app_engine  # noqa: E402
from stockledger.main import app  # noqa: E402
from stockledger.routers.auth import login_rate_limiter  # noqa: E402


def _schema_session_factory(engine):
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _teardown(engine):
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def test_context(monkeypatch):
    """TestClient bound to a fresh in-memory database, plus its session factory."""
    monkeypatch.setattr(settings, "secret_key", "test-secret-key")
    engine = create_app_engine("sqlite://", poolclass=StaticPool)
    session_local = _schema_session_factory(engine)

    def session_override():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = session_override
    try:
        with TestClient(app) as client:
            yield client, session_local
    finally:
        app.dependency_overrides.pop(get_db, None)
        login_rate_limiter.clear()
        _teardown(engine)


@pytest.fixture()
def file_session_local(tmp_path):
    """File-backed SQLite, one connection per session, for multi-threaded tests."""
    engine = create_app_engine(f"sqlite:///{tmp_path / 'stockledger.db'}")
    yield _schema_session_factory(engine)
    _teardown(engine)
