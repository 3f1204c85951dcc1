# Pytest configuration for the matching engine and API tests.
# Forces a local SQLite DB, disables Redis and the background sweeper, fixes the JWT secret.
import os
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("PROPSWIPE_JWT_SECRET", "test-secret")
os.environ.setdefault("INTEREST_SWEEP_SECONDS", "0")

import sys
# Make 'propswipe' importable when running pytest from the repo root without installing
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from propswipe.main import app  # noqa: E402
from propswipe.db import Base, SessionLocal, engine  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_db() -> Iterator[None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_db() -> Iterator[None]:
    """
    Function-level isolation: drop and recreate schema before each test.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db() -> Iterator:
    """
    Session for calling the matching core directly, closed after the test.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """
    FastAPI TestClient bound to the application for HTTP-level tests.
    """
    with TestClient(app) as c:
        yield c
