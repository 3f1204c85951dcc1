# Database wiring: engine, session factory and declarative base for the matching store.
from contextlib import contextmanager
from typing import Generator, Iterator
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Local development uses a SQLite file; staging/production point DATABASE_URL at MySQL or Postgres.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data.db")

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
    )

# expire_on_commit stays on so rolled-back or cascaded rows are re-read from the store
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator:
    """
    FastAPI dependency yielding one session per request; always closed afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Short-lived session for background jobs that run outside a request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
