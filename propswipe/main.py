# Application entrypoint: middleware, domain error mapping, startup routines and API routers.
import logging
import os
import random
import threading
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .db import Base, engine
from .errors import (
    AlreadyRatedError,
    BusyError,
    InterestStateError,
    NotFoundError,
    OwnershipConflictError,
    OwnershipMismatchError,
    PropSwipeError,
    ValidationError,
)
from .routes.auth import router as auth_router
from .routes.interests import router as interests_router
from .routes.matches import router as matches_router
from .routes.properties import router as properties_router
from .sweepers import sweep_expired_interests

logger = logging.getLogger("propswipe.app")


def _start_interest_sweeper(interval_seconds: int) -> None:
    """
    Daemon thread that expires stale pending interests every `interval_seconds`.

    Reads already apply expiry lazily, so a failed sweep is logged and retried next interval.
    """
    def _loop() -> None:
        while True:
            try:
                sweep_expired_interests()
            except Exception:
                logger.exception("sweeper.failed")
            time.sleep(interval_seconds)

    t = threading.Thread(target=_loop, name="interest-expiry-sweeper", daemon=True)
    t.start()


# Comma-separated CORS_ORIGINS; '*' maps to the dev origins since credentials are allowed
def _parse_cors_origins(env_value: str | None) -> list[str]:
    default_dev_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


def _match_rng() -> random.Random:
    seed = os.getenv("MATCH_RANDOM_SEED")
    return random.Random(int(seed)) if seed else random.Random()


app = FastAPI(title="PropSwipe API", version="0.1.0")
app.state.match_rng = _match_rng()
allow_list = _parse_cors_origins(os.getenv("CORS_ORIGINS"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors -> HTTP; services never raise HTTPException themselves
# First match wins: AlreadyRatedError is a ValidationError but reported as a conflict
_STATUS_FOR_ERROR = (
    (AlreadyRatedError, 409),
    (NotFoundError, 404),
    (OwnershipConflictError, 409),
    (OwnershipMismatchError, 403),
    (InterestStateError, 409),
    (ValidationError, 400),
    (BusyError, 429),
)


@app.exception_handler(PropSwipeError)
async def domain_error_handler(request: Request, exc: PropSwipeError) -> JSONResponse:
    status_code = next((code for kind, code in _STATUS_FOR_ERROR if isinstance(exc, kind)), 400)
    headers = None
    if isinstance(exc, BusyError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content={"detail": exc.message}, headers=headers)


@app.on_event("startup")
def on_startup() -> None:
    # Local SQLite gets tables created on boot; other databases are migrated with Alembic
    if os.getenv("DATABASE_URL", "sqlite:///./data.db").startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    interval = int(os.getenv("INTEREST_SWEEP_SECONDS", "300"))
    if interval > 0:
        _start_interest_sweeper(interval_seconds=interval)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(auth_router, prefix="", tags=["auth"])
app.include_router(properties_router, prefix="/api/v1", tags=["properties"])
app.include_router(interests_router, prefix="/api/v1", tags=["interests"])
app.include_router(matches_router, prefix="/api/v1", tags=["matches"])
