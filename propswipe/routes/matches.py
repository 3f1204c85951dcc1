# Match endpoints: thread, viewing scheduling, tenancy and ratings.
# Only the two parties of a match can see or act on it; renters never see internal messages.
import random
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..errors import NotFoundError
from ..rate_limit import rate_limit
from ..services import matching
from .auth import actor_from_user, get_current_user, require_renter

router = APIRouter()


def get_match_rng(request: Request) -> random.Random:
    """Random source for welcome messages and legacy matching; seeded via MATCH_RANDOM_SEED."""
    return request.app.state.match_rng


def _load_match(db: Session, match_id: str, user: models.User) -> models.Match:
    match = matching.get_match(db, match_id)
    if match is None:
        raise NotFoundError("Match", match_id)
    if not matching.is_participant(match, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant of this match")
    return match


def _require_vendor_side(match: models.Match, user: models.User) -> None:
    if user.id != match.vendor_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the matched landlord can do this")


def _present(match: models.Match, user: models.User) -> schemas.MatchRead:
    view = schemas.MatchRead.model_validate(match)
    if user.id == match.renter_id:
        view.messages = [m for m in view.messages if not m.is_internal]
    return view


@router.get("/matches", response_model=List[schemas.MatchRead])
def list_matches(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return [_present(m, user) for m in matching.list_matches_for_user(db, user.id, user.role)]


@router.post(
    "/matches/check",
    response_model=schemas.CheckForMatchResponse,
    dependencies=[Depends(rate_limit("swipe"))],
)
def check_for_match(
    payload: schemas.CheckForMatchRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_renter),
    rng: random.Random = Depends(get_match_rng),
):
    """Legacy/demo random matching; the two-sided interest flow is the production path."""
    matched = matching.check_for_match(db, payload.property_id, actor_from_user(user), payload.profile, rng=rng)
    return schemas.CheckForMatchResponse(matched=matched)


@router.get("/matches/{match_id}", response_model=schemas.MatchRead)
def get_match(match_id: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return _present(_load_match(db, match_id, user), user)


@router.post(
    "/matches/{match_id}/messages",
    response_model=schemas.MessageRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def send_message(
    match_id: str,
    payload: schemas.MessageCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    match = _load_match(db, match_id, user)
    sender_role = matching.sender_role_for(match, actor_from_user(user))
    message = matching.send_message(
        db, match_id, user.id, payload.content, sender_role=sender_role, internal=payload.internal
    )
    if message is None:
        raise NotFoundError("Match", match_id)
    return message


@router.post("/matches/{match_id}/read", response_model=schemas.MatchRead)
def mark_read(match_id: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    match = _load_match(db, match_id, user)
    reader = "renter" if user.id == match.renter_id else "vendor"
    match = matching.mark_messages_as_read(db, match_id, reader=reader)
    if match is None:
        raise NotFoundError("Match", match_id)
    return _present(match, user)


@router.post("/matches/{match_id}/viewing-preference", response_model=schemas.MatchRead)
def set_viewing_preference(
    match_id: str,
    payload: schemas.ViewingPreferenceCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_renter),
):
    match = _load_match(db, match_id, user)
    match = matching.set_viewing_preference(db, match.id, payload)
    if match is None:
        raise NotFoundError("Match", match_id)
    return _present(match, user)


@router.post("/matches/{match_id}/viewing", response_model=schemas.MatchRead)
def confirm_viewing(
    match_id: str,
    payload: schemas.ViewingConfirm,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _require_vendor_side(_load_match(db, match_id, user), user)
    match = matching.confirm_viewing(db, match_id, payload.date_time)
    if match is None:
        raise NotFoundError("Match", match_id)
    return _present(match, user)


@router.post("/matches/{match_id}/tenancy", response_model=schemas.MatchRead)
def update_tenancy(
    match_id: str,
    payload: schemas.TenancyUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _require_vendor_side(_load_match(db, match_id, user), user)
    match = matching.update_tenancy_status(db, match_id, payload.status)
    if match is None:
        raise NotFoundError("Match", match_id)
    return _present(match, user)


@router.get("/viewings/upcoming", response_model=List[schemas.MatchRead])
def upcoming_viewings(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return [_present(m, user) for m in matching.get_upcoming_viewings(db, user.id)]


@router.post(
    "/ratings",
    response_model=schemas.RatingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def submit_rating(
    payload: schemas.RatingCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if payload.from_user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Ratings can only be submitted as yourself")
    return matching.submit_rating(db, payload)


@router.get("/ratings/summary", response_model=schemas.RatingsSummary)
def ratings_summary(
    user_id: str = Query(...),
    role: str = Query("renter", pattern="^(renter|landlord)$"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return matching.ratings_summary(db, user_id, role)
