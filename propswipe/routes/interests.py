# Interest endpoints: renters swipe right, landlords review what is pending.
# Confirming an interest is the only production path to a match.
import random
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..errors import NotFoundError
from ..rate_limit import rate_limit
from ..services import interests as ledger
from ..services import matching
from .auth import get_current_user, require_landlord, require_renter
from .matches import get_match_rng

router = APIRouter()


def _load_for_review(db: Session, interest_id: str, user: models.User) -> models.Interest:
    interest = ledger.get_interest(db, interest_id)
    if interest is None:
        raise NotFoundError("Interest", interest_id)
    prop = db.get(models.Property, interest.property_id)
    # The current vendor reviews; the recorded landlord only once the property is gone
    owner = prop.vendor_id if prop is not None else interest.landlord_id
    if owner != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the landlord for this interest")
    return interest


@router.post(
    "/interests",
    response_model=Optional[schemas.InterestRead],
    dependencies=[Depends(rate_limit("swipe"))],
)
def create_interest(
    payload: schemas.InterestCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_renter),
):
    """
    Record interest in a property.

    Returns the pending (or already existing) interest, or null when the listing has no
    landlord linked yet. 404 when the property does not exist.
    """
    profile = payload.profile
    if not profile.name and user.display_name:
        profile = profile.model_copy(update={"name": user.display_name})

    interest = ledger.create_interest(db, payload.property_id, user.id, profile)
    if interest is None and db.get(models.Property, payload.property_id) is None:
        raise NotFoundError("Property", payload.property_id)
    return interest


@router.get("/interests", response_model=List[schemas.InterestRead])
def list_interests(
    status_filter: Optional[str] = Query("pending", alias="status", description="Landlord view; 'all' for every status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if user.role == "renter":
        return ledger.list_interests_for_renter(db, user.id)
    wanted = None if status_filter == "all" else status_filter
    return ledger.list_interests_for_landlord(db, user.id, status=wanted)


@router.get("/interests/pending-count", response_model=schemas.PendingCount)
def pending_count(db: Session = Depends(get_db), user: models.User = Depends(require_landlord)):
    return schemas.PendingCount(landlord_id=user.id, pending=ledger.get_pending_interests_count(db, user.id))


@router.post(
    "/interests/{interest_id}/confirm",
    response_model=schemas.MatchRead,
    dependencies=[Depends(rate_limit("write"))],
)
def confirm_interest(
    interest_id: str,
    payload: Optional[schemas.InterestDecision] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_landlord),
    rng: random.Random = Depends(get_match_rng),
):
    _load_for_review(db, interest_id, user)
    match = matching.confirm_match(db, interest_id, notes=payload.notes if payload else None, rng=rng)
    if match is None:
        raise NotFoundError("Interest", interest_id)
    return match


@router.post(
    "/interests/{interest_id}/decline",
    response_model=schemas.InterestRead,
    dependencies=[Depends(rate_limit("write"))],
)
def decline_interest(
    interest_id: str,
    payload: Optional[schemas.InterestDecision] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_landlord),
):
    _load_for_review(db, interest_id, user)
    interest = ledger.decline_interest(db, interest_id, notes=payload.notes if payload else None)
    if interest is None:
        raise NotFoundError("Interest", interest_id)
    return interest
