# Interest ledger: one-sided renter interest awaiting the landlord's decision.
# Expiry is evaluated lazily by every query here; sweepers.py only does housekeeping.
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import InterestStateError
from ..locks import exclusive
from ..scoring import Scorer, compute_compatibility
from ..utils import as_utc, utcnow
from .registry import is_claimed

logger = logging.getLogger("propswipe.interests")

# Interests left unreviewed expire after this many days; configurable via INTEREST_TTL_DAYS.
INTEREST_TTL_DAYS = int(os.getenv("INTEREST_TTL_DAYS", "30"))

PENDING = "pending"
LANDLORD_LIKED = "landlord_liked"
LANDLORD_PASSED = "landlord_passed"
EXPIRED = "expired"
TERMINAL_STATUSES = (LANDLORD_LIKED, LANDLORD_PASSED, EXPIRED)


def is_expired(interest: models.Interest, now: Optional[datetime] = None) -> bool:
    """True when the interest is expired, or still pending past its expiry timestamp."""
    if interest.status == EXPIRED:
        return True
    if interest.status != PENDING:
        return False
    now = now or utcnow()
    expires_at = as_utc(interest.expires_at)
    return expires_at is not None and expires_at <= now


def expire_stale_interests(
    db: Session,
    now: Optional[datetime] = None,
    *,
    renter_id: Optional[str] = None,
    property_id: Optional[str] = None,
    landlord_id: Optional[str] = None,
) -> int:
    """
    Move pending interests past expires_at to 'expired'.

    Idempotent; optional filters narrow the sweep to the rows a query is about to read.
    Returns the number of rows transitioned.
    """
    now = now or utcnow()
    q = db.query(models.Interest).filter(
        models.Interest.status == PENDING,
        models.Interest.expires_at <= now,
    )
    if renter_id is not None:
        q = q.filter(models.Interest.renter_id == renter_id)
    if property_id is not None:
        q = q.filter(models.Interest.property_id == property_id)
    if landlord_id is not None:
        q = q.filter(models.Interest.landlord_id == landlord_id)

    try:
        count = q.update({models.Interest.status: EXPIRED}, synchronize_session=False)
        if count:
            db.commit()
    except Exception:
        db.rollback()
        raise

    if count:
        logger.info("interest.expired", extra={"count": count, "renter_id": renter_id, "property_id": property_id})
    return count


def get_interest(db: Session, interest_id: str) -> Optional[models.Interest]:
    return db.get(models.Interest, interest_id)


def _active_interest(db: Session, renter_id: str, property_id: str) -> Optional[models.Interest]:
    return (
        db.query(models.Interest)
        .filter(
            models.Interest.renter_id == renter_id,
            models.Interest.property_id == property_id,
            models.Interest.status != EXPIRED,
        )
        .order_by(models.Interest.interested_at.asc(), models.Interest.id.asc())
        .first()
    )


def create_interest(
    db: Session,
    property_id: str,
    renter_id: str,
    renter_profile: Union[schemas.RenterProfile, Dict[str, Any], None] = None,
    now: Optional[datetime] = None,
    scorer: Optional[Scorer] = None,
) -> Optional[models.Interest]:
    """
    Record a renter's interest in a property.

    Returns:
    - None when the property does not exist or has no vendor linked (nobody to notify)
    - the existing record when the renter already has a non-expired interest in the property
    - otherwise a new 'pending' interest with a compatibility score, expiring after INTEREST_TTL_DAYS
    """
    prop = db.get(models.Property, property_id)
    if prop is None or not is_claimed(prop):
        logger.info(
            "interest.not_applicable",
            extra={"property_id": property_id, "renter_id": renter_id, "exists": prop is not None},
        )
        return None

    if renter_profile is None:
        renter_profile = schemas.RenterProfile()
    elif isinstance(renter_profile, dict):
        renter_profile = schemas.RenterProfile.model_validate(renter_profile)
    scorer = scorer or compute_compatibility
    now = now or utcnow()

    # Single writer per (renter, property) so check-then-create cannot race across processes
    with exclusive(f"lock:interest:{renter_id}:{property_id}", f"interest {renter_id}/{property_id}"):
        expire_stale_interests(db, now, renter_id=renter_id, property_id=property_id)

        existing = _active_interest(db, renter_id, property_id)
        if existing is not None:
            logger.info(
                "interest.exists",
                extra={"interest_id": existing.id, "renter_id": renter_id, "property_id": property_id},
            )
            return existing

        score = scorer(renter_profile, prop)
        interest = models.Interest(
            renter_id=renter_id,
            landlord_id=prop.vendor_id,
            property_id=property_id,
            status=PENDING,
            compatibility_score=max(0, min(100, int(score.overall))),
            compatibility_breakdown=score.breakdown.model_dump(),
            compatibility_flags=list(score.flags),
            renter_profile=renter_profile.model_dump(mode="json"),
            interested_at=now,
            expires_at=now + timedelta(days=INTEREST_TTL_DAYS),
        )
        try:
            db.add(interest)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(interest)

    logger.info(
        "interest.created",
        extra={
            "interest_id": interest.id,
            "renter_id": renter_id,
            "landlord_id": interest.landlord_id,
            "property_id": property_id,
            "score": interest.compatibility_score,
        },
    )
    return interest


def _pending_for_landlord_query(db: Session, landlord_id: str):
    return (
        db.query(models.Interest)
        .join(models.Property, models.Property.id == models.Interest.property_id)
        .filter(
            models.Property.vendor_id == landlord_id,
            models.Interest.status == PENDING,
            models.Interest.orphaned_at.is_(None),
        )
    )


def get_pending_interests_count(db: Session, landlord_id: str, now: Optional[datetime] = None) -> int:
    """Pending, unexpired interests in properties currently linked to `landlord_id`."""
    expire_stale_interests(db, now)
    return _pending_for_landlord_query(db, landlord_id).count()


def list_interests_for_landlord(
    db: Session,
    landlord_id: str,
    status: Optional[str] = PENDING,
    now: Optional[datetime] = None,
) -> List[models.Interest]:
    """Interests in the landlord's properties, best compatibility first."""
    expire_stale_interests(db, now)
    if status == PENDING:
        q = _pending_for_landlord_query(db, landlord_id)
    else:
        q = (
            db.query(models.Interest)
            .join(models.Property, models.Property.id == models.Interest.property_id)
            .filter(models.Property.vendor_id == landlord_id)
        )
        if status is not None:
            q = q.filter(models.Interest.status == status)
    return q.order_by(
        models.Interest.compatibility_score.desc(),
        models.Interest.interested_at.asc(),
    ).all()


def list_interests_for_renter(db: Session, renter_id: str, now: Optional[datetime] = None) -> List[models.Interest]:
    expire_stale_interests(db, now, renter_id=renter_id)
    return (
        db.query(models.Interest)
        .filter(models.Interest.renter_id == renter_id)
        .order_by(models.Interest.interested_at.desc(), models.Interest.id.desc())
        .all()
    )


def ensure_pending(db: Session, interest: models.Interest, now: Optional[datetime] = None) -> None:
    """
    Raise InterestStateError unless the interest can still be reviewed.

    A pending interest found past its expiry is transitioned to 'expired' first.
    """
    if interest.status == PENDING and is_expired(interest, now):
        try:
            interest.status = EXPIRED
            db.add(interest)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("interest.expired", extra={"interest_id": interest.id, "count": 1})
    if interest.status != PENDING:
        raise InterestStateError(interest.id, interest.status)


def decline_interest(
    db: Session,
    interest_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[models.Interest]:
    """
    Landlord passes on a pending interest (terminal, never produces a match).

    Returns None when the interest does not exist; raises InterestStateError when it
    has already been reviewed or has expired.
    """
    interest = get_interest(db, interest_id)
    if interest is None:
        logger.info("interest.decline_missing", extra={"interest_id": interest_id})
        return None

    now = now or utcnow()
    with exclusive(f"lock:interest-review:{interest_id}", f"interest {interest_id}"):
        db.refresh(interest)
        ensure_pending(db, interest, now)
        try:
            interest.status = LANDLORD_PASSED
            interest.landlord_reviewed_at = now
            interest.landlord_notes = notes
            db.add(interest)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(interest)

    logger.info("interest.declined", extra={"interest_id": interest_id, "landlord_id": interest.landlord_id})
    return interest
