# Match engine: turns a confirmed interest (or, in legacy mode, a random roll) into a Match and
# owns the match lifecycle: message thread, viewing scheduling, tenancy status and ratings.
from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import AlreadyRatedError, InterestStateError, NotFoundError, ValidationError
from ..locks import exclusive
from ..message_rules import find_rent_bidding_phrases
from ..utils import as_utc, new_id, utcnow
from . import interests as interest_ledger
from .propagation import property_snapshot
from .registry import is_claimed, vendor_display_name

logger = logging.getLogger("propswipe.matching")

# Legacy/demo mode: chance that a like on a claimed property becomes a match
MATCH_PROBABILITY = 0.3

MAX_MESSAGE_LENGTH = 1000

LANDLORD_MESSAGE_TEMPLATES = (
    "Hi! Thanks for your interest in this property. I'd be happy to answer any questions you have.",
    "Hello! This property is still available. Would you like to arrange a viewing?",
    "Thanks for reaching out! The property has some great features. What would you like to know?",
    "Hi there! I'm pleased you're interested. When would be a good time for a viewing?",
    "Hello! Yes, this property is available. Feel free to ask any questions.",
)

# Tenancy only moves forward
TENANCY_ORDER = ("prospective", "active", "ended")


def get_match(db: Session, match_id: str) -> Optional[models.Match]:
    return db.get(models.Match, match_id)


def is_participant(match: models.Match, user_id: str) -> bool:
    return user_id in (match.renter_id, match.vendor_id)


def list_matches_for_user(db: Session, user_id: str, role: str) -> List[models.Match]:
    q = db.query(models.Match)
    if role == "renter":
        q = q.filter(models.Match.renter_id == user_id)
    else:
        q = q.filter(models.Match.vendor_id == user_id)
    return q.order_by(models.Match.created_at.desc(), models.Match.id.desc()).all()


def _renter_name(db: Session, renter_id: str, profile: Optional[Dict[str, Any]]) -> str:
    if profile and profile.get("name"):
        return profile["name"]
    user = db.get(models.User, renter_id)
    if user is not None and user.display_name:
        return user.display_name
    return "Renter"


def _append_message(
    match: models.Match,
    sender_id: str,
    sender_role: str,
    content: str,
    now: datetime,
    internal: bool = False,
) -> models.MatchMessage:
    """Append to the thread and keep unread counters in step; caller commits."""
    message = models.MatchMessage(
        id=new_id(),
        position=len(match.messages),
        sender_id=sender_id,
        sender_role=sender_role,
        content=content,
        read=False,
        is_internal=internal,
        created_at=now,
    )
    match.messages.append(message)
    if not internal:
        if sender_role in ("vendor", "agency"):
            match.unread_count = (match.unread_count or 0) + 1
        else:
            match.landlord_unread_count = (match.landlord_unread_count or 0) + 1
    match.last_message_at = now
    return message


def _build_match(
    db: Session,
    prop: models.Property,
    vendor_id: str,
    renter_id: str,
    rng: random.Random,
    now: datetime,
    *,
    renter_name: str,
    renter_profile: Optional[Dict[str, Any]],
    match_type: str,
    source_interest_id: Optional[str] = None,
) -> models.Match:
    match = models.Match(
        id=new_id(),
        property_id=prop.id,
        property_snapshot={**property_snapshot(prop), "vendor_id": vendor_id},
        vendor_id=vendor_id,
        vendor_name=vendor_display_name(db, vendor_id, prop),
        renter_id=renter_id,
        renter_name=renter_name,
        renter_profile=renter_profile,
        source_interest_id=source_interest_id,
        match_type=match_type,
        unread_count=0,
        landlord_unread_count=0,
        has_viewing_scheduled=False,
        tenancy_status="prospective",
        can_rate=False,
        has_renter_rated=False,
        has_landlord_rated=False,
    )
    # Seed the thread with one welcome message from the vendor side
    _append_message(match, vendor_id, "vendor", rng.choice(LANDLORD_MESSAGE_TEMPLATES), now)
    return match


def confirm_match(
    db: Session,
    interest_id: str,
    notes: Optional[str] = None,
    *,
    rng: random.Random,
    now: Optional[datetime] = None,
) -> Optional[models.Match]:
    """
    Landlord accepts a pending interest, producing a mutual match.

    Returns None when the interest does not exist. A retried confirm of an interest that
    already produced a match returns that match. Raises InterestStateError for declined,
    expired or orphaned interests and for properties that are no longer claimed,
    NotFoundError when the property has since been deleted.
    """
    interest = interest_ledger.get_interest(db, interest_id)
    if interest is None:
        logger.info("match.confirm_missing", extra={"interest_id": interest_id})
        return None

    if interest.status == interest_ledger.LANDLORD_LIKED and interest.created_match_id:
        existing = get_match(db, interest.created_match_id)
        if existing is not None:
            return existing

    # Serialize confirm/decline of the same interest across workers
    with exclusive(f"lock:interest-review:{interest_id}", f"interest {interest_id}"):
        db.refresh(interest)
        now = now or utcnow()
        interest_ledger.ensure_pending(db, interest, now)
        if interest.orphaned_at is not None:
            raise InterestStateError(interest.id, "orphaned")

        prop = db.get(models.Property, interest.property_id)
        if prop is None:
            raise NotFoundError("Property", interest.property_id)

        if not is_claimed(prop):
            logger.warning(
                "match.confirm_unclaimed",
                extra={"interest_id": interest_id, "property_id": prop.id, "landlord_id": interest.landlord_id},
            )
            raise InterestStateError(interest.id, "unclaimed")
        vendor_id = prop.vendor_id

        match = _build_match(
            db,
            prop,
            vendor_id,
            interest.renter_id,
            rng,
            now,
            renter_name=_renter_name(db, interest.renter_id, interest.renter_profile),
            renter_profile=interest.renter_profile,
            match_type="mutual",
            source_interest_id=interest.id,
        )
        try:
            db.add(match)
            interest.status = interest_ledger.LANDLORD_LIKED
            interest.landlord_reviewed_at = now
            interest.landlord_notes = notes
            interest.created_match_id = match.id
            db.add(interest)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(match)

    logger.info(
        "match.confirmed",
        extra={"match_id": match.id, "interest_id": interest_id, "vendor_id": vendor_id, "renter_id": match.renter_id},
    )
    return match


def check_for_match(
    db: Session,
    property_id: str,
    renter: schemas.Actor,
    renter_profile: Union[schemas.RenterProfile, Dict[str, Any], None] = None,
    *,
    rng: random.Random,
    now: Optional[datetime] = None,
) -> bool:
    """
    Legacy/demo matching: roll MATCH_PROBABILITY on a like.

    This does not represent the production two-sided flow (create_interest followed by
    confirm_match/decline_interest); it exists for demos and seeding. Unclaimed properties
    never match, so a renter can never match with nobody.
    """
    prop = db.get(models.Property, property_id)
    if prop is None:
        return False
    if not is_claimed(prop):
        logger.warning("match.unclaimed_property", extra={"property_id": property_id, "renter_id": renter.id})
        return False

    if rng.random() >= MATCH_PROBABILITY:
        return False

    if renter_profile is None and isinstance(renter.profile, schemas.RenterProfile):
        renter_profile = renter.profile
    if isinstance(renter_profile, schemas.RenterProfile):
        profile = renter_profile.model_dump(mode="json")
    else:
        profile = renter_profile

    now = now or utcnow()
    match = _build_match(
        db,
        prop,
        prop.vendor_id,
        renter.id,
        rng,
        now,
        renter_name=renter.name or _renter_name(db, renter.id, profile),
        renter_profile=profile,
        match_type="legacy",
    )
    try:
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "match.legacy_created",
        extra={"match_id": match.id, "property_id": property_id, "vendor_id": prop.vendor_id, "renter_id": renter.id},
    )
    return True


_PROFILE_TYPES = {
    "renter": schemas.RenterProfile,
    "landlord": schemas.LandlordProfile,
    "agency": schemas.AgencyProfile,
}


def actor_profile(actor: schemas.Actor):
    """The actor's role-tagged profile; a bare one for their role when none was supplied."""
    if actor.profile is not None:
        return actor.profile
    return _PROFILE_TYPES[actor.role](name=actor.name)


def sender_role_for(match: models.Match, actor: schemas.Actor) -> str:
    """
    Thread role the actor writes under on this match.

    Renters write as 'renter', landlords as 'vendor' and agencies as 'agency'. An agency
    may write on its own matches or on those of a landlord it manages.
    """
    profile = actor_profile(actor)
    if isinstance(profile, schemas.RenterProfile):
        if actor.id != match.renter_id:
            raise ValidationError("Only the matched renter can send renter messages")
        return "renter"
    if isinstance(profile, schemas.AgencyProfile):
        if actor.id != match.vendor_id and match.vendor_id not in profile.managed_landlord_ids:
            raise ValidationError("Agency does not manage the landlord of this match")
        return "agency"
    if actor.id != match.vendor_id:
        raise ValidationError("Only the matched vendor can send vendor messages")
    return "vendor"


def _resolve_sender_role(match: models.Match, sender_id: str, sender_role: Optional[str]) -> str:
    if sender_role is None:
        if sender_id == match.renter_id:
            return "renter"
        if sender_id == match.vendor_id:
            return "vendor"
        raise ValidationError("Sender is not a party to this match; an explicit sender role is required")

    if sender_role == "renter" and sender_id != match.renter_id:
        raise ValidationError("Only the matched renter can send renter messages")
    if sender_role == "vendor" and sender_id != match.vendor_id:
        raise ValidationError("Only the matched vendor can send vendor messages")
    if sender_role not in ("renter", "vendor", "agency"):
        raise ValidationError(f"Unsupported sender role: {sender_role}")
    return sender_role


def send_message(
    db: Session,
    match_id: str,
    sender_id: str,
    content: str,
    sender_role: Optional[str] = None,
    internal: bool = False,
    now: Optional[datetime] = None,
) -> Optional[models.MatchMessage]:
    """
    Append a message to the match thread.

    Returns None (no-op) when the match does not exist. Messages start unread and bump the
    recipient's unread counter; internal (agency-facing) messages are never shown to the renter.
    """
    match = get_match(db, match_id)
    if match is None:
        logger.info("match.message_missing_match", extra={"match_id": match_id, "sender_id": sender_id})
        return None

    role = _resolve_sender_role(match, sender_id, sender_role)

    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    if internal and role == "renter":
        raise ValidationError("Renters cannot send internal messages")
    if role in ("vendor", "agency"):
        phrases = find_rent_bidding_phrases(text)
        if phrases:
            raise ValidationError("Requesting rent above the advertised price is not allowed: " + ", ".join(phrases))

    try:
        message = _append_message(match, sender_id, role, text, now or utcnow(), internal=internal)
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(message)

    logger.info(
        "match.message_sent",
        extra={"match_id": match_id, "sender_id": sender_id, "sender_role": role, "internal": internal},
    )
    return message


def _in_renter_inbox(message: models.MatchMessage) -> bool:
    return message.sender_role in ("vendor", "agency") and not message.is_internal


def mark_messages_as_read(db: Session, match_id: str, reader: Optional[str] = None) -> Optional[models.Match]:
    """
    Mark messages read; None when the match is missing.

    `reader` is the side doing the reading: 'renter' clears the renter's inbox and
    `unread_count`, 'vendor' clears everything else and `landlord_unread_count`. Without
    a reader the whole thread is marked read and both counters are zeroed.
    """
    if reader not in (None, "renter", "vendor"):
        raise ValidationError(f"Unsupported reader: {reader}")

    match = get_match(db, match_id)
    if match is None:
        return None

    try:
        for message in match.messages:
            if message.read:
                continue
            if reader is None or (reader == "renter") == _in_renter_inbox(message):
                message.read = True
        if reader in (None, "renter"):
            match.unread_count = 0
        if reader in (None, "vendor"):
            match.landlord_unread_count = 0
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(match)
    return match


def describe_viewing_request(preference: schemas.ViewingPreferenceCreate) -> str:
    """Natural-language summary of a viewing request, posted into the match thread."""
    if preference.flexibility == "ASAP":
        body = "I'm available as soon as possible."
    elif preference.flexibility == "Flexible":
        slots = ", ".join(f"{slot.day_type} {slot.time_of_day.lower()}s" for slot in preference.preferred_times)
        body = "I'm flexible with times."
        if slots:
            body += f" {slots} work best for me."
    else:
        body = "I have specific times in mind."

    text = f"I'd like to schedule a viewing! {body}"
    if preference.additional_notes:
        text += f" {preference.additional_notes.strip()}"
    return text


def set_viewing_preference(
    db: Session,
    match_id: str,
    preference: Union[schemas.ViewingPreferenceCreate, Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Optional[models.Match]:
    """
    Attach the renter's viewing preference and post a system message summarizing it,
    so the landlord sees the request in the thread. None when the match is missing.
    """
    if isinstance(preference, dict):
        preference = schemas.ViewingPreferenceCreate.model_validate(preference)

    match = get_match(db, match_id)
    if match is None:
        return None

    now = now or utcnow()
    record = {
        "id": new_id(),
        "match_id": match.id,
        "renter_id": match.renter_id,
        "vendor_id": match.vendor_id,
        "property_id": match.property_id,
        "status": "pending",
        "created_at": now.isoformat(),
        **preference.model_dump(mode="json"),
    }
    try:
        match.viewing_preference = record
        _append_message(match, match.renter_id, "system", describe_viewing_request(preference), now)
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(match)

    logger.info("match.viewing_requested", extra={"match_id": match_id, "flexibility": preference.flexibility})
    return match


def confirm_viewing(db: Session, match_id: str, when: datetime) -> Optional[models.Match]:
    """
    Record a confirmed viewing. A prior preference is not required and past dates are
    accepted (retroactive data entry). None when the match is missing.
    """
    match = get_match(db, match_id)
    if match is None:
        return None

    when = as_utc(when)
    try:
        match.has_viewing_scheduled = True
        match.confirmed_viewing_date = when
        if match.viewing_preference and match.viewing_preference.get("status") == "pending":
            match.viewing_preference = {
                **match.viewing_preference,
                "status": "confirmed",
                "confirmed_date": when.isoformat(),
            }
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(match)

    logger.info("match.viewing_confirmed", extra={"match_id": match_id, "viewing_at": when.isoformat()})
    return match


def get_upcoming_viewings(db: Session, user_id: str, now: Optional[datetime] = None) -> List[models.Match]:
    now = now or utcnow()
    return (
        db.query(models.Match)
        .filter(
            (models.Match.renter_id == user_id) | (models.Match.vendor_id == user_id),
            models.Match.has_viewing_scheduled.is_(True),
            models.Match.confirmed_viewing_date > now,
        )
        .order_by(models.Match.confirmed_viewing_date.asc())
        .all()
    )


def update_tenancy_status(db: Session, match_id: str, status: str) -> Optional[models.Match]:
    """
    Move the tenancy forward (prospective -> active -> ended). Ending the tenancy makes
    the match eligible for ratings.
    """
    if status not in TENANCY_ORDER:
        raise ValidationError(f"Unknown tenancy status: {status}")

    match = get_match(db, match_id)
    if match is None:
        return None

    if TENANCY_ORDER.index(status) < TENANCY_ORDER.index(match.tenancy_status):
        raise ValidationError(f"Tenancy cannot move from {match.tenancy_status} back to {status}")

    try:
        match.tenancy_status = status
        if status == "ended":
            match.can_rate = True
        db.add(match)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(match)
    return match


def submit_rating(db: Session, data: Union[schemas.RatingCreate, Dict[str, Any]]) -> models.Rating:
    """
    Persist one party's rating of the other and flip that party's has_*_rated flag.

    Raises NotFoundError for an unknown match, ValidationError when the rater is not the
    party named by from_role or a score is outside 1-5, AlreadyRatedError on a second submission.
    """
    if isinstance(data, dict):
        try:
            data = schemas.RatingCreate.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid rating: {exc.error_count()} field error(s)") from exc

    match = get_match(db, data.match_id)
    if match is None:
        raise NotFoundError("Match", data.match_id)

    if data.from_role == "renter":
        if data.from_user_id != match.renter_id:
            raise ValidationError("Only the matched renter can rate as renter")
        if data.respect_for_property is not None:
            raise ValidationError("respect_for_property applies to landlord ratings of renters")
        already, to_user_id, to_role = match.has_renter_rated, match.vendor_id, "landlord"
    else:
        if data.from_user_id != match.vendor_id:
            raise ValidationError("Only the matched landlord can rate as landlord")
        if data.property_condition is not None:
            raise ValidationError("property_condition applies to renter ratings of landlords")
        already, to_user_id, to_role = match.has_landlord_rated, match.renter_id, "renter"

    if already:
        raise AlreadyRatedError(match.id, data.from_role)

    rating = models.Rating(
        id=new_id(),
        match_id=match.id,
        property_id=match.property_id,
        from_user_id=data.from_user_id,
        from_role=data.from_role,
        to_user_id=to_user_id,
        to_role=to_role,
        overall_score=data.overall_score,
        communication_score=data.communication,
        cleanliness_score=data.cleanliness,
        reliability_score=data.reliability,
        property_condition_score=data.property_condition,
        respect_for_property_score=data.respect_for_property,
        review=data.review,
        would_recommend=data.would_recommend,
    )
    try:
        db.add(rating)
        if data.from_role == "renter":
            match.has_renter_rated = True
        else:
            match.has_landlord_rated = True
        db.add(match)
        db.commit()
    except IntegrityError as exc:
        # Unique (match_id, from_role): a concurrent submission won the race
        db.rollback()
        raise AlreadyRatedError(match.id, data.from_role) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(rating)

    logger.info("match.rated", extra={"match_id": match.id, "from_role": data.from_role, "score": data.overall_score})
    return rating


def ratings_summary(db: Session, user_id: str, role: str) -> schemas.RatingsSummary:
    """Aggregate ratings received by a user; feeds the tenant-history scoring factor."""
    ratings = (
        db.query(models.Rating)
        .filter(models.Rating.to_user_id == user_id, models.Rating.to_role == role)
        .all()
    )
    if not ratings:
        return schemas.RatingsSummary()
    total = len(ratings)
    return schemas.RatingsSummary(
        total_ratings=total,
        average_overall_score=sum(r.overall_score for r in ratings) / total,
        would_recommend_percentage=sum(1 for r in ratings if r.would_recommend) / total * 100,
    )
