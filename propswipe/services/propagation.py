# Cascade rules that keep Match (and Interest) rows consistent with Property mutations.
# Invoked by the property registry only. Each dependent row is committed on its own so one
# bad record cannot block the rest; failures are rolled back, logged and reported.
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .. import models, schemas
from ..utils import utcnow

logger = logging.getLogger("propswipe.propagation")


def property_snapshot(prop: models.Property) -> dict:
    """JSON-safe copy of a property, denormalized onto matches."""
    return schemas.PropertyRead.model_validate(prop).model_dump(mode="json")


def _match_ids_for_property(db: Session, property_id: str) -> List[str]:
    rows = (
        db.query(models.Match.id)
        .filter(models.Match.property_id == property_id)
        .order_by(models.Match.created_at.asc(), models.Match.id.asc())
        .all()
    )
    return [row[0] for row in rows]


def _apply_each(
    db: Session,
    property_id: str,
    event: str,
    action: Callable[[Session, models.Match], None],
) -> schemas.CascadeResult:
    result = schemas.CascadeResult()
    # Ids are captured up front: a rollback expires loaded instances
    for match_id in _match_ids_for_property(db, property_id):
        try:
            match = db.get(models.Match, match_id)
            if match is None:
                # Removed concurrently; nothing left to propagate
                continue
            action(db, match)
            db.commit()
            result.succeeded += 1
        except Exception as exc:
            db.rollback()
            result.failed += 1
            result.errors.append(schemas.CascadeItemError(match_id=match_id, detail=str(exc)))
            logger.error(
                f"{event}.item_failed",
                extra={"property_id": property_id, "match_id": match_id, "error": str(exc)},
            )

    logger.info(
        event,
        extra={"property_id": property_id, "succeeded": result.succeeded, "failed": result.failed},
    )
    return result


def _rewrite_vendor(match: models.Match, vendor_id: str, vendor_name: Optional[str]) -> None:
    match.vendor_id = vendor_id
    if vendor_name:
        match.vendor_name = vendor_name
    # JSON columns are replaced, not mutated in place, so the change is tracked
    match.property_snapshot = {**(match.property_snapshot or {}), "vendor_id": vendor_id}
    for message in match.messages:
        if message.sender_role == "vendor" and message.sender_id != vendor_id:
            message.sender_id = vendor_id


def propagate_link(
    db: Session,
    property_id: str,
    vendor_id: str,
    vendor_name: Optional[str] = None,
) -> schemas.CascadeResult:
    """
    Point every match of the property at the newly linked vendor.

    The new vendor inherits the historical renter interest and becomes the author of
    earlier vendor-side messages. Safe to re-apply.
    """
    return _apply_each(
        db,
        property_id,
        "propagation.link",
        lambda _db, match: _rewrite_vendor(match, vendor_id, vendor_name),
    )


def _merge_snapshot(match: models.Match, changes: Dict[str, object]) -> None:
    match.property_snapshot = {**(match.property_snapshot or {}), **changes}


def propagate_update(db: Session, property_id: str, changes: Dict[str, object]) -> schemas.CascadeResult:
    """Merge JSON-safe property field changes into each match's property snapshot."""
    if not changes:
        return schemas.CascadeResult()
    return _apply_each(
        db,
        property_id,
        "propagation.update",
        lambda _db, match: _merge_snapshot(match, changes),
    )


def _delete_match(db: Session, match: models.Match) -> None:
    db.delete(match)


def propagate_delete(db: Session, property_id: str) -> schemas.CascadeResult:
    """Remove every match of the property. Re-appliable: already-removed matches are skipped."""
    return _apply_each(db, property_id, "propagation.delete", _delete_match)


def orphan_interests(db: Session, property_id: str, now: Optional[datetime] = None) -> int:
    """
    Mark the property's interests as orphaned instead of deleting them.

    Orphaned interests stay queryable as history but are excluded from pending counts
    and can no longer be confirmed.
    """
    now = now or utcnow()
    try:
        count = (
            db.query(models.Interest)
            .filter(
                models.Interest.property_id == property_id,
                models.Interest.orphaned_at.is_(None),
            )
            .update({models.Interest.orphaned_at: now}, synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if count:
        logger.info("propagation.interests_orphaned", extra={"property_id": property_id, "count": count})
    return count
