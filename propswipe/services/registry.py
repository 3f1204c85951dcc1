# Property registry: canonical listings and their vendor linkage.
# Ownership changes only through link/unlink; both trigger (or deliberately skip) match propagation.
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import NotFoundError, OwnershipConflictError, OwnershipMismatchError, ValidationError
from ..utils import is_blank
from . import propagation

logger = logging.getLogger("propswipe.registry")

# Columns that may legitimately be cleared through a partial update
NULLABLE_FIELDS = {"available_from", "max_occupants"}


def is_claimed(prop: models.Property) -> bool:
    return not is_blank(prop.vendor_id)


def get_property(db: Session, property_id: str) -> models.Property:
    prop = db.get(models.Property, property_id)
    if prop is None:
        raise NotFoundError("Property", property_id)
    return prop


def list_properties(db: Session, vendor_id: Optional[str] = None, available_only: bool = False) -> List[models.Property]:
    q = db.query(models.Property)
    if vendor_id is not None:
        q = q.filter(models.Property.vendor_id == vendor_id)
    if available_only:
        q = q.filter(models.Property.is_available.is_(True))
    return q.order_by(models.Property.created_at.desc(), models.Property.id.desc()).all()


def vendor_display_name(db: Session, vendor_id: str, prop: Optional[models.Property] = None) -> str:
    user = db.get(models.User, vendor_id)
    if user is not None and user.display_name:
        return user.display_name
    if prop is not None:
        return f"Vendor for {prop.street}"
    return vendor_id


def create_property(
    db: Session,
    data: Union[schemas.PropertyCreate, Dict[str, Any]],
    vendor_id: Optional[str],
) -> str:
    """
    Persist a new listing owned by `vendor_id` (blank means unclaimed) and return its id.
    """
    if isinstance(data, dict):
        data = schemas.PropertyCreate.model_validate(data)

    prop = models.Property(vendor_id=None if is_blank(vendor_id) else vendor_id, **data.model_dump())
    try:
        db.add(prop)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(prop)
    logger.info("property.created", extra={"property_id": prop.id, "vendor_id": prop.vendor_id})
    return prop.id


def update_property(
    db: Session,
    property_id: str,
    updates: Union[schemas.PropertyUpdate, Dict[str, Any]],
) -> schemas.CascadeResult:
    """
    Apply a partial update and refresh the property snapshot on existing matches.

    A vendor_id in the payload is stripped with a warning: ownership changes carry
    cascade obligations and must go through link_property_to_vendor/unlink_property.
    """
    prop = get_property(db, property_id)

    if isinstance(updates, dict):
        updates = schemas.PropertyUpdate.model_validate(updates)
    changes = updates.model_dump(exclude_unset=True)

    if "vendor_id" in changes:
        changes.pop("vendor_id")
        logger.warning(
            "property.update_vendor_stripped",
            extra={"property_id": property_id, "current_vendor_id": prop.vendor_id},
        )

    changes = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS}
    if not changes:
        return schemas.CascadeResult()

    try:
        for field, value in changes.items():
            setattr(prop, field, value)
        db.add(prop)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(prop)
    logger.info("property.updated", extra={"property_id": property_id, "fields": sorted(changes)})

    snapshot = propagation.property_snapshot(prop)
    return propagation.propagate_update(db, property_id, {k: snapshot[k] for k in changes})


def delete_property(db: Session, property_id: str) -> schemas.CascadeResult:
    """
    Hard-delete a property.

    Matches of the property are removed (best-effort, reported in the result); its
    interests are retained and marked orphaned. When any match could not be removed the
    property row is kept so a retried delete can finish the cascade.
    """
    get_property(db, property_id)

    result = propagation.propagate_delete(db, property_id)
    propagation.orphan_interests(db, property_id)

    if result.failed:
        logger.warning(
            "property.delete_incomplete",
            extra={"property_id": property_id, "matches_removed": result.succeeded, "matches_failed": result.failed},
        )
        return result

    prop = get_property(db, property_id)
    try:
        db.delete(prop)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "property.deleted",
        extra={"property_id": property_id, "matches_removed": result.succeeded, "matches_failed": result.failed},
    )
    return result


def link_property_to_vendor(db: Session, property_id: str, vendor_id: str) -> schemas.CascadeResult:
    """
    Claim an unclaimed property for `vendor_id`.

    Raises:
    - NotFoundError when the property does not exist
    - OwnershipConflictError when another vendor already holds it

    Linking to the current vendor succeeds without changing the property; the match
    cascade is re-applied so a retried call converges.
    """
    if is_blank(vendor_id):
        raise ValidationError("vendor_id is required to link a property")

    prop = get_property(db, property_id)

    if is_claimed(prop) and prop.vendor_id != vendor_id:
        logger.warning(
            "property.link_conflict",
            extra={"property_id": property_id, "current_vendor_id": prop.vendor_id, "requested_vendor_id": vendor_id},
        )
        raise OwnershipConflictError(property_id, prop.vendor_id, vendor_id)

    if prop.vendor_id == vendor_id:
        logger.info("property.link_noop", extra={"property_id": property_id, "vendor_id": vendor_id})
    else:
        try:
            prop.vendor_id = vendor_id
            db.add(prop)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("property.linked", extra={"property_id": property_id, "vendor_id": vendor_id})

    prop = get_property(db, property_id)
    return propagation.propagate_link(db, property_id, vendor_id, vendor_display_name(db, vendor_id, prop))


def unlink_property(db: Session, property_id: str, vendor_id: str) -> None:
    """
    Release a property held by `vendor_id`.

    Existing matches keep the outgoing vendor id so renters still see who they spoke to.
    """
    prop = get_property(db, property_id)

    if prop.vendor_id != vendor_id:
        logger.warning(
            "property.unlink_mismatch",
            extra={"property_id": property_id, "current_vendor_id": prop.vendor_id, "vendor_id": vendor_id},
        )
        raise OwnershipMismatchError(property_id, vendor_id)

    try:
        prop.vendor_id = None
        db.add(prop)
        db.commit()
    except Exception:
        db.rollback()
        raise

    retained = db.query(models.Match).filter(models.Match.property_id == property_id).count()
    logger.info(
        "property.unlinked",
        extra={"property_id": property_id, "vendor_id": vendor_id, "matches_retained": retained},
    )
