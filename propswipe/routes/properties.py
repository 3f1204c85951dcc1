# Property listing endpoints.
# Renters browse available listings; landlords and agencies manage and claim their own.
# Every mutation that touches matches returns the cascade report alongside the listing.
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..rate_limit import rate_limit
from ..services import registry
from .auth import get_current_user, require_landlord

router = APIRouter()


def _ensure_can_manage(prop: models.Property, user: models.User) -> None:
    # Unclaimed listings may be edited by any vendor-side user until someone links them
    if registry.is_claimed(prop) and prop.vendor_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to manage this property")


@router.get("/properties", response_model=List[schemas.PropertyRead])
def list_properties(
    mine: bool = Query(False, description="Only listings linked to the caller"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """
    List properties, newest first.

    Renters only see available listings; vendor-side users see everything, or their
    own listings with ?mine=true.
    """
    if user.role == "renter":
        return registry.list_properties(db, available_only=True)
    return registry.list_properties(db, vendor_id=user.id if mine else None)


@router.post(
    "/properties",
    response_model=schemas.PropertyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_property(
    payload: schemas.PropertyCreate,
    unclaimed: bool = Query(False, description="Create without linking it to the caller"),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_landlord),
):
    property_id = registry.create_property(db, payload, None if unclaimed else user.id)
    return registry.get_property(db, property_id)


@router.get("/properties/{property_id}", response_model=schemas.PropertyRead)
def get_property(property_id: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return registry.get_property(db, property_id)


@router.patch(
    "/properties/{property_id}",
    response_model=schemas.PropertyChangeResult,
    dependencies=[Depends(rate_limit("write"))],
)
def update_property(
    property_id: str,
    payload: schemas.PropertyUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_landlord),
):
    _ensure_can_manage(registry.get_property(db, property_id), user)
    cascade = registry.update_property(db, property_id, payload)
    return schemas.PropertyChangeResult(
        listing=schemas.PropertyRead.model_validate(registry.get_property(db, property_id)),
        cascade=cascade,
    )


@router.delete(
    "/properties/{property_id}",
    response_model=schemas.PropertyChangeResult,
    dependencies=[Depends(rate_limit("write"))],
)
def delete_property(property_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_landlord)):
    """The listing is returned (not yet deleted) when some matches could not be removed; retry to finish."""
    _ensure_can_manage(registry.get_property(db, property_id), user)
    cascade = registry.delete_property(db, property_id)
    if cascade.ok:
        return schemas.PropertyChangeResult(cascade=cascade)
    return schemas.PropertyChangeResult(
        listing=schemas.PropertyRead.model_validate(registry.get_property(db, property_id)),
        cascade=cascade,
    )


@router.post(
    "/properties/{property_id}/link",
    response_model=schemas.PropertyChangeResult,
    dependencies=[Depends(rate_limit("write"))],
)
def link_property(property_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_landlord)):
    """Claim the property for the caller; 409 when another vendor already holds it."""
    cascade = registry.link_property_to_vendor(db, property_id, user.id)
    return schemas.PropertyChangeResult(
        listing=schemas.PropertyRead.model_validate(registry.get_property(db, property_id)),
        cascade=cascade,
    )


@router.post(
    "/properties/{property_id}/unlink",
    response_model=schemas.PropertyRead,
    dependencies=[Depends(rate_limit("write"))],
)
def unlink_property(property_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_landlord)):
    registry.unlink_property(db, property_id, user.id)
    return registry.get_property(db, property_id)

