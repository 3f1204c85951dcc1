# Property registry: creation, partial updates, vendor linking rules and deletion.
from __future__ import annotations

import logging
import random

import pytest

from propswipe import models
from propswipe.errors import NotFoundError, OwnershipConflictError, OwnershipMismatchError, ValidationError
from propswipe.services import interests, matching, registry


def listing(**overrides) -> dict:
    data = {
        "street": "12 Bold Street",
        "city": "Liverpool",
        "postcode": "L1 4DS",
        "rent_pcm": 950,
        "deposit": 1100,
        "bedrooms": 2,
        "max_occupants": 3,
    }
    data.update(overrides)
    return data


def match_for(db, property_id: str, renter_id: str) -> models.Match:
    interest = interests.create_interest(db, property_id, renter_id, {"name": renter_id, "monthly_income": 3000})
    return matching.confirm_match(db, interest.id, rng=random.Random(7))


def test_create_property_blank_vendor_is_unclaimed(db):
    pid = registry.create_property(db, listing(), "")
    prop = registry.get_property(db, pid)
    assert prop.vendor_id is None
    assert not registry.is_claimed(prop)


def test_get_property_missing_raises_not_found(db):
    with pytest.raises(NotFoundError):
        registry.get_property(db, "nope")


def test_update_property_strips_vendor_change_and_logs(db, caplog):
    pid = registry.create_property(db, listing(), "vendorX")

    with caplog.at_level(logging.WARNING, logger="propswipe.registry"):
        registry.update_property(db, pid, {"rent_pcm": 1000, "vendor_id": "vendorY"})

    prop = registry.get_property(db, pid)
    assert prop.rent_pcm == 1000
    assert prop.vendor_id == "vendorX"
    assert any(r.getMessage() == "property.update_vendor_stripped" for r in caplog.records)


def test_update_property_missing_raises_not_found(db):
    with pytest.raises(NotFoundError):
        registry.update_property(db, "missing", {"rent_pcm": 10})


def test_update_property_can_clear_nullable_fields(db):
    pid = registry.create_property(db, listing(available_from="2026-03-01"), "vendorX")
    registry.update_property(db, pid, {"available_from": None})
    assert registry.get_property(db, pid).available_from is None


def test_link_is_idempotent(db):
    pid = registry.create_property(db, listing(), "")

    first = registry.link_property_to_vendor(db, pid, "vendorX")
    second = registry.link_property_to_vendor(db, pid, "vendorX")

    assert first.ok and second.ok
    assert registry.get_property(db, pid).vendor_id == "vendorX"


def test_link_to_other_vendor_conflicts_without_mutation(db):
    pid = registry.create_property(db, listing(), "vendorX")

    with pytest.raises(OwnershipConflictError):
        registry.link_property_to_vendor(db, pid, "vendorY")

    assert registry.get_property(db, pid).vendor_id == "vendorX"


def test_link_missing_property_raises_not_found(db):
    with pytest.raises(NotFoundError):
        registry.link_property_to_vendor(db, "missing", "vendorX")


def test_link_requires_vendor_id(db):
    pid = registry.create_property(db, listing(), "")
    with pytest.raises(ValidationError):
        registry.link_property_to_vendor(db, pid, "  ")


def test_unlink_by_non_owner_is_rejected(db):
    pid = registry.create_property(db, listing(), "vendorX")

    with pytest.raises(OwnershipMismatchError):
        registry.unlink_property(db, pid, "vendorY")

    assert registry.get_property(db, pid).vendor_id == "vendorX"


def test_unlink_leaves_matches_untouched(db):
    pid = registry.create_property(db, listing(), "vendorX")
    match = match_for(db, pid, "renterA")

    registry.unlink_property(db, pid, "vendorX")

    assert registry.get_property(db, pid).vendor_id is None
    db.expire_all()
    assert matching.get_match(db, match.id).vendor_id == "vendorX"


def test_delete_removes_only_that_propertys_matches(db):
    pid = registry.create_property(db, listing(), "vendorX")
    other = registry.create_property(db, listing(street="1 Hope Street"), "vendorX")
    match_for(db, pid, "renterA")
    match_for(db, pid, "renterB")
    kept = match_for(db, other, "renterA")

    result = registry.delete_property(db, pid)

    assert result.succeeded == 2 and result.failed == 0
    assert db.query(models.Match).filter(models.Match.property_id == pid).count() == 0
    assert matching.get_match(db, kept.id) is not None
    with pytest.raises(NotFoundError):
        registry.get_property(db, pid)


def test_list_properties_filters(db):
    registry.create_property(db, listing(), "vendorX")
    registry.create_property(db, listing(is_available=False), "vendorY")

    assert len(registry.list_properties(db)) == 2
    assert [p.vendor_id for p in registry.list_properties(db, vendor_id="vendorY")] == ["vendorY"]
    assert [p.vendor_id for p in registry.list_properties(db, available_only=True)] == ["vendorX"]
