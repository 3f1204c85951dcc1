# Cascade rules from property mutations onto matches and interests.
from __future__ import annotations

import random

from propswipe import models
from propswipe.services import interests, matching, propagation, registry


def listing(**overrides) -> dict:
    data = {"street": "3 Rodney Street", "city": "Liverpool", "rent_pcm": 800}
    data.update(overrides)
    return data


def match_for(db, property_id: str, renter_id: str) -> models.Match:
    interest = interests.create_interest(db, property_id, renter_id, {"name": renter_id})
    return matching.confirm_match(db, interest.id, rng=random.Random(3))


def test_relink_rewrites_vendor_and_vendor_messages(db):
    pid = registry.create_property(db, listing(), "vendorX")
    match = match_for(db, pid, "renterA")
    matching.send_message(db, match.id, "renterA", "Is parking included?")

    registry.unlink_property(db, pid, "vendorX")
    result = registry.link_property_to_vendor(db, pid, "vendorY")

    assert result.succeeded == 1 and result.failed == 0
    db.expire_all()
    m = matching.get_match(db, match.id)
    assert m.vendor_id == "vendorY"
    assert m.property_snapshot["vendor_id"] == "vendorY"
    vendor_msgs = [msg for msg in m.messages if msg.sender_role == "vendor"]
    assert len(vendor_msgs) == 1
    assert vendor_msgs[0].sender_id == "vendorY"
    # Renter authorship is never rewritten
    assert [msg.sender_id for msg in m.messages if msg.sender_role == "renter"] == ["renterA"]


def test_update_merges_into_snapshots(db):
    pid = registry.create_property(db, listing(), "vendorX")
    match = match_for(db, pid, "renterA")

    result = registry.update_property(db, pid, {"rent_pcm": 875, "description": "Newly painted"})

    assert result.succeeded == 1
    db.expire_all()
    snap = matching.get_match(db, match.id).property_snapshot
    assert snap["rent_pcm"] == 875
    assert snap["description"] == "Newly painted"
    assert snap["street"] == "3 Rodney Street"


def test_update_with_no_changes_touches_nothing(db):
    pid = registry.create_property(db, listing(), "vendorX")
    match_for(db, pid, "renterA")

    result = registry.update_property(db, pid, {"vendor_id": "vendorY"})

    assert result.succeeded == 0 and result.failed == 0


def test_cascade_failure_is_reported_and_does_not_block_others(db, monkeypatch):
    pid = registry.create_property(db, listing(), "vendorX")
    bad = match_for(db, pid, "renterA")
    good = match_for(db, pid, "renterB")
    bad_id, good_id = bad.id, good.id

    original = propagation._rewrite_vendor

    def flaky(match, vendor_id, vendor_name):
        if match.id == bad_id:
            raise RuntimeError("snapshot column locked")
        original(match, vendor_id, vendor_name)

    monkeypatch.setattr(propagation, "_rewrite_vendor", flaky)
    result = propagation.propagate_link(db, pid, "vendorY")

    assert result.succeeded == 1
    assert result.failed == 1
    assert not result.ok
    assert result.errors[0].match_id == bad_id
    assert "snapshot column locked" in result.errors[0].detail

    db.expire_all()
    assert matching.get_match(db, bad_id).vendor_id == "vendorX"
    assert matching.get_match(db, good_id).vendor_id == "vendorY"


def test_delete_is_reappliable(db):
    pid = registry.create_property(db, listing(), "vendorX")
    match_for(db, pid, "renterA")

    first = propagation.propagate_delete(db, pid)
    second = propagation.propagate_delete(db, pid)

    assert first.succeeded == 1
    assert second.succeeded == 0 and second.failed == 0


def test_delete_orphans_interests_instead_of_removing_them(db):
    pid = registry.create_property(db, listing(), "vendorX")
    interest = interests.create_interest(db, pid, "renterA", {"name": "A"})

    registry.delete_property(db, pid)

    db.expire_all()
    kept = interests.get_interest(db, interest.id)
    assert kept is not None
    assert kept.orphaned_at is not None
    assert kept.status == interests.PENDING


def test_partially_failed_delete_keeps_property_until_retry_finishes(db, monkeypatch):
    pid = registry.create_property(db, listing(), "vendorX")
    stuck = match_for(db, pid, "renterA")
    match_for(db, pid, "renterB")
    stuck_id = stuck.id

    original = propagation._delete_match

    def flaky(session, match):
        if match.id == stuck_id:
            raise RuntimeError("row locked")
        original(session, match)

    monkeypatch.setattr(propagation, "_delete_match", flaky)
    first = registry.delete_property(db, pid)

    assert first.succeeded == 1 and first.failed == 1
    db.expire_all()
    assert registry.get_property(db, pid) is not None
    assert [m.id for m in db.query(models.Match).filter(models.Match.property_id == pid)] == [stuck_id]

    monkeypatch.setattr(propagation, "_delete_match", original)
    retry = registry.delete_property(db, pid)

    assert retry.succeeded == 1 and retry.failed == 0
    assert db.query(models.Match).filter(models.Match.property_id == pid).count() == 0
    assert db.get(models.Property, pid) is None
