# Interest ledger: idempotent creation, the unclaimed guard, lazy expiry and landlord review.
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from propswipe import models, schemas
from propswipe.errors import BusyError, InterestStateError
from propswipe.services import interests, registry
from propswipe.sweepers import sweep_expired_interests
from propswipe.utils import as_utc

NOW = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)


def listing(**overrides) -> dict:
    data = {"street": "8 Falkner Square", "city": "Liverpool", "rent_pcm": 1000, "max_occupants": 2}
    data.update(overrides)
    return data


def renter(**overrides) -> schemas.RenterProfile:
    data = {"name": "Ada", "local_area": "Liverpool", "monthly_income": 3200}
    data.update(overrides)
    return schemas.RenterProfile(**data)


def test_create_interest_is_idempotent_per_pair(db):
    pid = registry.create_property(db, listing(), "vendorX")

    first = interests.create_interest(db, pid, "renterA", renter(), now=NOW)
    second = interests.create_interest(db, pid, "renterA", renter(), now=NOW + timedelta(hours=1))

    assert first.id == second.id
    assert db.query(models.Interest).filter_by(renter_id="renterA", property_id=pid).count() == 1


def test_create_interest_sets_pending_score_and_expiry(db):
    pid = registry.create_property(db, listing(), "vendorX")

    interest = interests.create_interest(db, pid, "renterA", renter(), now=NOW)

    assert interest.status == "pending"
    assert interest.landlord_id == "vendorX"
    assert 0 <= interest.compatibility_score <= 100
    assert interest.renter_profile["name"] == "Ada"
    assert as_utc(interest.expires_at) == NOW + timedelta(days=interests.INTEREST_TTL_DAYS)


def test_create_interest_on_unclaimed_or_missing_property_returns_none(db):
    pid = registry.create_property(db, listing(), "")

    assert interests.create_interest(db, pid, "renterA", renter()) is None
    assert interests.create_interest(db, "missing", "renterA", renter()) is None
    assert db.query(models.Interest).count() == 0


def test_injected_scorer_is_used(db):
    pid = registry.create_property(db, listing(), "vendorX")

    def fixed(profile, prop):
        breakdown = schemas.CompatibilityBreakdown(
            affordability=10, location=10, timing=10, property_fit=10, tenant_history=2
        )
        return schemas.CompatibilityScore(overall=42, breakdown=breakdown, flags=["custom"])

    interest = interests.create_interest(db, pid, "renterA", renter(), scorer=fixed)

    assert interest.compatibility_score == 42
    assert interest.compatibility_flags == ["custom"]


def test_busy_lock_surfaces_busy_error(db, monkeypatch):
    pid = registry.create_property(db, listing(), "vendorX")

    class HeldElsewhere:
        def set(self, *args, **kwargs):
            return None

    monkeypatch.setattr("propswipe.locks.get_redis", lambda: HeldElsewhere())

    with pytest.raises(BusyError):
        interests.create_interest(db, pid, "renterA", renter())


def test_pending_count_excludes_reviewed_and_expired(db):
    pid = registry.create_property(db, listing(), "vendorX")
    a = interests.create_interest(db, pid, "renterA", renter(), now=NOW)
    interests.create_interest(db, pid, "renterB", renter(), now=NOW)
    interests.create_interest(db, pid, "renterC", renter(), now=NOW - timedelta(days=40))

    interests.decline_interest(db, a.id, now=NOW)

    assert interests.get_pending_interests_count(db, "vendorX", now=NOW) == 1
    assert interests.get_pending_interests_count(db, "vendorY", now=NOW) == 0


def test_lazy_expiry_transitions_stale_interests(db):
    pid = registry.create_property(db, listing(), "vendorX")
    interest = interests.create_interest(db, pid, "renterA", renter(), now=NOW)

    later = NOW + timedelta(days=interests.INTEREST_TTL_DAYS + 1)
    assert interests.get_pending_interests_count(db, "vendorX", now=later) == 0

    db.expire_all()
    assert interests.get_interest(db, interest.id).status == "expired"


def test_expired_interest_allows_a_fresh_one(db):
    pid = registry.create_property(db, listing(), "vendorX")
    old = interests.create_interest(db, pid, "renterA", renter(), now=NOW)

    later = NOW + timedelta(days=interests.INTEREST_TTL_DAYS + 1)
    fresh = interests.create_interest(db, pid, "renterA", renter(), now=later)

    assert fresh.id != old.id
    assert fresh.status == "pending"


def test_sweeper_expires_and_is_idempotent(db):
    pid = registry.create_property(db, listing(), "vendorX")
    interests.create_interest(db, pid, "renterA", renter(), now=NOW - timedelta(days=60))

    assert sweep_expired_interests(db, now=NOW) == 1
    assert sweep_expired_interests(db, now=NOW) == 0


def test_decline_is_terminal(db):
    pid = registry.create_property(db, listing(), "vendorX")
    interest = interests.create_interest(db, pid, "renterA", renter(), now=NOW)

    declined = interests.decline_interest(db, interest.id, notes="Looking for a family", now=NOW)

    assert declined.status == "landlord_passed"
    assert declined.landlord_notes == "Looking for a family"
    assert declined.landlord_reviewed_at is not None
    with pytest.raises(InterestStateError):
        interests.decline_interest(db, interest.id, now=NOW)


def test_decline_missing_interest_returns_none(db):
    assert interests.decline_interest(db, "missing") is None


def test_landlord_listing_is_sorted_by_score(db):
    pid = registry.create_property(db, listing(), "vendorX")
    low = interests.create_interest(db, pid, "renterA", renter(monthly_income=900), now=NOW)
    high = interests.create_interest(db, pid, "renterB", renter(monthly_income=5000), now=NOW)

    ids = [i.id for i in interests.list_interests_for_landlord(db, "vendorX", now=NOW)]

    assert ids == [high.id, low.id]


def test_renter_listing_includes_all_statuses(db):
    pid = registry.create_property(db, listing(), "vendorX")
    other = registry.create_property(db, listing(street="2 Canning Street"), "vendorX")
    a = interests.create_interest(db, pid, "renterA", renter(), now=NOW)
    interests.create_interest(db, other, "renterA", renter(), now=NOW)
    interests.decline_interest(db, a.id, now=NOW)

    statuses = sorted(i.status for i in interests.list_interests_for_renter(db, "renterA", now=NOW))

    assert statuses == ["landlord_passed", "pending"]
