# Compatibility scoring factors and the overall clamp.
from __future__ import annotations

from datetime import date

from propswipe import scoring
from propswipe.message_rules import find_rent_bidding_phrases
from propswipe.schemas import PropertyRead, RatingsSummary, RenterProfile


def prop(**overrides) -> PropertyRead:
    data = {
        "id": "p1",
        "vendor_id": "vendorX",
        "street": "5 Gambier Terrace",
        "city": "Liverpool",
        "rent_pcm": 1000,
        "max_occupants": 2,
        "available_from": date(2026, 3, 1),
    }
    data.update(overrides)
    return PropertyRead(**data)


def test_affordability_bands():
    assert scoring.affordability_score(3000, 1000) == 30
    assert scoring.affordability_score(2500, 1000) == 24
    assert scoring.affordability_score(2000, 1000) == 15
    assert scoring.affordability_score(0, 1000) == 0
    assert scoring.affordability_score(100, 0) == 30


def test_location_prefers_same_city_then_region():
    assert scoring.location_score("Liverpool", "liverpool") == 20
    assert scoring.location_score("Southport", "Liverpool") == 16
    assert scoring.location_score("Preston", "Liverpool") == 10
    assert scoring.location_score("London", "Liverpool") == 5


def test_timing_windows():
    available = date(2026, 3, 1)
    assert scoring.timing_score(None, available) == 15
    assert scoring.timing_score(date(2026, 3, 5), available) == 15
    assert scoring.timing_score(date(2026, 6, 1), available) == 3


def test_tenant_history_neutral_for_first_timers():
    assert scoring.tenant_history_score(None) == 8
    strong = RatingsSummary(total_ratings=6, average_overall_score=5, would_recommend_percentage=100)
    assert scoring.tenant_history_score(strong) == 15


def test_pets_on_no_pet_property_reduce_fit():
    without = scoring.property_fit_score(RenterProfile(), prop())
    with_pets = scoring.property_fit_score(RenterProfile(has_pets=True), prop())
    assert with_pets < without


def test_compute_compatibility_is_bounded_and_flags():
    renter = RenterProfile(
        local_area="Liverpool",
        monthly_income=4000,
        preferred_move_in_date=date(2026, 3, 2),
        has_guarantor=True,
        has_rental_history=True,
        has_previous_landlord_reference=True,
        ratings_summary=RatingsSummary(total_ratings=5, average_overall_score=4.8, would_recommend_percentage=100),
    )

    result = scoring.compute_compatibility(renter, prop())

    assert 0 <= result.overall <= 100
    assert result.overall == sum(result.breakdown.model_dump().values())
    assert "income_strong" in result.flags
    assert "excellent_references" in result.flags
    assert "has_guarantor" in result.flags


def test_first_time_renter_flags():
    result = scoring.compute_compatibility(RenterProfile(monthly_income=1500), prop())
    assert "first_time_renter" in result.flags
    assert "move_date_flexible" in result.flags


def test_score_tiers():
    assert scoring.score_tier(85) == "excellent"
    assert scoring.score_tier(60) == "good"
    assert scoring.score_tier(45) == "fair"
    assert scoring.score_tier(10) == "low"


def test_rent_bidding_detection():
    assert find_rent_bidding_phrases("We have a bidding war on this one") == ["bidding war"]
    assert find_rent_bidding_phrases("Would you pay above the asking rent?") == ["above the asking rent"]
    assert find_rent_bidding_phrases("Viewing is at 6pm on Tuesday") == []
    assert find_rent_bidding_phrases("I'm sorry but I cannot pay more") == []
