"""
Renter/property compatibility scoring.

Produces a 0-100 score used as interest metadata so landlords can rank interested
renters. The score never gates interest creation or matching.

Score breakdown (100 points):
- Affordability   30  income-to-rent ratio
- Location        20  preferred area vs property city
- Timing          15  preferred move-in date vs availability
- Property fit    20  occupancy, pets, smoking, guarantor, rental history
- Tenant history  15  ratings received from previous landlords
"""
from __future__ import annotations

from datetime import date
from typing import Callable, List, Optional

from .schemas import CompatibilityBreakdown, CompatibilityScore, RatingsSummary, RenterProfile

WEIGHT_AFFORDABILITY = 30
WEIGHT_LOCATION = 20
WEIGHT_TIMING = 15
WEIGHT_PROPERTY_FIT = 20
WEIGHT_TENANT_HISTORY = 15

INCOME_RATIO_IDEAL = 3.0
INCOME_RATIO_GOOD = 2.5
INCOME_RATIO_MINIMUM = 2.0

# Day windows for move-in alignment
TIMING_PERFECT_WINDOW = 7
TIMING_GOOD_WINDOW = 30
TIMING_ACCEPTABLE_WINDOW = 60

REGION_GROUPS = {
    "merseyside": ["liverpool", "southport", "formby", "st helens"],
    "manchester": ["manchester", "warrington", "wigan"],
    "lancashire": ["preston", "blackpool"],
    "cheshire": ["chester", "warrington"],
}

SITUATION_OCCUPANTS = {
    "Single": 1,
    "Couple": 2,
    "Family": 4,
    "Professional Sharers": 3,
}

# (renter profile, property) -> score; replaceable scoring policy consumed by the interest ledger
Scorer = Callable[[RenterProfile, object], CompatibilityScore]


def affordability_score(monthly_income: float, rent_pcm: int) -> int:
    if rent_pcm <= 0:
        return WEIGHT_AFFORDABILITY

    ratio = monthly_income / rent_pcm
    if ratio >= INCOME_RATIO_IDEAL:
        return WEIGHT_AFFORDABILITY
    if ratio >= INCOME_RATIO_GOOD:
        proportion = (ratio - INCOME_RATIO_GOOD) / (INCOME_RATIO_IDEAL - INCOME_RATIO_GOOD)
        return round(WEIGHT_AFFORDABILITY * (0.8 + 0.2 * proportion))
    if ratio >= INCOME_RATIO_MINIMUM:
        proportion = (ratio - INCOME_RATIO_MINIMUM) / (INCOME_RATIO_GOOD - INCOME_RATIO_MINIMUM)
        return round(WEIGHT_AFFORDABILITY * (0.5 + 0.3 * proportion))
    proportion = max(0.0, ratio / INCOME_RATIO_MINIMUM)
    return round(WEIGHT_AFFORDABILITY * 0.5 * proportion)


def location_score(renter_area: str, property_city: str) -> int:
    renter = (renter_area or "").strip().lower()
    city = (property_city or "").strip().lower()
    if renter and renter == city:
        return WEIGHT_LOCATION

    for towns in REGION_GROUPS.values():
        if renter in towns and city in towns:
            return round(WEIGHT_LOCATION * 0.8)

    wider_area = {town for towns in REGION_GROUPS.values() for town in towns}
    if renter in wider_area and city in wider_area:
        return round(WEIGHT_LOCATION * 0.5)

    # Still possibly interested
    return round(WEIGHT_LOCATION * 0.25)


def timing_score(preferred_move_in: Optional[date], available_from: Optional[date]) -> int:
    if preferred_move_in is None or available_from is None:
        return WEIGHT_TIMING

    days = abs((preferred_move_in - available_from).days)
    if days <= TIMING_PERFECT_WINDOW:
        return WEIGHT_TIMING
    if days <= TIMING_GOOD_WINDOW:
        proportion = (TIMING_GOOD_WINDOW - days) / (TIMING_GOOD_WINDOW - TIMING_PERFECT_WINDOW)
        return round(WEIGHT_TIMING * (0.7 + 0.3 * proportion))
    if days <= TIMING_ACCEPTABLE_WINDOW:
        proportion = (TIMING_ACCEPTABLE_WINDOW - days) / (TIMING_ACCEPTABLE_WINDOW - TIMING_GOOD_WINDOW)
        return round(WEIGHT_TIMING * (0.4 + 0.3 * proportion))
    return round(WEIGHT_TIMING * 0.2)


def _situation_score(situation: str, max_occupants: Optional[int]) -> int:
    expected = SITUATION_OCCUPANTS.get(situation, 2)
    capacity = max_occupants or 4
    if expected > capacity:
        return 2
    utilization = expected / capacity
    if utilization >= 0.5:
        return 7
    if utilization >= 0.25:
        return 5
    return 3


def _pet_score(renter: RenterProfile, pets_allowed: bool) -> int:
    if not renter.has_pets:
        return 5
    if not pets_allowed:
        return 2
    return 4


def property_fit_score(renter: RenterProfile, prop) -> int:
    score = float(_situation_score(renter.situation, prop.max_occupants))
    score += _pet_score(renter, bool(prop.pets_allowed))

    if renter.smoking_status == "Non-Smoker":
        score += 3
    elif renter.smoking_status == "Vaper":
        score += 2
    else:
        score += 1

    if renter.has_guarantor:
        score += 2

    if renter.has_rental_history and renter.has_previous_landlord_reference:
        score += 3
    elif renter.has_rental_history:
        score += 1.5

    return min(round(score), WEIGHT_PROPERTY_FIT)


def tenant_history_score(summary: Optional[RatingsSummary]) -> int:
    if summary is None or summary.total_ratings == 0:
        # First-time renter: neutral
        return round(WEIGHT_TENANT_HISTORY * 0.5)

    rating_points = (summary.average_overall_score / 5) * 10
    recommend_points = (summary.would_recommend_percentage / 100) * 3
    if summary.total_ratings >= 5:
        experience = 2
    elif summary.total_ratings >= 2:
        experience = 1
    else:
        experience = 0
    return min(round(rating_points + recommend_points + experience), WEIGHT_TENANT_HISTORY)


def _flags(renter: RenterProfile, prop, breakdown: CompatibilityBreakdown) -> List[str]:
    flags: List[str] = []

    if prop.rent_pcm > 0:
        ratio = renter.monthly_income / prop.rent_pcm
        if ratio >= INCOME_RATIO_IDEAL:
            flags.append("income_strong")
        elif ratio >= INCOME_RATIO_GOOD:
            flags.append("income_marginal")

    if renter.preferred_move_in_date is None:
        flags.append("move_date_flexible")
    elif breakdown.timing < WEIGHT_TIMING * 0.5:
        flags.append("move_date_mismatch")

    if renter.has_pets:
        flags.append("pet_requires_approval")

    if not renter.has_rental_history:
        flags.append("first_time_renter")
    elif renter.ratings_summary and renter.ratings_summary.average_overall_score >= 4.5:
        flags.append("excellent_references")

    if renter.has_guarantor:
        flags.append("has_guarantor")

    return flags


def compute_compatibility(renter: RenterProfile, prop) -> CompatibilityScore:
    """
    Score how well a renter fits a property.

    `prop` is any object exposing the Property columns (ORM row or PropertyRead).
    The overall score is clamped to [0, 100].
    """
    breakdown = CompatibilityBreakdown(
        affordability=affordability_score(renter.monthly_income, prop.rent_pcm),
        location=location_score(renter.local_area, prop.city),
        timing=timing_score(renter.preferred_move_in_date, prop.available_from),
        property_fit=property_fit_score(renter, prop),
        tenant_history=tenant_history_score(renter.ratings_summary),
    )
    overall = (
        breakdown.affordability
        + breakdown.location
        + breakdown.timing
        + breakdown.property_fit
        + breakdown.tenant_history
    )
    return CompatibilityScore(
        overall=max(0, min(100, overall)),
        breakdown=breakdown,
        flags=_flags(renter, prop, breakdown),
    )


def score_tier(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "low"
