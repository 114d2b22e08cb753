from __future__ import annotations

import math
from dataclasses import dataclass

from services.api.app.store import PropertyRecord


# Average monthly rent per square foot (NPR).
PRICE_PER_SQFT_BENCHMARK = 12.0

FAIR_FLEX_MAX_PRICE = 20000
FAIR_FLEX_MIN_BEDROOMS = 3
FAIR_FLEX_DISCOUNTS: dict[int, float] = {1: 0.0, 3: 0.05, 6: 0.10, 12: 0.15}

PROFESSIONAL_LOCATIONS = frozenset({"Kathmandu", "Lalitpur", "Pokhara"})
QUIET_LOCATIONS = frozenset({"Bhaktapur", "Chitwan"})

BEST_FOR_LABELS = ("Family", "Students", "Professionals", "Quiet Living")


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class FairFlexSavings:
    has_fair_flex: bool
    duration: int
    discount_rate: float
    discounted_price: int
    monthly_savings: int
    total_savings: int

    def to_dict(self) -> dict:
        return {
            "has_fair_flex": self.has_fair_flex,
            "duration": self.duration,
            "discount_rate": self.discount_rate,
            "discounted_price": self.discounted_price,
            "monthly_savings": self.monthly_savings,
            "total_savings": self.total_savings,
        }


@dataclass(frozen=True)
class ScoredProperty:
    record: PropertyRecord
    confidence_score: int
    best_for: str
    fair_flex_savings: FairFlexSavings


def is_fair_flex_eligible(prop: PropertyRecord) -> bool:
    return prop.price <= FAIR_FLEX_MAX_PRICE or prop.bedrooms >= FAIR_FLEX_MIN_BEDROOMS


def _price_fairness_points(prop: PropertyRecord) -> int:
    if prop.area_sqft <= 0:
        return 0
    price_per_sqft = prop.price / prop.area_sqft
    if price_per_sqft <= PRICE_PER_SQFT_BENCHMARK * 0.8:
        return 30
    if price_per_sqft <= PRICE_PER_SQFT_BENCHMARK:
        return 20
    if price_per_sqft <= PRICE_PER_SQFT_BENCHMARK * 1.2:
        return 10
    return 0


def _amenity_points(prop: PropertyRecord) -> int:
    # Listing features stand in for an amenity count.
    count = sum(
        (
            prop.bedrooms >= 3,
            prop.bathrooms >= 2,
            prop.area_sqft >= 1500,
            prop.price <= 18000,
        )
    )
    if count >= 3:
        return 20
    if count == 2:
        return 15
    if count == 1:
        return 10
    return 0


def rent_confidence(prop: PropertyRecord) -> int:
    """
    Rent Confidence Score (0-100).

    Verified listing 30, price fairness against the per-sqft benchmark up to 30,
    FairFlex eligibility 20, amenity proxies up to 20.
    """
    score = 0
    if prop.verified:
        score += 30
    score += _price_fairness_points(prop)
    if is_fair_flex_eligible(prop):
        score += 20
    score += _amenity_points(prop)
    return min(100, max(0, score))


def best_for_label(prop: PropertyRecord) -> str:
    price, bedrooms = prop.price, prop.bedrooms

    if bedrooms >= 3 and prop.bathrooms >= 2 and prop.area_sqft >= 1800:
        return "Family"
    if price <= 12000 and bedrooms <= 2 and prop.area_sqft <= 1200:
        return "Students"
    if 12000 <= price <= 20000 and bedrooms >= 2 and prop.location in PROFESSIONAL_LOCATIONS:
        return "Professionals"
    if price <= 16000 and bedrooms <= 3 and prop.location in QUIET_LOCATIONS:
        return "Quiet Living"

    if price <= 15000:
        return "Students"
    if price >= 25000:
        return "Family"
    return "Professionals"


def fair_flex_savings(prop: PropertyRecord, duration: int = 6) -> FairFlexSavings:
    discount = FAIR_FLEX_DISCOUNTS.get(duration, 0.0)
    discounted = prop.price * (1 - discount)
    savings = prop.price - discounted
    return FairFlexSavings(
        has_fair_flex=is_fair_flex_eligible(prop),
        duration=duration,
        discount_rate=discount,
        discounted_price=_round_half_up(discounted),
        monthly_savings=_round_half_up(savings),
        total_savings=_round_half_up(savings * duration),
    )


def score_property(prop: PropertyRecord, duration: int = 6) -> ScoredProperty:
    return ScoredProperty(
        record=prop,
        confidence_score=rent_confidence(prop),
        best_for=best_for_label(prop),
        fair_flex_savings=fair_flex_savings(prop, duration),
    )
