"""Local delivery fee heuristic used when no carrier quote is available.

Everything here is pure: no clock, no network, no randomness.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import re

from checkout_engine.entities import CartLine, SpeedTier
from checkout_engine.money import round_half_up

DEFAULT_DISTANCE_KM = 50.0
KM_PER_PREFIX_STEP = 10.0
_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True, slots=True)
class HeuristicRates:
    """Constants for the fallback fee formula."""

    standard_base: int = 60
    express_base: int = 120
    per_km: float = 0.2
    per_kg: float = 40.0
    free_weight_kg: float = 0.5

    def base(self, tier: SpeedTier) -> int:
        if tier is SpeedTier.EXPRESS:
            return self.express_base
        return self.standard_base


@dataclass(frozen=True, slots=True)
class PackageAggregate:
    """Rough single-parcel view of a cart.

    Lines are stacked: weights and heights add up, length and breadth take
    the largest line. This is not real packing.
    """

    weight: float
    length: float
    breadth: float
    height: float

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> PackageAggregate:
        weight = 0.0
        length = 0.0
        breadth = 0.0
        height = 0.0
        for line in lines:
            weight += line.weight * line.quantity
            height += line.height * line.quantity
            length = max(length, line.length)
            breadth = max(breadth, line.breadth)
        return cls(weight=weight, length=length, breadth=breadth, height=height)


def estimate_distance_km(
    origin_postal_code: str, destination_postal_code: str
) -> float:
    """Approximate distance from the first three digits of two postal codes."""
    origin = _NON_DIGITS.sub("", origin_postal_code)
    destination = _NON_DIGITS.sub("", destination_postal_code)
    if len(origin) < 3 or len(destination) < 3:
        return DEFAULT_DISTANCE_KM
    return abs(int(origin[:3]) - int(destination[:3])) * KM_PER_PREFIX_STEP


def weight_charge(weight_kg: float, rates: HeuristicRates) -> float:
    return rates.per_kg * max(0.0, weight_kg - rates.free_weight_kg)


def heuristic_fee(
    origin_postal_code: str,
    destination_postal_code: str,
    weight_kg: float,
    tier: SpeedTier,
    rates: HeuristicRates | None = None,
) -> int:
    """Compute the fallback fee: base + distance surcharge + weight charge.

    Args:
        origin_postal_code: Warehouse postal code
        destination_postal_code: Delivery postal code
        weight_kg: Total package weight
        tier: Requested speed tier
        rates: Formula constants (defaults if omitted)

    Returns:
        Fee in whole minor units, rounded half-up
    """
    rates = rates or HeuristicRates()
    distance = estimate_distance_km(origin_postal_code, destination_postal_code)
    raw = (
        rates.base(tier)
        + distance * rates.per_km
        + weight_charge(weight_kg, rates)
    )
    return round_half_up(raw)


TIER_LABELS: dict[SpeedTier, str] = {
    SpeedTier.STANDARD: "Standard",
    SpeedTier.EXPRESS: "Express",
}

TIER_ETAS: dict[SpeedTier, str] = {
    SpeedTier.STANDARD: "5-7 days",
    SpeedTier.EXPRESS: "2-3 days",
}
