"""Tests for the local delivery fee heuristic."""

from __future__ import annotations

import pytest

from checkout_engine.entities import CartLine, SpeedTier
from checkout_engine.services.delivery.heuristic import (
    DEFAULT_DISTANCE_KM,
    HeuristicRates,
    PackageAggregate,
    estimate_distance_km,
    heuristic_fee,
    weight_charge,
)


class TestEstimateDistance:
    """Tests for the postal prefix distance approximation."""

    def test_same_prefix_is_zero(self) -> None:
        assert estimate_distance_km("201206", "201301") == 0.0

    def test_prefix_difference_scales_by_ten(self) -> None:
        # |201 - 110| = 91 steps of 10 km
        assert estimate_distance_km("201206", "110001") == 910.0

    def test_direction_does_not_matter(self) -> None:
        assert estimate_distance_km("560001", "201206") == estimate_distance_km(
            "201206", "560001"
        )

    def test_short_code_uses_default(self) -> None:
        assert estimate_distance_km("201206", "12") == DEFAULT_DISTANCE_KM

    def test_non_digits_are_ignored(self) -> None:
        assert estimate_distance_km("201 206", "110-001") == 910.0


class TestWeightCharge:
    """Tests for the per-kg surcharge above the free allowance."""

    def test_under_allowance_is_free(self) -> None:
        assert weight_charge(0.3, HeuristicRates()) == 0.0

    def test_charges_only_above_allowance(self) -> None:
        assert weight_charge(1.5, HeuristicRates()) == pytest.approx(40.0)


class TestHeuristicFee:
    """Tests for the fallback fee formula."""

    def test_local_light_parcel_standard_is_base_fee(self) -> None:
        fee = heuristic_fee("201206", "201206", 0.3, SpeedTier.STANDARD)

        assert fee == 60

    def test_express_uses_express_base(self) -> None:
        fee = heuristic_fee("201206", "201206", 0.3, SpeedTier.EXPRESS)

        assert fee == 120

    def test_distance_and_weight_are_added(self) -> None:
        # 60 base + 910 km * 0.2 + (1.5 - 0.5) kg * 40
        fee = heuristic_fee("201206", "110001", 1.5, SpeedTier.STANDARD)

        assert fee == 282

    def test_custom_rates(self) -> None:
        rates = HeuristicRates(standard_base=80, express_base=150)

        fee = heuristic_fee("201206", "201206", 0.0, SpeedTier.STANDARD, rates)

        assert fee == 80

    def test_fractional_result_rounds_half_up(self) -> None:
        # 60 + 50 km * 0.2 + (0.625 - 0.5) * 4 = 70.5
        rates = HeuristicRates(per_kg=4.0)

        fee = heuristic_fee("201206", "12", 0.625, SpeedTier.STANDARD, rates)

        assert fee == 71

    def test_is_pure(self) -> None:
        results = {
            heuristic_fee("201206", "400001", 2.0, SpeedTier.EXPRESS)
            for _ in range(5)
        }

        assert len(results) == 1


class TestPackageAggregate:
    """Tests for the single-parcel cart aggregate."""

    def test_weights_and_heights_stack_by_quantity(self) -> None:
        # Input
        lines = [
            CartLine("a", 100, quantity=2, weight=0.2, length=10, breadth=5, height=1),
            CartLine("b", 100, quantity=1, weight=0.5, length=20, breadth=4, height=3),
        ]

        # Act
        aggregate = PackageAggregate.from_lines(lines)

        # Assert
        assert aggregate.weight == pytest.approx(0.9)
        assert aggregate.height == pytest.approx(5.0)
        assert aggregate.length == 20
        assert aggregate.breadth == 5
