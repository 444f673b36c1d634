"""Tests for DeliveryEstimator carrier lookup and heuristic fallback."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from checkout_engine.entities import CartLine, DeliveryQuote, QuoteSource, SpeedTier
from checkout_engine.errors import CarrierClientError
from checkout_engine.infra.clients.carrier import (
    CarrierRateClient,
    RateOption,
    RateRequest,
)
from checkout_engine.services.delivery.estimator import (
    DeliveryEstimator,
    select_option,
)
from checkout_engine.services.delivery.logger import DeliveryLogger
from tests.fixtures.checkout import make_line


def create_estimator(
    carrier_client: MagicMock | None = None,
    timeout_seconds: float = 1.0,
) -> tuple[DeliveryEstimator, MagicMock]:
    delivery_logger = MagicMock(spec=DeliveryLogger)
    estimator = DeliveryEstimator(
        origin_postal_code="201206",
        carrier_client=carrier_client,
        timeout_seconds=timeout_seconds,
        delivery_logger=delivery_logger,
    )
    return estimator, delivery_logger


def create_carrier(**kwargs: object) -> MagicMock:
    carrier = MagicMock(spec=CarrierRateClient)
    carrier.fetch_rates.configure_mock(**kwargs)
    return carrier


class TestSelectOption:
    """Tests for choosing one carrier option per tier."""

    def test_standard_takes_cheapest(self) -> None:
        options = [
            RateOption("Delhivery Surface", 90, "5 days"),
            RateOption("Ekart", 70, "6 days"),
        ]

        assert select_option(options, SpeedTier.STANDARD).label == "Ekart"

    def test_express_prefers_express_or_air_label(self) -> None:
        options = [
            RateOption("Delhivery Surface", 90, None),
            RateOption("Bluedart AIR", 200, "2 days"),
        ]

        assert select_option(options, SpeedTier.EXPRESS).label == "Bluedart AIR"

    def test_express_falls_back_to_first_option(self) -> None:
        options = [
            RateOption("Delhivery Surface", 90, None),
            RateOption("Ekart", 70, None),
        ]

        assert select_option(options, SpeedTier.EXPRESS).label == "Delhivery Surface"

    def test_empty_options_raise(self) -> None:
        with pytest.raises(ValueError):
            select_option([], SpeedTier.STANDARD)


class TestDeliveryEstimator:
    """Tests for DeliveryEstimator.estimate."""

    def test_carrier_timeout_falls_back_to_heuristic(self) -> None:
        """A carrier timeout yields the heuristic fee and no exception."""
        # Input
        carrier = create_carrier(side_effect=TimeoutError("deadline exceeded"))
        estimator, delivery_logger = create_estimator(carrier)
        lines = [make_line(weight=0.3)]

        # Act
        quote = asyncio.run(estimator.estimate("201206", lines, SpeedTier.STANDARD))

        # Assert
        assert quote.source is QuoteSource.HEURISTIC
        assert quote.fee == 60
        assert quote.eta == "5-7 days"
        assert quote.carrier_label == "Standard"
        delivery_logger.carrier_failed.assert_called_once()

    def test_slow_carrier_is_cut_off_at_deadline(self) -> None:
        """A lookup slower than timeout_seconds is abandoned for the heuristic."""

        # Input
        def slow_fetch(*args: object, **kwargs: object) -> list[RateOption]:
            time.sleep(0.5)
            return [RateOption("Ekart", 10, "4 days")]

        carrier = create_carrier(side_effect=slow_fetch)
        estimator, delivery_logger = create_estimator(carrier, timeout_seconds=0.05)

        async def timed_estimate() -> tuple[DeliveryQuote, float]:
            started = time.monotonic()
            quote = await estimator.estimate(
                "201206", [make_line()], SpeedTier.STANDARD
            )
            return quote, time.monotonic() - started

        # Act
        quote, elapsed = asyncio.run(timed_estimate())

        # Assert
        assert elapsed < 0.4
        assert quote.source is QuoteSource.HEURISTIC
        assert quote.fee == 60
        delivery_logger.carrier_failed.assert_called_once()

    def test_carrier_client_error_falls_back(self) -> None:
        carrier = create_carrier(side_effect=CarrierClientError("502"))
        estimator, delivery_logger = create_estimator(carrier)

        quote = asyncio.run(
            estimator.estimate("201206", [make_line()], SpeedTier.EXPRESS)
        )

        assert quote.source is QuoteSource.HEURISTIC
        assert quote.fee == 120
        assert quote.eta == "2-3 days"
        delivery_logger.carrier_failed.assert_called_once()

    def test_unexpected_error_falls_back(self) -> None:
        carrier = create_carrier(side_effect=KeyError("rate"))
        estimator, delivery_logger = create_estimator(carrier)

        quote = asyncio.run(
            estimator.estimate("201206", [make_line()], SpeedTier.STANDARD)
        )

        assert quote.source is QuoteSource.HEURISTIC
        delivery_logger.carrier_error.assert_called_once()

    def test_empty_carrier_response_falls_back(self) -> None:
        carrier = create_carrier(return_value=[])
        estimator, delivery_logger = create_estimator(carrier)

        quote = asyncio.run(
            estimator.estimate("201206", [make_line()], SpeedTier.STANDARD)
        )

        assert quote.source is QuoteSource.HEURISTIC
        delivery_logger.carrier_empty.assert_called_once()

    def test_no_carrier_configured_uses_heuristic(self) -> None:
        estimator, delivery_logger = create_estimator()

        quote = asyncio.run(
            estimator.estimate("201206", [make_line()], SpeedTier.STANDARD)
        )

        assert quote.source is QuoteSource.HEURISTIC
        delivery_logger.carrier_unavailable.assert_called_once()

    def test_carrier_quote_is_used_when_available(self) -> None:
        # Input
        carrier = create_carrier(
            return_value=[
                RateOption("Delhivery Surface", 95, "4 days"),
                RateOption("Ekart", 80, None),
            ]
        )
        estimator, _ = create_estimator(carrier)

        # Act
        quote = asyncio.run(
            estimator.estimate("560001", [make_line()], SpeedTier.STANDARD)
        )

        # Assert
        assert quote.source is QuoteSource.CARRIER
        assert quote.fee == 80
        assert quote.carrier_label == "Ekart"
        assert quote.eta == "5-7 days"
        assert quote.speed_tier is SpeedTier.STANDARD

    def test_request_clamps_weight_and_dimensions(self) -> None:
        carrier = create_carrier(return_value=[RateOption("Ekart", 80, None)])
        estimator, _ = create_estimator(carrier)
        bare = CartLine("ring-1", 300)

        asyncio.run(estimator.estimate("560001", [bare], SpeedTier.STANDARD))

        request = carrier.fetch_rates.call_args.args[0]
        assert isinstance(request, RateRequest)
        assert request.delivery_pincode == "560001"
        assert request.weight == 0.1
        assert request.length == 1.0
        assert request.breadth == 1.0
        assert request.height == 1.0

    def test_blank_postal_code_raises_before_lookup(self) -> None:
        carrier = create_carrier(return_value=[])
        estimator, _ = create_estimator(carrier)

        with pytest.raises(ValueError):
            asyncio.run(estimator.estimate("  ", [make_line()], SpeedTier.STANDARD))

        carrier.fetch_rates.assert_not_called()

    def test_empty_cart_raises(self) -> None:
        estimator, _ = create_estimator()

        with pytest.raises(ValueError):
            asyncio.run(estimator.estimate("201206", [], SpeedTier.STANDARD))


class TestEstimateBoth:
    """Tests for quoting both tiers at once."""

    def test_returns_quote_per_tier(self) -> None:
        estimator, _ = create_estimator()

        quotes = asyncio.run(estimator.estimate_both("201206", [make_line()]))

        assert quotes[SpeedTier.STANDARD].fee == 60
        assert quotes[SpeedTier.EXPRESS].fee == 120
        assert quotes[SpeedTier.EXPRESS].speed_tier is SpeedTier.EXPRESS

    def test_heuristic_quote_matches_fallback(self) -> None:
        estimator, _ = create_estimator()

        quote = estimator.heuristic_quote("110001", [make_line()], SpeedTier.STANDARD)

        assert quote.fee == 242
        assert quote.source is QuoteSource.HEURISTIC
