"""Delivery fee estimation with carrier lookup and local fallback."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from checkout_engine.entities import CartLine, DeliveryQuote, QuoteSource, SpeedTier
from checkout_engine.errors import CarrierClientError
from checkout_engine.infra.clients.carrier import (
    CarrierRateClient,
    RateOption,
    RateRequest,
)
from checkout_engine.services.delivery.heuristic import (
    TIER_ETAS,
    TIER_LABELS,
    HeuristicRates,
    PackageAggregate,
    heuristic_fee,
)
from checkout_engine.services.delivery.logger import DeliveryLogger

MIN_REQUEST_WEIGHT_KG = 0.1
MIN_REQUEST_DIMENSION_CM = 1.0
_EXPRESS_LABEL_HINTS = ("express", "air")


def select_option(options: Sequence[RateOption], tier: SpeedTier) -> RateOption:
    """Pick one carrier option for a tier.

    Express prefers an option whose label mentions express or air, else the
    first one. Standard takes the cheapest.
    """
    if not options:
        raise ValueError("no carrier options to select from")
    if tier is SpeedTier.EXPRESS:
        for option in options:
            label = option.label.lower()
            if any(hint in label for hint in _EXPRESS_LABEL_HINTS):
                return option
        return options[0]
    return min(options, key=lambda option: option.fee)


class DeliveryEstimator:
    """Quotes a shipping fee and ETA for a destination and cart.

    Tries the carrier endpoint when one is configured and falls back to the
    local heuristic on any failure, so checkout never blocks on a rate outage.
    """

    def __init__(
        self,
        *,
        origin_postal_code: str,
        carrier_client: CarrierRateClient | None = None,
        rates: HeuristicRates | None = None,
        timeout_seconds: float = 4.0,
        delivery_logger: DeliveryLogger | None = None,
    ) -> None:
        """Initialize the estimator.

        Args:
            origin_postal_code: Warehouse postal code used by the heuristic
            carrier_client: Remote rate client; None means heuristic only
            rates: Heuristic constants
            timeout_seconds: Deadline for one carrier lookup
            delivery_logger: Logger override (tests)
        """
        self._origin = origin_postal_code
        self._carrier = carrier_client
        self._rates = rates or HeuristicRates()
        self._timeout_seconds = timeout_seconds
        self._log = delivery_logger or DeliveryLogger()

    @property
    def rates(self) -> HeuristicRates:
        return self._rates

    @property
    def carrier_client(self) -> CarrierRateClient | None:
        return self._carrier

    async def estimate(
        self,
        postal_code: str,
        cart_lines: Sequence[CartLine],
        speed_tier: SpeedTier,
    ) -> DeliveryQuote:
        """Quote one speed tier.

        Raises:
            ValueError: If the postal code is blank or the cart is empty
        """
        _require_inputs(postal_code, cart_lines)
        aggregate = PackageAggregate.from_lines(cart_lines)

        if self._carrier is None:
            self._log.carrier_unavailable(postal_code, speed_tier)
            return self._heuristic(postal_code, aggregate, speed_tier)

        try:
            quote = await self._carrier_quote(postal_code, aggregate, speed_tier)
        except (CarrierClientError, TimeoutError) as e:
            self._log.carrier_failed(postal_code, speed_tier, e)
            return self._heuristic(postal_code, aggregate, speed_tier)
        except Exception as e:  # noqa: BLE001 - estimator never raises on lookup
            self._log.carrier_error(postal_code, speed_tier, e)
            return self._heuristic(postal_code, aggregate, speed_tier)

        if quote is None:
            self._log.carrier_empty(postal_code, speed_tier)
            return self._heuristic(postal_code, aggregate, speed_tier)

        self._log.carrier_quote(postal_code, quote)
        return quote

    async def estimate_both(
        self,
        postal_code: str,
        cart_lines: Sequence[CartLine],
    ) -> dict[SpeedTier, DeliveryQuote]:
        """Quote standard and express concurrently."""
        _require_inputs(postal_code, cart_lines)
        standard, express = await asyncio.gather(
            self.estimate(postal_code, cart_lines, SpeedTier.STANDARD),
            self.estimate(postal_code, cart_lines, SpeedTier.EXPRESS),
        )
        return {SpeedTier.STANDARD: standard, SpeedTier.EXPRESS: express}

    def heuristic_quote(
        self,
        postal_code: str,
        cart_lines: Sequence[CartLine],
        speed_tier: SpeedTier,
    ) -> DeliveryQuote:
        """Quote from the local formula only, without touching the network."""
        _require_inputs(postal_code, cart_lines)
        aggregate = PackageAggregate.from_lines(cart_lines)
        return self._heuristic(postal_code, aggregate, speed_tier)

    async def _carrier_quote(
        self,
        postal_code: str,
        aggregate: PackageAggregate,
        speed_tier: SpeedTier,
    ) -> DeliveryQuote | None:
        assert self._carrier is not None
        request = RateRequest(
            delivery_pincode=postal_code,
            weight=max(MIN_REQUEST_WEIGHT_KG, aggregate.weight),
            length=max(MIN_REQUEST_DIMENSION_CM, aggregate.length),
            breadth=max(MIN_REQUEST_DIMENSION_CM, aggregate.breadth),
            height=max(MIN_REQUEST_DIMENSION_CM, aggregate.height),
        )
        options = await asyncio.wait_for(
            asyncio.to_thread(
                self._carrier.fetch_rates,
                request,
                fallback_label=TIER_LABELS[speed_tier],
            ),
            timeout=self._timeout_seconds,
        )
        if not options:
            return None

        option = select_option(options, speed_tier)
        return DeliveryQuote(
            fee=option.fee,
            carrier_label=option.label,
            eta=option.eta or TIER_ETAS[speed_tier],
            source=QuoteSource.CARRIER,
            speed_tier=speed_tier,
        )

    def _heuristic(
        self,
        postal_code: str,
        aggregate: PackageAggregate,
        speed_tier: SpeedTier,
    ) -> DeliveryQuote:
        fee = heuristic_fee(
            self._origin, postal_code, aggregate.weight, speed_tier, self._rates
        )
        quote = DeliveryQuote(
            fee=fee,
            carrier_label=TIER_LABELS[speed_tier],
            eta=TIER_ETAS[speed_tier],
            source=QuoteSource.HEURISTIC,
            speed_tier=speed_tier,
        )
        self._log.heuristic_quote(postal_code, quote)
        return quote


def _require_inputs(postal_code: str, cart_lines: Sequence[CartLine]) -> None:
    if not postal_code or not postal_code.strip():
        raise ValueError("postal_code is required for a delivery estimate")
    if not cart_lines:
        raise ValueError("cart must contain at least one line")
