"""Logging for delivery estimation."""

from __future__ import annotations

import loguru
from loguru import logger

from checkout_engine.entities import DeliveryQuote, SpeedTier


class DeliveryLogger:
    """Handles all logging for delivery quotes."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def carrier_quote(self, postal_code: str, quote: DeliveryQuote) -> None:
        self._logger.bind(
            postal_code=postal_code,
            tier=quote.speed_tier.value,
            fee=quote.fee,
            carrier=quote.carrier_label,
        ).debug(
            "Carrier quote for {} ({}): {} via {}",
            postal_code,
            quote.speed_tier.value,
            quote.fee,
            quote.carrier_label,
        )

    def carrier_unavailable(self, postal_code: str, tier: SpeedTier) -> None:
        self._logger.bind(postal_code=postal_code, tier=tier.value).debug(
            "No carrier endpoint configured, using heuristic for {} ({})",
            postal_code,
            tier.value,
        )

    def carrier_empty(self, postal_code: str, tier: SpeedTier) -> None:
        self._logger.bind(postal_code=postal_code, tier=tier.value).warning(
            "Carrier returned no options for {} ({}), using heuristic",
            postal_code,
            tier.value,
        )

    def carrier_failed(
        self, postal_code: str, tier: SpeedTier, error: BaseException
    ) -> None:
        """Log a degraded lookup. Never surfaced to the buyer."""
        self._logger.bind(
            postal_code=postal_code,
            tier=tier.value,
            error_type=type(error).__name__,
        ).warning(
            "Carrier lookup failed for {} ({}), using heuristic: {}",
            postal_code,
            tier.value,
            error,
        )

    def carrier_error(
        self, postal_code: str, tier: SpeedTier, error: BaseException
    ) -> None:
        """Log an unexpected error inside the lookup path."""
        self._logger.bind(postal_code=postal_code, tier=tier.value).opt(
            exception=error
        ).error(
            "Unexpected error quoting {} ({}), using heuristic",
            postal_code,
            tier.value,
        )

    def heuristic_quote(self, postal_code: str, quote: DeliveryQuote) -> None:
        self._logger.bind(
            postal_code=postal_code, tier=quote.speed_tier.value, fee=quote.fee
        ).debug(
            "Heuristic quote for {} ({}): {}",
            postal_code,
            quote.speed_tier.value,
            quote.fee,
        )
