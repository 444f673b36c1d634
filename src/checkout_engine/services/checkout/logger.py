"""Logging for checkout sessions."""

from __future__ import annotations

from collections.abc import Mapping

import loguru
from loguru import logger

from checkout_engine.entities import DeliveryQuote, SpeedTier
from checkout_engine.services.checkout.types import (
    FinalizationStep,
    PriceBreakdown,
    StepFailure,
)


class CheckoutLogger:
    """Handles all logging for one checkout flow."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def quotes_ready(
        self, user_id: str, quotes: Mapping[SpeedTier, DeliveryQuote]
    ) -> None:
        fees = {tier.value: quote.fee for tier, quote in quotes.items()}
        self._logger.bind(user_id=user_id, fees=fees).debug(
            "Delivery quotes for {}: {}", user_id, fees
        )

    def promotion_dropped(self, user_id: str, code: str, reason: str) -> None:
        self._logger.bind(user_id=user_id, code=code, reason=reason).info(
            "Promotion {} no longer applies for {}: {}", code, user_id, reason
        )

    def payment_started(self, user_id: str, breakdown: PriceBreakdown) -> None:
        self._logger.bind(user_id=user_id, total=breakdown.total).info(
            "Awaiting payment of {} from {}", breakdown.total, user_id
        )

    def amount_mismatch(
        self, order_id: str, expected: int, charged: int, transaction_ref: str
    ) -> None:
        self._logger.bind(
            order_id=order_id,
            expected=expected,
            charged=charged,
            transaction_ref=transaction_ref,
        ).warning(
            "Order {} charged {} but priced at {} (transaction {})",
            order_id,
            charged,
            expected,
            transaction_ref,
        )

    def step_failed(
        self,
        order_id: str,
        step: FinalizationStep,
        error: BaseException,
        product_id: str | None = None,
    ) -> None:
        self._logger.bind(
            order_id=order_id,
            step=step.value,
            product_id=product_id,
            error_type=type(error).__name__,
        ).opt(exception=error).error(
            "Finalization step {} failed for order {}: {}", step.value, order_id, error
        )

    def promotion_conflict(self, order_id: str, user_id: str, code: str) -> None:
        self._logger.bind(order_id=order_id, user_id=user_id, code=code).error(
            "Promotion {} was redeemed by {} in another session before order {}",
            code,
            user_id,
            order_id,
        )

    def finalized(self, order_id: str, user_id: str, total: int) -> None:
        self._logger.bind(order_id=order_id, user_id=user_id, total=total).info(
            "Order {} finalized for {} (total {})", order_id, user_id, total
        )

    def finalization_failed(
        self, order_id: str, user_id: str, failures: tuple[StepFailure, ...]
    ) -> None:
        steps = [failure.step.value for failure in failures]
        self._logger.bind(order_id=order_id, user_id=user_id, steps=steps).error(
            "Order {} for {} needs reconciliation, failed steps: {}",
            order_id,
            user_id,
            ", ".join(steps),
        )
