"""Checkout session orchestration."""

from checkout_engine.services.checkout.orchestrator import CheckoutOrchestrator
from checkout_engine.services.checkout.types import (
    CheckoutState,
    CheckoutStore,
    CheckoutUser,
    FinalizationResult,
    FinalizationStep,
    PaymentConfirmation,
    PriceBreakdown,
    StepFailure,
)

__all__ = [
    "CheckoutOrchestrator",
    "CheckoutState",
    "CheckoutStore",
    "CheckoutUser",
    "FinalizationResult",
    "FinalizationStep",
    "PaymentConfirmation",
    "PriceBreakdown",
    "StepFailure",
]
