from __future__ import annotations

from dataclasses import dataclass
import enum
from typing import Protocol

from checkout_engine.entities import Order, PromotionApplication
from checkout_engine.money import clamp_non_negative


class CheckoutState(enum.Enum):
    SELECTING_ADDRESS = "selecting_address"
    SPEED_SELECTED = "speed_selected"
    PROMO_EVALUATING = "promo_evaluating"
    PROMO_APPLIED = "promo_applied"
    PROMO_REJECTED = "promo_rejected"
    AWAITING_PAYMENT = "awaiting_payment"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FINALIZATION_FAILED = "finalization_failed"


class FinalizationStep(enum.Enum):
    SAVE_ORDER = "save_order"
    INCREMENT_ORDER_COUNT = "increment_order_count"
    MARK_PROMOTION_USED = "mark_promotion_used"
    ADJUST_PRODUCT_COUNTERS = "adjust_product_counters"


@dataclass(frozen=True, slots=True)
class CheckoutUser:
    user_id: str
    is_first_order: bool


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    """Confirmation from the payment gateway. Trusted as authoritative."""

    transaction_ref: str
    amount_charged: int


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    subtotal: int
    discount: int
    shipping_fee: int
    shipping_discount: int
    discounted_subtotal: int
    discounted_shipping: int
    total: int

    @classmethod
    def compute(
        cls,
        subtotal: int,
        shipping_fee: int,
        application: PromotionApplication | None = None,
    ) -> PriceBreakdown:
        """Combine subtotal, fee and an optional application into a total.

        The subtotal and shipping parts are clamped at zero independently.
        """
        discount = application.discount if application else 0
        shipping_discount = application.shipping_discount if application else 0
        discounted_subtotal = clamp_non_negative(subtotal - discount)
        discounted_shipping = clamp_non_negative(shipping_fee - shipping_discount)
        return cls(
            subtotal=subtotal,
            discount=discount,
            shipping_fee=shipping_fee,
            shipping_discount=shipping_discount,
            discounted_subtotal=discounted_subtotal,
            discounted_shipping=discounted_shipping,
            total=discounted_subtotal + discounted_shipping,
        )


@dataclass(frozen=True, slots=True)
class StepFailure:
    step: FinalizationStep
    detail: str
    product_id: str | None = None


@dataclass(frozen=True, slots=True)
class FinalizationResult:
    """Outcome of committing side effects after a confirmed payment.

    Payment is never rolled back; ``failures`` lists the steps that need
    reconciliation against ``order_id``.
    """

    order_id: str
    state: CheckoutState
    order: Order
    failures: tuple[StepFailure, ...] = ()
    promotion_conflict: bool = False
    amount_mismatch: bool = False

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures)

    @property
    def ok(self) -> bool:
        return self.state is CheckoutState.COMPLETED


class CheckoutStore(Protocol):
    """Order and counter writes performed at finalization."""

    def save_order(self, order: Order) -> str: ...

    def increment_order_count(self, user_id: str) -> int: ...

    def adjust_product_counters(self, product_id: str, quantity: int) -> None:
        """Decrement stock and bump purchases. Must refuse to go negative."""
        ...
