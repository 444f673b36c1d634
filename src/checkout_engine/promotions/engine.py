"""Promotion validation and discount computation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
import enum
from typing import TYPE_CHECKING

from checkout_engine.entities import PromotionApplication, SpeedTier
from checkout_engine.money import round_half_up
from checkout_engine.promotions.catalog import (
    PromotionCatalog,
    PromotionDefinition,
    PromotionKind,
    normalize_code,
)
from checkout_engine.promotions.logger import PromotionLogger

if TYPE_CHECKING:
    from checkout_engine.ledger.usage import UsageLedger


class RejectionReason(enum.Enum):
    """Why a code was refused. Shown to the buyer; not an error."""

    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    NOT_FIRST_ORDER_ELIGIBLE = "not_first_order_eligible"
    WRONG_SHIPPING_TYPE = "wrong_shipping_type"
    BELOW_MINIMUM = "below_minimum"


@dataclass(frozen=True, slots=True)
class Rejection:
    reason: RejectionReason
    code: str
    message: str


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Cart, user and shipping state a code is validated against.

    ``shipping_fee`` is the fee currently quoted for ``speed_tier``.
    """

    cart_subtotal: int
    speed_tier: SpeedTier
    user_id: str
    is_first_order: bool
    shipping_fee: int

    def __post_init__(self) -> None:
        if self.cart_subtotal < 0:
            raise ValueError("cart_subtotal must be >= 0")
        if self.shipping_fee < 0:
            raise ValueError("shipping_fee must be >= 0")
        if not self.user_id.strip():
            raise ValueError("user_id is required")


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Either an application or a rejection, never both."""

    code: str
    application: PromotionApplication | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.application is not None

    @classmethod
    def accepted(cls, application: PromotionApplication) -> ValidationOutcome:
        return cls(code=application.code, application=application)

    @classmethod
    def rejected(
        cls, code: str, reason: RejectionReason, message: str
    ) -> ValidationOutcome:
        return cls(code=code, rejection=Rejection(reason, code, message))


def compute_discount(
    definition: PromotionDefinition, shipping_fee: int
) -> PromotionApplication:
    """Discount for an eligible promotion against the current shipping fee."""
    if definition.kind is PromotionKind.FIXED_AMOUNT:
        return PromotionApplication(
            code=definition.code, discount=definition.value, shipping_discount=0
        )
    if definition.kind is PromotionKind.PERCENTAGE_SHIPPING:
        shipping_discount = round_half_up(shipping_fee * definition.value / 100)
        return PromotionApplication(
            code=definition.code, discount=0, shipping_discount=shipping_discount
        )
    return PromotionApplication(
        code=definition.code, discount=0, shipping_discount=shipping_fee
    )


class PromotionEngine:
    """Validates promotion codes against catalog, ledger and cart context.

    Validation is read-only: it never marks a code as used.
    """

    def __init__(
        self,
        catalog: PromotionCatalog,
        ledger: UsageLedger,
        *,
        clock: Callable[[], datetime] | None = None,
        promotion_logger: PromotionLogger | None = None,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._clock = clock or (lambda: datetime.now(UTC))
        self._log = promotion_logger or PromotionLogger()

    @property
    def catalog(self) -> PromotionCatalog:
        return self._catalog

    def validate(
        self, code: str | None, context: ValidationContext
    ) -> ValidationOutcome:
        """Validate ``code`` and compute its discount.

        Checks run in order and the first failure wins: known code, active
        window, prior redemption, first-order rule, speed tier, minimum cart
        value.

        Args:
            code: Code as typed by the buyer
            context: Current cart, user and shipping state

        Returns:
            ValidationOutcome with an application or a rejection

        Raises:
            UsageLedgerError: If the ledger cannot be read
        """
        normalized = normalize_code(code)
        outcome = self._validate(normalized, context)
        if outcome.rejection is not None:
            self._log.rejected(context.user_id, outcome.rejection)
        elif outcome.application is not None:
            self._log.accepted(context.user_id, outcome.application)
        return outcome

    def _validate(self, code: str, context: ValidationContext) -> ValidationOutcome:
        definition = self._catalog.get(code) if code else None
        if definition is None:
            return ValidationOutcome.rejected(
                code, RejectionReason.INVALID_CODE, "Invalid promo code."
            )

        if not definition.is_live(self._clock()):
            return ValidationOutcome.rejected(
                code, RejectionReason.EXPIRED, f'Promo code "{code}" has expired.'
            )

        if self._ledger.has_used(context.user_id, code):
            return ValidationOutcome.rejected(
                code,
                RejectionReason.ALREADY_USED,
                f'You have already used the promo code "{code}".',
            )

        conditions = definition.conditions
        if conditions.first_order_only and not context.is_first_order:
            return ValidationOutcome.rejected(
                code,
                RejectionReason.NOT_FIRST_ORDER_ELIGIBLE,
                f"{code} is only for first-time users.",
            )

        required_tier = conditions.required_speed_tier
        if required_tier is not None and required_tier is not context.speed_tier:
            return ValidationOutcome.rejected(
                code,
                RejectionReason.WRONG_SHIPPING_TYPE,
                f"{code} is only valid for {required_tier.value} delivery.",
            )

        if context.cart_subtotal < conditions.min_cart_value:
            return ValidationOutcome.rejected(
                code,
                RejectionReason.BELOW_MINIMUM,
                f"Minimum cart total {conditions.min_cart_value} "
                f"required for {code}.",
            )

        return ValidationOutcome.accepted(
            compute_discount(definition, context.shipping_fee)
        )

    def checkout_promotions(
        self, now: datetime | None = None
    ) -> list[PromotionDefinition]:
        return self._catalog.checkout_promotions(now or self._clock())

    def visible_promotions(
        self, user_id: str | None = None, now: datetime | None = None
    ) -> list[PromotionDefinition]:
        """Advertised codes, minus those ``user_id`` already redeemed."""
        live = self._catalog.banner_promotions(now or self._clock())
        if user_id is None:
            return live
        return self._ledger.available_codes(user_id, live)
