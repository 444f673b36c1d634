"""Tests for PromotionEngine validation and discount computation."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from checkout_engine.adapters.db.facade import DB
from checkout_engine.entities import SpeedTier
from checkout_engine.ledger.usage import UsageContext, UsageLedger
from checkout_engine.promotions.catalog import (
    AppliesTo,
    PromotionCatalog,
    PromotionDefinition,
    PromotionKind,
    default_catalog,
)
from checkout_engine.promotions.engine import (
    PromotionEngine,
    RejectionReason,
    ValidationContext,
    compute_discount,
)
from checkout_engine.promotions.logger import PromotionLogger
from tests.fixtures.checkout import fixed_clock


def create_promotion_engine(
    db: DB, catalog: PromotionCatalog | None = None
) -> tuple[PromotionEngine, UsageLedger]:
    ledger = UsageLedger(db, clock=fixed_clock)
    engine = PromotionEngine(
        catalog or default_catalog(),
        ledger,
        clock=fixed_clock,
        promotion_logger=MagicMock(spec=PromotionLogger),
    )
    return engine, ledger


def make_context(
    cart_subtotal: int = 900,
    speed_tier: SpeedTier = SpeedTier.STANDARD,
    is_first_order: bool = True,
    shipping_fee: int = 80,
    user_id: str = "user-1",
) -> ValidationContext:
    return ValidationContext(
        cart_subtotal=cart_subtotal,
        speed_tier=speed_tier,
        user_id=user_id,
        is_first_order=is_first_order,
        shipping_fee=shipping_fee,
    )


class TestPromotionEngineValidate:
    """Tests for PromotionEngine.validate."""

    def test_fixed_amount_below_minimum_is_rejected(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)

        outcome = engine.validate("ABHI100", make_context(cart_subtotal=600))

        assert not outcome.ok
        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.BELOW_MINIMUM

    def test_free_delivery_covers_standard_fee(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)

        outcome = engine.validate("FREEDELIVERY", make_context())

        assert outcome.ok
        assert outcome.application is not None
        assert outcome.application.discount == 0
        assert outcome.application.shipping_discount == 80

    def test_express_percentage_uses_current_fee(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)
        context = make_context(
            cart_subtotal=500,
            speed_tier=SpeedTier.EXPRESS,
            is_first_order=False,
            shipping_fee=150,
        )

        outcome = engine.validate("EXPRESS50", context)

        assert outcome.application is not None
        assert outcome.application.shipping_discount == 75
        assert outcome.application.discount == 0

    def test_fixed_amount_at_minimum_applies(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)

        outcome = engine.validate(" abhi100 ", make_context(cart_subtotal=799))

        assert outcome.application is not None
        assert outcome.application.code == "ABHI100"
        assert outcome.application.discount == 100
        assert outcome.application.shipping_discount == 0

    @pytest.mark.parametrize("code", ["", "   ", None, "NOPE"])
    def test_unknown_codes_are_invalid(self, db: DB, code: str | None) -> None:
        engine, _ = create_promotion_engine(db)

        outcome = engine.validate(code, make_context())

        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.INVALID_CODE

    def test_expired_code_is_rejected(self, db: DB) -> None:
        catalog = PromotionCatalog(
            [
                PromotionDefinition(
                    code="SUMMER",
                    kind=PromotionKind.FIXED_AMOUNT,
                    value=50,
                    applies_to=AppliesTo.SUBTOTAL,
                    valid_from=datetime(2025, 6, 1, tzinfo=UTC),
                    valid_until=datetime(2025, 8, 31, tzinfo=UTC),
                )
            ]
        )
        engine, _ = create_promotion_engine(db, catalog)

        outcome = engine.validate("SUMMER", make_context())

        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.EXPIRED

    def test_already_used_is_checked_before_conditions(self, db: DB) -> None:
        """A redeemed code reports ALREADY_USED even if other rules fail too."""
        # Input
        engine, ledger = create_promotion_engine(db)
        ledger.mark_used("user-1", "FREEDELIVERY", UsageContext("order-1"))
        context = make_context(speed_tier=SpeedTier.EXPRESS, is_first_order=False)

        # Act
        outcome = engine.validate("FREEDELIVERY", context)

        # Assert
        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.ALREADY_USED
        assert "FREEDELIVERY" in outcome.rejection.message

    def test_first_order_rule_before_speed_rule(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)
        context = make_context(speed_tier=SpeedTier.EXPRESS, is_first_order=False)

        outcome = engine.validate("FREEDELIVERY", context)

        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.NOT_FIRST_ORDER_ELIGIBLE

    def test_speed_rule_before_minimum(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)
        context = make_context(cart_subtotal=100, speed_tier=SpeedTier.STANDARD)

        outcome = engine.validate("EXPRESS50", context)

        assert outcome.rejection is not None
        assert outcome.rejection.reason is RejectionReason.WRONG_SHIPPING_TYPE

    def test_validate_never_marks_usage(self, db: DB) -> None:
        engine, ledger = create_promotion_engine(db)

        for _ in range(3):
            assert engine.validate("FREEDELIVERY", make_context()).ok

        assert ledger.has_used("user-1", "FREEDELIVERY") is False
        assert ledger.get_record("user-1") is None


class TestComputeDiscount:
    """Tests for discount math per promotion kind."""

    def test_percentage_rounds_half_up(self) -> None:
        definition = default_catalog().get("EXPRESS50")
        assert definition is not None

        application = compute_discount(definition, 125)

        assert application.shipping_discount == 63

    def test_free_shipping_on_zero_fee(self) -> None:
        definition = default_catalog().get("FREEDELIVERY")
        assert definition is not None

        application = compute_discount(definition, 0)

        assert application.shipping_discount == 0


class TestVisiblePromotions:
    """Tests for advertised codes."""

    def test_hides_hidden_and_redeemed_codes(self, db: DB) -> None:
        engine, ledger = create_promotion_engine(db)
        ledger.mark_used("user-1", "EXPRESS50", UsageContext("order-1"))

        codes = [d.code for d in engine.visible_promotions("user-1")]

        assert codes == ["FREEDELIVERY"]

    def test_anonymous_sees_all_visible_codes(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)

        codes = [d.code for d in engine.visible_promotions()]

        assert codes == ["EXPRESS50", "FREEDELIVERY"]

    def test_checkout_listing_includes_hidden_codes(self, db: DB) -> None:
        engine, _ = create_promotion_engine(db)

        codes = [d.code for d in engine.checkout_promotions()]

        assert codes == ["ABHI100", "EXPRESS50", "FREEDELIVERY"]


class TestValidationContext:
    def test_negative_fee_rejected(self) -> None:
        with pytest.raises(ValueError):
            make_context(shipping_fee=-1)
