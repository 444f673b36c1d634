"""Checkout session: address and speed selection, promotion, payment, commit."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import uuid

from checkout_engine.entities import (
    Address,
    CartLine,
    DeliveryQuote,
    Order,
    PromotionApplication,
    SpeedTier,
    cart_subtotal,
)
from checkout_engine.errors import CheckoutError, CheckoutStateError
from checkout_engine.ledger.usage import UsageContext, UsageLedger
from checkout_engine.promotions.engine import (
    PromotionEngine,
    RejectionReason,
    ValidationContext,
    ValidationOutcome,
)
from checkout_engine.services.checkout.logger import CheckoutLogger
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
from checkout_engine.services.delivery.estimator import DeliveryEstimator

_EDITABLE_STATES = frozenset(
    {
        CheckoutState.SELECTING_ADDRESS,
        CheckoutState.SPEED_SELECTED,
        CheckoutState.PROMO_APPLIED,
        CheckoutState.PROMO_REJECTED,
    }
)


def _new_order_id() -> str:
    return uuid.uuid4().hex


class CheckoutOrchestrator:
    """Drives one checkout session from address entry to a committed order.

    Nothing is written before ``finalize``; abandoning a session earlier
    leaves no state behind.
    """

    def __init__(
        self,
        user: CheckoutUser,
        cart_lines: Sequence[CartLine],
        *,
        estimator: DeliveryEstimator,
        engine: PromotionEngine,
        ledger: UsageLedger,
        store: CheckoutStore,
        order_id_factory: Callable[[], str] | None = None,
        checkout_logger: CheckoutLogger | None = None,
    ) -> None:
        """Start a session.

        Args:
            user: Buyer and their first-order flag
            cart_lines: Cart snapshot; copied, later cart edits are not seen
            estimator: Delivery fee source
            engine: Promotion validator
            ledger: Usage ledger written at finalization
            store: Order and counter store
            order_id_factory: Order id generator (tests)
            checkout_logger: Logger override (tests)

        Raises:
            CheckoutError: If the cart is empty or the user id is blank
        """
        if not user.user_id.strip():
            raise CheckoutError("user_id is required to check out")
        if not cart_lines:
            raise CheckoutError("cannot check out an empty cart")

        self._user = user
        self._lines = tuple(cart_lines)
        self._subtotal = cart_subtotal(self._lines)
        self._estimator = estimator
        self._engine = engine
        self._ledger = ledger
        self._store = store
        self._order_id_factory = order_id_factory or _new_order_id
        self._log = checkout_logger or CheckoutLogger()

        self._state = CheckoutState.SELECTING_ADDRESS
        self._address: Address | None = None
        self._speed_tier = SpeedTier.STANDARD
        self._quotes: dict[SpeedTier, DeliveryQuote] = {}
        self._application: PromotionApplication | None = None
        self._frozen: PriceBreakdown | None = None
        self._result: FinalizationResult | None = None

    # Accessors -------------------------------------------------------------

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def user(self) -> CheckoutUser:
        return self._user

    @property
    def cart_lines(self) -> tuple[CartLine, ...]:
        return self._lines

    @property
    def subtotal(self) -> int:
        return self._subtotal

    @property
    def address(self) -> Address | None:
        return self._address

    @property
    def speed_tier(self) -> SpeedTier:
        return self._speed_tier

    @property
    def quotes(self) -> dict[SpeedTier, DeliveryQuote]:
        return dict(self._quotes)

    @property
    def current_quote(self) -> DeliveryQuote | None:
        return self._quotes.get(self._speed_tier)

    @property
    def application(self) -> PromotionApplication | None:
        return self._application

    @property
    def result(self) -> FinalizationResult | None:
        return self._result

    # Selection -------------------------------------------------------------

    async def select_address(self, address: Address) -> ValidationOutcome | None:
        """Quote both speed tiers for ``address``.

        An applied promotion is revalidated against the new fee.

        Returns:
            The revalidation outcome, or None when no promotion was applied
        """
        self._require_editable("select an address")
        quotes = await self._estimator.estimate_both(address.postal_code, self._lines)
        self._address = address
        self._quotes = dict(quotes)
        self._state = CheckoutState.SPEED_SELECTED
        self._log.quotes_ready(self._user.user_id, self._quotes)
        return self._revalidate()

    async def select_speed(self, tier: SpeedTier) -> ValidationOutcome | None:
        """Switch the speed tier, revalidating any applied promotion.

        Returns:
            The revalidation outcome, or None when nothing was revalidated

        Raises:
            CheckoutStateError: If no address was selected yet
        """
        self._require_editable("select a delivery speed")
        if self._address is None:
            raise CheckoutStateError("select an address before choosing a speed")

        if tier not in self._quotes:
            self._quotes[tier] = await self._estimator.estimate(
                self._address.postal_code, self._lines, tier
            )
        if tier is self._speed_tier:
            return None

        self._speed_tier = tier
        if self._application is None:
            self._state = CheckoutState.SPEED_SELECTED
        return self._revalidate()

    # Promotions ------------------------------------------------------------

    def apply_promotion(self, code: str) -> ValidationOutcome:
        """Validate ``code`` and hold it on success.

        A successful apply replaces any previous application; a rejection
        clears it.

        Raises:
            CheckoutStateError: If no delivery quote is available yet
        """
        self._require_editable("apply a promotion")
        self._require_quote()
        return self._evaluate(code)

    def remove_promotion(self) -> None:
        self._require_editable("remove a promotion")
        self._application = None
        if self._state is not CheckoutState.SELECTING_ADDRESS:
            self._state = CheckoutState.SPEED_SELECTED

    def price(self) -> PriceBreakdown:
        """Current price breakdown.

        Raises:
            CheckoutStateError: If no delivery quote is available yet
        """
        if self._frozen is not None:
            return self._frozen
        quote = self._require_quote()
        return PriceBreakdown.compute(self._subtotal, quote.fee, self._application)

    # Payment ---------------------------------------------------------------

    def begin_payment(self) -> PriceBreakdown:
        """Freeze pricing and hand off to the payment gateway."""
        self._require_editable("start payment")
        self._require_quote()
        breakdown = self.price()
        self._frozen = breakdown
        self._state = CheckoutState.AWAITING_PAYMENT
        self._log.payment_started(self._user.user_id, breakdown)
        return breakdown

    async def finalize(self, payment: PaymentConfirmation) -> FinalizationResult:
        """Commit the order and its side effects after a confirmed payment.

        Every step is attempted even when an earlier one fails; failures are
        collected on the result for reconciliation. Payment is not undone.

        Raises:
            CheckoutStateError: If payment was not started or already finalized
        """
        if self._state is not CheckoutState.AWAITING_PAYMENT:
            raise CheckoutStateError(
                f"cannot finalize from state {self._state.value}"
            )
        self._state = CheckoutState.FINALIZING
        result = await asyncio.to_thread(self._commit, payment)
        self._result = result
        self._state = result.state
        return result

    # Internals -------------------------------------------------------------

    def _commit(self, payment: PaymentConfirmation) -> FinalizationResult:
        breakdown = self._frozen
        quote = self.current_quote
        if breakdown is None or quote is None:
            raise CheckoutStateError("pricing was not frozen before finalize")

        order = Order(
            id=self._order_id_factory(),
            user_id=self._user.user_id,
            cart_snapshot=self._lines,
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            shipping_fee=breakdown.shipping_fee,
            shipping_discount=breakdown.shipping_discount,
            total=breakdown.total,
            speed_tier=self._speed_tier,
            payment_ref=payment.transaction_ref,
            promo_code_applied=self._application.code if self._application else None,
            carrier_label=quote.carrier_label,
            eta=quote.eta,
        )

        amount_mismatch = payment.amount_charged != breakdown.total
        if amount_mismatch:
            self._log.amount_mismatch(
                order.id,
                breakdown.total,
                payment.amount_charged,
                payment.transaction_ref,
            )

        failures: list[StepFailure] = []

        try:
            self._store.save_order(order)
        except Exception as e:  # noqa: BLE001 - remaining steps still run
            self._record_failure(failures, order.id, FinalizationStep.SAVE_ORDER, e)

        try:
            self._store.increment_order_count(order.user_id)
        except Exception as e:  # noqa: BLE001
            self._record_failure(
                failures, order.id, FinalizationStep.INCREMENT_ORDER_COUNT, e
            )

        conflict = False
        if self._application is not None:
            application = self._application
            try:
                inserted = self._ledger.mark_used(
                    order.user_id,
                    application.code,
                    UsageContext(
                        order_id=order.id,
                        discount_amount=application.discount,
                        shipping_discount_amount=application.shipping_discount,
                    ),
                )
            except Exception as e:  # noqa: BLE001
                self._record_failure(
                    failures, order.id, FinalizationStep.MARK_PROMOTION_USED, e
                )
            else:
                if not inserted:
                    conflict = True
                    self._log.promotion_conflict(
                        order.id, order.user_id, application.code
                    )
                    failures.append(
                        StepFailure(
                            step=FinalizationStep.MARK_PROMOTION_USED,
                            detail=RejectionReason.ALREADY_USED.value,
                        )
                    )

        for line in self._lines:
            try:
                self._store.adjust_product_counters(line.product_id, line.quantity)
            except Exception as e:  # noqa: BLE001
                self._record_failure(
                    failures,
                    order.id,
                    FinalizationStep.ADJUST_PRODUCT_COUNTERS,
                    e,
                    product_id=line.product_id,
                )

        if failures:
            state = CheckoutState.FINALIZATION_FAILED
            self._log.finalization_failed(order.id, order.user_id, tuple(failures))
        else:
            state = CheckoutState.COMPLETED
            self._log.finalized(order.id, order.user_id, order.total)

        return FinalizationResult(
            order_id=order.id,
            state=state,
            order=order,
            failures=tuple(failures),
            promotion_conflict=conflict,
            amount_mismatch=amount_mismatch,
        )

    def _record_failure(
        self,
        failures: list[StepFailure],
        order_id: str,
        step: FinalizationStep,
        error: Exception,
        *,
        product_id: str | None = None,
    ) -> None:
        self._log.step_failed(order_id, step, error, product_id=product_id)
        failures.append(
            StepFailure(step=step, detail=str(error), product_id=product_id)
        )

    def _revalidate(self) -> ValidationOutcome | None:
        if self._application is None:
            return None
        code = self._application.code
        try:
            outcome = self._evaluate(code)
        except Exception:
            # The held discount was priced for the previous selection.
            self._application = None
            self._state = CheckoutState.SPEED_SELECTED
            self._log.promotion_dropped(
                self._user.user_id, code, "revalidation_failed"
            )
            raise
        if outcome.rejection is not None:
            self._log.promotion_dropped(
                self._user.user_id, code, outcome.rejection.reason.value
            )
        return outcome

    def _evaluate(self, code: str) -> ValidationOutcome:
        context = self._validation_context()
        previous = self._state
        self._state = CheckoutState.PROMO_EVALUATING
        try:
            outcome = self._engine.validate(code, context)
        except Exception:
            self._state = previous
            raise
        self._settle(outcome)
        return outcome

    def _settle(self, outcome: ValidationOutcome) -> None:
        if outcome.application is not None:
            self._application = outcome.application
            self._state = CheckoutState.PROMO_APPLIED
        else:
            self._application = None
            self._state = CheckoutState.PROMO_REJECTED

    def _validation_context(self) -> ValidationContext:
        quote = self._require_quote()
        return ValidationContext(
            cart_subtotal=self._subtotal,
            speed_tier=self._speed_tier,
            user_id=self._user.user_id,
            is_first_order=self._user.is_first_order,
            shipping_fee=quote.fee,
        )

    def _require_quote(self) -> DeliveryQuote:
        quote = self.current_quote
        if quote is None:
            raise CheckoutStateError("select an address before pricing")
        return quote

    def _require_editable(self, action: str) -> None:
        if self._state not in _EDITABLE_STATES:
            raise CheckoutStateError(
                f"cannot {action} in state {self._state.value}"
            )
