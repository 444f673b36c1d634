from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import UTC, datetime
import json
from typing import Any, cast

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from checkout_engine.adapters.db.models import (
    Base,
    OrderRecord,
    Product,
    PromoRedemption,
    PromoUsageRecord,
    UserAccount,
)
from checkout_engine.entities import (
    CartLine,
    Order,
    SpeedTier,
    UsageHistoryEntry,
    UsageRecord,
)
from checkout_engine.errors import StockError, StoreError


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class DB:
    """Database service layer for orders, counters and promotion usage."""

    def __init__(self, url: str) -> None:
        """Initialize database connection.

        Args:
            url: Database URL (e.g., "sqlite:///checkout.db")
        """
        self._url = url
        self._engine = create_engine(url, echo=False)
        self._session_factory = sessionmaker(bind=self._engine, class_=Session)

    @property
    def url(self) -> str:
        return self._url

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for database sessions."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create all tables if they do not exist."""
        Base.metadata.create_all(self._engine)

    # Users -----------------------------------------------------------------

    def get_order_count(self, user_id: str) -> int:
        """Return the user's finalized order count (0 when unknown)."""
        with self.session() as session:  # type: Session
            user = session.get(UserAccount, user_id)
            return user.order_count if user else 0

    def is_first_order(self, user_id: str) -> bool:
        return self.get_order_count(user_id) == 0

    def ensure_user(self, user_id: str) -> UserAccount:
        """Return the user's account row, creating it with zero orders."""
        with self.session() as session:  # type: Session
            user = session.get(UserAccount, user_id)
            if user is None:
                user = UserAccount(user_id=user_id, order_count=0)
                session.add(user)
                session.flush()
                session.refresh(user)
            session.expunge(user)
            return user

    def increment_order_count(self, user_id: str) -> int:
        """Add one to the user's order counter, creating the row if needed.

        Returns:
            The new order count
        """
        with self.session() as session:  # type: Session
            result = cast(
                CursorResult[Any],
                session.execute(
                    update(UserAccount)
                    .where(UserAccount.user_id == user_id)
                    .values(
                        order_count=UserAccount.order_count + 1,
                        updated_at=func.current_timestamp(),
                    )
                ),
            )
            if result.rowcount == 0:
                session.add(UserAccount(user_id=user_id, order_count=1))
                return 1
            user = session.get(UserAccount, user_id)
            return user.order_count if user else 1

    # Products --------------------------------------------------------------

    def upsert_product(
        self,
        product_id: str,
        *,
        stock: int,
        name: str | None = None,
    ) -> Product:
        """Create or update a product's stock level."""
        with self.session() as session:  # type: Session
            product = session.get(Product, product_id)
            if product is None:
                product = Product(
                    product_id=product_id, name=name, stock=stock, purchase_count=0
                )
                session.add(product)
            else:
                product.stock = stock
                if name is not None:
                    product.name = name
            session.flush()
            session.refresh(product)
            session.expunge(product)
            return product

    def get_product(self, product_id: str) -> Product | None:
        with self.session() as session:  # type: Session
            product = session.get(Product, product_id)
            if product:
                session.expunge(product)
            return product

    def adjust_product_counters(self, product_id: str, quantity: int) -> None:
        """Decrement stock and increment purchases by ``quantity``.

        The update is conditional on enough stock, so concurrent checkouts
        cannot drive stock negative.

        Raises:
            StockError: If stock is lower than ``quantity``
            StoreError: If the product does not exist
        """
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        with self.session() as session:  # type: Session
            result = cast(
                CursorResult[Any],
                session.execute(
                    update(Product)
                    .where(
                        Product.product_id == product_id,
                        Product.stock >= quantity,
                    )
                    .values(
                        stock=Product.stock - quantity,
                        purchase_count=Product.purchase_count + quantity,
                        updated_at=func.current_timestamp(),
                    )
                ),
            )
            if result.rowcount == 1:
                return
            product = session.get(Product, product_id)
            if product is None:
                raise StoreError(f"Unknown product '{product_id}'")
            raise StockError(
                f"Insufficient stock for '{product_id}': "
                f"have {product.stock}, need {quantity}"
            )

    # Orders ----------------------------------------------------------------

    def save_order(self, order: Order) -> str:
        """Persist a finalized order. Returns its id."""
        with self.session() as session:  # type: Session
            session.add(
                OrderRecord(
                    order_id=order.id,
                    user_id=order.user_id,
                    cart_snapshot=json.dumps(
                        [asdict(line) for line in order.cart_snapshot]
                    ),
                    subtotal=order.subtotal,
                    discount=order.discount,
                    shipping_fee=order.shipping_fee,
                    shipping_discount=order.shipping_discount,
                    total=order.total,
                    speed_tier=order.speed_tier.value,
                    promo_code=order.promo_code_applied,
                    payment_ref=order.payment_ref,
                    carrier_label=order.carrier_label,
                    eta=order.eta,
                    created_at=order.created_at,
                )
            )
        return order.id

    def get_order(self, order_id: str) -> Order | None:
        with self.session() as session:  # type: Session
            record = session.get(OrderRecord, order_id)
            if record is None:
                return None
            lines = tuple(CartLine(**raw) for raw in json.loads(record.cart_snapshot))
            return Order(
                id=record.order_id,
                user_id=record.user_id,
                cart_snapshot=lines,
                subtotal=record.subtotal,
                discount=record.discount,
                shipping_fee=record.shipping_fee,
                shipping_discount=record.shipping_discount,
                total=record.total,
                speed_tier=SpeedTier(record.speed_tier),
                payment_ref=record.payment_ref,
                promo_code_applied=record.promo_code,
                carrier_label=record.carrier_label,
                eta=record.eta,
                created_at=_as_utc(record.created_at),
            )

    # Promotion usage -------------------------------------------------------

    def fetch_used_codes(self, user_id: str) -> frozenset[str]:
        with self.session() as session:  # type: Session
            codes = session.scalars(
                select(PromoRedemption.code).where(PromoRedemption.user_id == user_id)
            ).all()
            return frozenset(codes)

    def fetch_usage_record(self, user_id: str) -> UsageRecord | None:
        """Load a user's usage record with its history, oldest first."""
        with self.session() as session:  # type: Session
            record = session.get(PromoUsageRecord, user_id)
            if record is None:
                return None
            history = tuple(
                UsageHistoryEntry(
                    code=row.code,
                    used_at=_as_utc(row.used_at),
                    order_id=row.order_id,
                    discount_amount=row.discount_amount,
                    shipping_discount_amount=row.shipping_discount_amount,
                )
                for row in record.redemptions
            )
            return UsageRecord(
                user_id=record.user_id,
                used_codes=frozenset(entry.code for entry in history),
                history=history,
            )

    def insert_redemption(
        self,
        user_id: str,
        code: str,
        *,
        used_at: datetime,
        order_id: str | None,
        discount_amount: int,
        shipping_discount_amount: int,
    ) -> bool:
        """Record a redemption unless the user already redeemed the code.

        Returns:
            True if inserted, False if the (user, code) pair already existed
        """
        with self.session() as session:  # type: Session
            if session.get(PromoUsageRecord, user_id) is None:
                session.add(PromoUsageRecord(user_id=user_id))
                try:
                    session.flush()
                except IntegrityError:
                    # Another writer created the record first
                    session.rollback()

            existing = session.scalar(
                select(PromoRedemption.redemption_id).where(
                    PromoRedemption.user_id == user_id,
                    PromoRedemption.code == code,
                )
            )
            if existing is not None:
                return False

            session.add(
                PromoRedemption(
                    user_id=user_id,
                    code=code,
                    used_at=used_at,
                    order_id=order_id,
                    discount_amount=discount_amount,
                    shipping_discount_amount=shipping_discount_amount,
                )
            )
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                return False
            record = session.get(PromoUsageRecord, user_id)
            if record is not None:
                record.updated_at = datetime.now(UTC)
            return True
