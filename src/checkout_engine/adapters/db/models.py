from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    TIMESTAMP,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class UserAccount(Base):
    """Order counter for a user. Identity lives elsewhere."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    order_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class Product(Base):
    """Stock and purchase counters for a catalog product."""

    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    stock: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    purchase_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class OrderRecord(Base):
    """Finalized order with its frozen cart and pricing snapshot."""

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    cart_snapshot: Mapped[str] = mapped_column(
        Text, nullable=False
    )  # JSON array stored as TEXT
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    discount: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_discount: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    speed_tier: Mapped[str] = mapped_column(String, nullable=False)
    promo_code: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_ref: Mapped[str] = mapped_column(String, nullable=False)
    carrier_label: Mapped[str | None] = mapped_column(String, nullable=True)
    eta: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)


class PromoUsageRecord(Base):
    """Per-user usage document, created on the first redemption."""

    __tablename__ = "promo_usage_records"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    # Relationships
    redemptions: Mapped[list[PromoRedemption]] = relationship(
        "PromoRedemption",
        back_populates="usage_record",
        cascade="all, delete-orphan",
        order_by="PromoRedemption.redemption_id",
    )


class PromoRedemption(Base):
    """One redeemed code. The unique key makes redemption a conditional write."""

    __tablename__ = "promo_redemptions"
    __table_args__ = (
        UniqueConstraint("user_id", "code", name="uq_promo_redemptions_user_code"),
    )

    redemption_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("promo_usage_records.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    used_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    discount_amount: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    shipping_discount_amount: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )

    # Relationships
    usage_record: Mapped[PromoUsageRecord] = relationship(
        "PromoUsageRecord", back_populates="redemptions"
    )
