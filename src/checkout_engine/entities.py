"""Checkout domain entities shared by delivery, promotion and order logic.

Amounts are integers in currency minor units.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import enum


class SpeedTier(enum.Enum):
    """Delivery service level chosen by the buyer."""

    STANDARD = "standard"
    EXPRESS = "express"


class QuoteSource(enum.Enum):
    CARRIER = "carrier"
    HEURISTIC = "heuristic"


@dataclass(frozen=True, slots=True)
class CartLine:
    """Immutable snapshot of one cart line taken at checkout start."""

    product_id: str
    unit_price: int
    quantity: int = 1
    weight: float = 0.0  # kg per unit
    length: float = 0.0  # cm
    breadth: float = 0.0  # cm
    height: float = 0.0  # cm per unit

    def __post_init__(self) -> None:
        if not self.product_id.strip():
            msg = "product_id is required"
            raise ValueError(msg)
        if self.quantity < 1:
            msg = f"quantity must be >= 1 for {self.product_id}"
            raise ValueError(msg)
        if self.unit_price < 0:
            msg = f"unit_price must be >= 0 for {self.product_id}"
            raise ValueError(msg)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


def cart_subtotal(lines: tuple[CartLine, ...] | list[CartLine]) -> int:
    return sum(line.line_total for line in lines)


@dataclass(frozen=True, slots=True)
class Address:
    """Delivery address. Pricing only reads ``postal_code``."""

    postal_code: str
    full_name: str | None = None
    phone: str | None = None
    line1: str | None = None
    city: str | None = None
    state: str | None = None


@dataclass(frozen=True, slots=True)
class DeliveryQuote:
    """Shipping fee and ETA for one speed tier. Never persisted."""

    fee: int
    carrier_label: str
    eta: str
    source: QuoteSource
    speed_tier: SpeedTier = SpeedTier.STANDARD


@dataclass(frozen=True, slots=True)
class PromotionApplication:
    """Result of a successful validation, held until the order commits."""

    code: str
    discount: int
    shipping_discount: int


@dataclass(frozen=True, slots=True)
class UsageHistoryEntry:
    code: str
    used_at: datetime
    order_id: str | None
    discount_amount: int
    shipping_discount_amount: int


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """Per-user redemption record, created on the first redemption."""

    user_id: str
    used_codes: frozenset[str]
    history: tuple[UsageHistoryEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class Order:
    """Order written once, at payment confirmation."""

    id: str
    user_id: str
    cart_snapshot: tuple[CartLine, ...]
    subtotal: int
    discount: int
    shipping_fee: int
    shipping_discount: int
    total: int
    speed_tier: SpeedTier
    payment_ref: str
    promo_code_applied: str | None = None
    carrier_label: str | None = None
    eta: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
