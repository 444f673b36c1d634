from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
import enum

from checkout_engine.entities import SpeedTier


class PromotionKind(enum.Enum):
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE_SHIPPING = "percentage_shipping"
    FREE_SHIPPING = "free_shipping"


class AppliesTo(enum.Enum):
    SUBTOTAL = "subtotal"
    STANDARD_SHIPPING = "standard_shipping"
    EXPRESS_SHIPPING = "express_shipping"


_SHIPPING_TARGETS = frozenset(
    {AppliesTo.STANDARD_SHIPPING, AppliesTo.EXPRESS_SHIPPING}
)


def normalize_code(code: str | None) -> str:
    """Codes compare case-insensitively and ignore surrounding whitespace."""
    return (code or "").strip().upper()


@dataclass(frozen=True, slots=True)
class PromotionConditions:
    first_order_only: bool = False
    required_speed_tier: SpeedTier | None = None
    min_cart_value: int = 0


@dataclass(frozen=True, slots=True)
class PromotionDefinition:
    """A configured promotion. Read-only at runtime.

    ``kind`` decides how the discount is computed; ``applies_to`` must name
    the matching side of the bill (the subtotal for fixed amounts, a shipping
    tier otherwise). Naive validity timestamps are taken as UTC.
    """

    code: str
    kind: PromotionKind
    value: int
    applies_to: AppliesTo
    valid_from: datetime
    valid_until: datetime
    conditions: PromotionConditions = field(default_factory=PromotionConditions)
    active: bool = True
    visible: bool = True
    show_in_checkout: bool = True
    name: str = ""
    description: str = ""
    banner_text: str = ""

    def __post_init__(self) -> None:
        code = normalize_code(self.code)
        if not code:
            raise ValueError("promotion code is required")
        object.__setattr__(self, "code", code)
        if self.value < 0:
            raise ValueError(f"{code}: value must be >= 0")
        if self.kind is PromotionKind.PERCENTAGE_SHIPPING and self.value > 100:
            raise ValueError(f"{code}: percentage must be <= 100")
        if (self.kind is PromotionKind.FIXED_AMOUNT) == (
            self.applies_to in _SHIPPING_TARGETS
        ):
            raise ValueError(
                f"{code}: {self.kind.value} cannot apply to {self.applies_to.value}"
            )
        if self.conditions.min_cart_value < 0:
            raise ValueError(f"{code}: min_cart_value must be >= 0")
        for name in ("valid_from", "valid_until"):
            moment = getattr(self, name)
            if moment.tzinfo is None:
                object.__setattr__(self, name, moment.replace(tzinfo=UTC))
        if self.valid_from > self.valid_until:
            raise ValueError(f"{code}: valid_from is after valid_until")

    def is_live(self, now: datetime) -> bool:
        """Active and inside its validity window (inclusive)."""
        return self.active and self.valid_from <= now <= self.valid_until


class PromotionCatalog:
    """The configured set of promotions, keyed by normalized code."""

    def __init__(self, definitions: Sequence[PromotionDefinition]) -> None:
        self._by_code: dict[str, PromotionDefinition] = {}
        for definition in definitions:
            if definition.code in self._by_code:
                msg = f"Duplicate promotion code '{definition.code}'"
                raise ValueError(msg)
            self._by_code[definition.code] = definition

    @classmethod
    def from_definitions(
        cls, definitions: Iterable[PromotionDefinition]
    ) -> PromotionCatalog:
        return cls(list(definitions))

    def __len__(self) -> int:
        return len(self._by_code)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_code(code) in self._by_code

    def get(self, code: str | None) -> PromotionDefinition | None:
        return self._by_code.get(normalize_code(code))

    def all(self) -> list[PromotionDefinition]:
        return [self._by_code[k] for k in sorted(self._by_code)]

    def checkout_promotions(self, now: datetime) -> list[PromotionDefinition]:
        """Live codes offered at checkout, hidden ones included."""
        return [d for d in self.all() if d.is_live(now) and d.show_in_checkout]

    def banner_promotions(self, now: datetime) -> list[PromotionDefinition]:
        """Live codes that may be advertised."""
        return [d for d in self.all() if d.is_live(now) and d.visible]


_DEFAULT_VALID_FROM = datetime(2024, 1, 1, tzinfo=UTC)
_DEFAULT_VALID_UNTIL = datetime(2027, 12, 31, 23, 59, 59, tzinfo=UTC)


def default_catalog() -> PromotionCatalog:
    """The storefront's shipped promotion codes."""
    return PromotionCatalog.from_definitions(
        [
            PromotionDefinition(
                code="FREEDELIVERY",
                kind=PromotionKind.FREE_SHIPPING,
                value=0,
                applies_to=AppliesTo.STANDARD_SHIPPING,
                conditions=PromotionConditions(
                    first_order_only=True,
                    required_speed_tier=SpeedTier.STANDARD,
                ),
                valid_from=_DEFAULT_VALID_FROM,
                valid_until=_DEFAULT_VALID_UNTIL,
                name="Free Delivery on First Order",
                description="Get FREE standard shipping on your first order",
                banner_text="FREEDELIVERY for new users",
            ),
            PromotionDefinition(
                code="EXPRESS50",
                kind=PromotionKind.PERCENTAGE_SHIPPING,
                value=50,
                applies_to=AppliesTo.EXPRESS_SHIPPING,
                conditions=PromotionConditions(
                    required_speed_tier=SpeedTier.EXPRESS,
                    min_cart_value=499,
                ),
                valid_from=_DEFAULT_VALID_FROM,
                valid_until=_DEFAULT_VALID_UNTIL,
                name="50% Off Express Delivery",
                description="Get 50% discount on express delivery",
                banner_text="EXPRESS50: 50% OFF express delivery above 499",
            ),
            PromotionDefinition(
                code="ABHI100",
                kind=PromotionKind.FIXED_AMOUNT,
                value=100,
                applies_to=AppliesTo.SUBTOTAL,
                conditions=PromotionConditions(min_cart_value=799),
                valid_from=_DEFAULT_VALID_FROM,
                valid_until=_DEFAULT_VALID_UNTIL,
                visible=False,
                name="100 Off Order",
                description="Get 100 off on your order",
            ),
        ]
    )
