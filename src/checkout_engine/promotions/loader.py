"""Load promotion definitions from a YAML document.

Expected shape::

    promotions:
      - code: EXPRESS50
        kind: percentage_shipping
        value: 50
        applies_to: express_shipping
        conditions:
          required_speed_tier: express
          min_cart_value: 499
        valid_from: 2024-01-01
        valid_until: 2027-12-31
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
import enum
from pathlib import Path
from typing import Any, TypedDict, TypeVar, cast

from yaml import safe_load

from checkout_engine.entities import SpeedTier
from checkout_engine.promotions.catalog import (
    AppliesTo,
    PromotionCatalog,
    PromotionConditions,
    PromotionDefinition,
    PromotionKind,
)


E = TypeVar("E", bound=enum.Enum)


class RawConditions(TypedDict, total=False):
    first_order_only: bool
    required_speed_tier: str | None
    min_cart_value: int


class RawPromotionRecord(TypedDict, total=False):
    code: str
    kind: str
    value: int
    applies_to: str
    conditions: RawConditions
    valid_from: Any
    valid_until: Any
    active: bool
    visible: bool
    show_in_checkout: bool
    name: str
    description: str
    banner_text: str


class RawPromotionsDoc(TypedDict, total=False):
    promotions: list[RawPromotionRecord]


def _load_yaml(path: Path) -> RawPromotionsDoc:
    if not path.exists():
        raise FileNotFoundError(f"promotions yaml not found at {path}")

    with path.open("r", encoding="utf-8") as handle:
        loaded: object = safe_load(handle)

    if loaded is None:
        return {"promotions": []}

    if not isinstance(loaded, dict):
        raise ValueError("promotions yaml must be a mapping with a 'promotions' key")

    return cast(RawPromotionsDoc, loaded)


def _coerce_datetime(value: Any, *, field_name: str, end_of_day: bool) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.max if end_of_day else time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValueError(f"{field_name} is not an ISO date: {value!r}") from e
    else:
        raise ValueError(f"{field_name} is required")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_enum(enum_type: type[E], raw: Any, field_name: str) -> E:
    try:
        return enum_type(str(raw).strip().lower())
    except ValueError as e:
        raise ValueError(f"invalid {field_name}: {raw!r}") from e


def _parse_conditions(raw: RawConditions | None) -> PromotionConditions:
    if raw is None:
        return PromotionConditions()
    if not isinstance(raw, dict):
        raise ValueError("'conditions' must be a mapping")
    tier_raw = raw.get("required_speed_tier")
    required_tier = (
        None
        if tier_raw is None
        else _parse_enum(SpeedTier, tier_raw, "required_speed_tier")
    )
    return PromotionConditions(
        first_order_only=bool(raw.get("first_order_only", False)),
        required_speed_tier=required_tier,
        min_cart_value=int(raw.get("min_cart_value", 0)),
    )


def parse_promotion_record(record: RawPromotionRecord) -> PromotionDefinition:
    """Validate one raw record and build a definition.

    Raises:
        ValueError: On missing or malformed fields
    """
    if not isinstance(record, dict):
        raise ValueError("each promotion must be a mapping")
    code = record.get("code")
    if not code:
        raise ValueError("promotion 'code' is required")

    return PromotionDefinition(
        code=str(code),
        kind=_parse_enum(PromotionKind, record.get("kind"), f"{code}.kind"),
        value=int(record.get("value", 0)),
        applies_to=_parse_enum(
            AppliesTo, record.get("applies_to", "subtotal"), f"{code}.applies_to"
        ),
        conditions=_parse_conditions(record.get("conditions")),
        valid_from=_coerce_datetime(
            record.get("valid_from"), field_name=f"{code}.valid_from", end_of_day=False
        ),
        valid_until=_coerce_datetime(
            record.get("valid_until"), field_name=f"{code}.valid_until", end_of_day=True
        ),
        active=bool(record.get("active", True)),
        visible=bool(record.get("visible", True)),
        show_in_checkout=bool(record.get("show_in_checkout", True)),
        name=str(record.get("name", "")),
        description=str(record.get("description", "")),
        banner_text=str(record.get("banner_text", "")),
    )


def load_catalog_from_yaml(path: Path) -> PromotionCatalog:
    """Load a promotion catalog from a YAML file."""
    raw = _load_yaml(path)
    records = raw.get("promotions")
    if records is None:
        return PromotionCatalog([])
    if not isinstance(records, list):
        raise ValueError("'promotions' must be a list")
    return PromotionCatalog.from_definitions(
        parse_promotion_record(record) for record in records
    )
