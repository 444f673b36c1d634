from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path


@dataclass(frozen=True, slots=True)
class CheckoutConfig:
    """Checkout engine configuration loaded at process startup."""

    database_url: str = "sqlite:///checkout.db"
    warehouse_postal_code: str = "201206"
    carrier_rate_endpoint: str | None = None
    carrier_timeout_seconds: float = 4.0
    standard_base_fee: int = 60
    express_base_fee: int = 120
    promotions_file: Path | None = None


def _optional_env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    return value


def load_checkout_config_from_env() -> CheckoutConfig:
    """Load checkout config from env and validate startup requirements."""
    database_url = os.environ.get(
        "CHECKOUT_DATABASE_URL", "sqlite:///checkout.db"
    ).strip()
    if not database_url:
        raise ValueError("CHECKOUT_DATABASE_URL must not be empty")

    warehouse_postal_code = os.environ.get(
        "CHECKOUT_WAREHOUSE_POSTAL_CODE", "201206"
    ).strip()
    if not warehouse_postal_code:
        raise ValueError("CHECKOUT_WAREHOUSE_POSTAL_CODE must not be empty")

    timeout_raw = os.environ.get("CHECKOUT_CARRIER_TIMEOUT_SECONDS", "4").strip()
    try:
        carrier_timeout_seconds = float(timeout_raw)
    except ValueError as e:
        raise ValueError(
            f"CHECKOUT_CARRIER_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
        ) from e
    if carrier_timeout_seconds <= 0:
        raise ValueError("CHECKOUT_CARRIER_TIMEOUT_SECONDS must be > 0")

    promotions_file = _optional_env("CHECKOUT_PROMOTIONS_FILE")

    return CheckoutConfig(
        database_url=database_url,
        warehouse_postal_code=warehouse_postal_code,
        carrier_rate_endpoint=_optional_env("CHECKOUT_CARRIER_RATE_ENDPOINT"),
        carrier_timeout_seconds=carrier_timeout_seconds,
        standard_base_fee=_int_env("CHECKOUT_STANDARD_BASE_FEE", 60),
        express_base_fee=_int_env("CHECKOUT_EXPRESS_BASE_FEE", 120),
        promotions_file=Path(promotions_file) if promotions_file else None,
    )
