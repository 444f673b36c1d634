"""Per-user promotion usage ledger.

A code is recorded as used only when it was applied to a finalized order.
Validation reads the ledger; only order finalization writes it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from checkout_engine.entities import UsageRecord
from checkout_engine.errors import UsageLedgerError
from checkout_engine.ledger.logger import LedgerLogger
from checkout_engine.promotions.catalog import PromotionDefinition, normalize_code


class UsageStore(Protocol):
    """Storage contract for usage records, implemented by the DB facade."""

    def fetch_used_codes(self, user_id: str) -> frozenset[str]: ...

    def fetch_usage_record(self, user_id: str) -> UsageRecord | None: ...

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
        """Insert unless present. Must be a conditional (atomic) write."""
        ...


@dataclass(frozen=True, slots=True)
class UsageContext:
    """Order details recorded alongside a redemption."""

    order_id: str | None
    discount_amount: int = 0
    shipping_discount_amount: int = 0


class UsageLedger:
    """Check-and-mark API over a ``UsageStore``."""

    def __init__(
        self,
        store: UsageStore,
        *,
        clock: Callable[[], datetime] | None = None,
        ledger_logger: LedgerLogger | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self._log = ledger_logger or LedgerLogger()

    def has_used(self, user_id: str, code: str) -> bool:
        """Return True if the user already redeemed ``code``.

        Users without a record have used nothing.

        Raises:
            UsageLedgerError: If the store cannot be read
        """
        try:
            used = self._store.fetch_used_codes(user_id)
        except Exception as e:
            self._log.read_failed(user_id, e)
            raise UsageLedgerError(
                f"Failed to read promotion usage for user {user_id}: {e}"
            ) from e
        return normalize_code(code) in used

    def mark_used(self, user_id: str, code: str, usage: UsageContext) -> bool:
        """Record a redemption.

        Idempotent: a repeated call for the same (user, code) changes nothing
        and appends no history entry.

        Returns:
            True if the code was newly marked, False if it was already present

        Raises:
            UsageLedgerError: If the write fails; never reported as success
        """
        normalized = normalize_code(code)
        if not normalized:
            raise ValueError("code is required")
        try:
            inserted = self._store.insert_redemption(
                user_id,
                normalized,
                used_at=self._clock(),
                order_id=usage.order_id,
                discount_amount=usage.discount_amount,
                shipping_discount_amount=usage.shipping_discount_amount,
            )
        except Exception as e:
            self._log.write_failed(user_id, normalized, usage.order_id, e)
            raise UsageLedgerError(
                f"Failed to mark {normalized} used for user {user_id}: {e}"
            ) from e

        if inserted:
            self._log.marked(user_id, normalized, usage.order_id)
        else:
            self._log.already_marked(user_id, normalized, usage.order_id)
        return inserted

    def get_record(self, user_id: str) -> UsageRecord | None:
        """Return the user's usage record, or None before any redemption."""
        try:
            return self._store.fetch_usage_record(user_id)
        except Exception as e:
            self._log.read_failed(user_id, e)
            raise UsageLedgerError(
                f"Failed to read promotion usage for user {user_id}: {e}"
            ) from e

    def available_codes(
        self,
        user_id: str,
        definitions: Iterable[PromotionDefinition],
    ) -> list[PromotionDefinition]:
        """Drop definitions the user has already redeemed."""
        try:
            used = self._store.fetch_used_codes(user_id)
        except Exception as e:
            self._log.read_failed(user_id, e)
            raise UsageLedgerError(
                f"Failed to read promotion usage for user {user_id}: {e}"
            ) from e
        return [d for d in definitions if d.code not in used]
