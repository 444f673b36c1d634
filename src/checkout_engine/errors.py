"""Exception hierarchy for the checkout engine.

Promotion rejections are not exceptions: they are returned as
``RejectionReason`` values so callers can render them directly.
"""

from __future__ import annotations


class CheckoutEngineError(Exception):
    """Base error for checkout engine failures."""


class CheckoutError(CheckoutEngineError):
    """Invalid checkout input (empty cart, missing user, bad payment)."""


class CheckoutStateError(CheckoutError):
    """Operation attempted from a state that does not allow it."""


class StoreError(CheckoutEngineError):
    """A write or read against the order/catalog store failed."""


class StockError(StoreError):
    """Stock decrement refused because it would go negative."""


class UsageLedgerError(CheckoutEngineError):
    """The promotion usage ledger could not be read or written."""


class CarrierClientError(CheckoutEngineError):
    """Base error for carrier rate lookup failures."""
