"""Promotion usage ledger."""

from checkout_engine.ledger.usage import UsageContext, UsageLedger, UsageStore

__all__ = [
    "UsageContext",
    "UsageLedger",
    "UsageStore",
]
