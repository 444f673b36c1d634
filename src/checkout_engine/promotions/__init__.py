"""Promotion catalog and validation engine."""

from checkout_engine.promotions.catalog import (
    AppliesTo,
    PromotionCatalog,
    PromotionConditions,
    PromotionDefinition,
    PromotionKind,
    default_catalog,
    normalize_code,
)
from checkout_engine.promotions.engine import (
    PromotionEngine,
    Rejection,
    RejectionReason,
    ValidationContext,
    ValidationOutcome,
    compute_discount,
)
from checkout_engine.promotions.loader import load_catalog_from_yaml

__all__ = [
    "AppliesTo",
    "PromotionCatalog",
    "PromotionConditions",
    "PromotionDefinition",
    "PromotionEngine",
    "PromotionKind",
    "Rejection",
    "RejectionReason",
    "ValidationContext",
    "ValidationOutcome",
    "compute_discount",
    "default_catalog",
    "load_catalog_from_yaml",
    "normalize_code",
]
