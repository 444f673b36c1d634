"""Delivery fee estimation."""

from checkout_engine.services.delivery.estimator import (
    DeliveryEstimator,
    select_option,
)
from checkout_engine.services.delivery.heuristic import (
    HeuristicRates,
    PackageAggregate,
    estimate_distance_km,
    heuristic_fee,
)

__all__ = [
    "DeliveryEstimator",
    "HeuristicRates",
    "PackageAggregate",
    "estimate_distance_km",
    "heuristic_fee",
    "select_option",
]
