"""Wire checkout components from environment configuration."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from dotenv import load_dotenv

from checkout_engine.adapters.db.facade import DB
from checkout_engine.core.config import CheckoutConfig, load_checkout_config_from_env
from checkout_engine.entities import CartLine
from checkout_engine.infra.clients.carrier import CarrierRateClient
from checkout_engine.ledger.usage import UsageLedger
from checkout_engine.promotions.catalog import PromotionCatalog, default_catalog
from checkout_engine.promotions.engine import PromotionEngine
from checkout_engine.promotions.loader import load_catalog_from_yaml
from checkout_engine.services.checkout.orchestrator import CheckoutOrchestrator
from checkout_engine.services.checkout.types import CheckoutUser
from checkout_engine.services.delivery.estimator import DeliveryEstimator
from checkout_engine.services.delivery.heuristic import HeuristicRates


@dataclass(frozen=True, slots=True)
class CheckoutServices:
    """Long-lived collaborators shared by every checkout session."""

    config: CheckoutConfig
    db: DB
    catalog: PromotionCatalog
    estimator: DeliveryEstimator
    ledger: UsageLedger
    engine: PromotionEngine

    def start_checkout(
        self, user_id: str, cart_lines: Sequence[CartLine]
    ) -> CheckoutOrchestrator:
        """Open a checkout session, reading the first-order flag from the DB."""
        user = CheckoutUser(
            user_id=user_id, is_first_order=self.db.is_first_order(user_id)
        )
        return CheckoutOrchestrator(
            user,
            cart_lines,
            estimator=self.estimator,
            engine=self.engine,
            ledger=self.ledger,
            store=self.db,
        )


def create_catalog(config: CheckoutConfig) -> PromotionCatalog:
    if config.promotions_file is None:
        return default_catalog()
    return load_catalog_from_yaml(config.promotions_file)


def create_estimator(config: CheckoutConfig) -> DeliveryEstimator:
    carrier_client = None
    if config.carrier_rate_endpoint:
        carrier_client = CarrierRateClient(
            endpoint=config.carrier_rate_endpoint,
            timeout_seconds=config.carrier_timeout_seconds,
        )
    return DeliveryEstimator(
        origin_postal_code=config.warehouse_postal_code,
        carrier_client=carrier_client,
        rates=HeuristicRates(
            standard_base=config.standard_base_fee,
            express_base=config.express_base_fee,
        ),
        timeout_seconds=config.carrier_timeout_seconds,
    )


def build_checkout_services(
    config: CheckoutConfig | None = None,
    *,
    create_schema: bool = True,
) -> CheckoutServices:
    """Build checkout services from ``config`` or the environment.

    Args:
        config: Explicit config; loaded from env (and .env) when omitted
        create_schema: Create missing tables on startup

    Raises:
        ValueError: If environment configuration is invalid
    """
    if config is None:
        load_dotenv(override=False)
        config = load_checkout_config_from_env()

    db = DB(config.database_url)
    if create_schema:
        db.create_schema()

    catalog = create_catalog(config)
    ledger = UsageLedger(db)
    return CheckoutServices(
        config=config,
        db=db,
        catalog=catalog,
        estimator=create_estimator(config),
        ledger=ledger,
        engine=PromotionEngine(catalog, ledger),
    )
