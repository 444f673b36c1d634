from checkout_engine.core.config import (
    CheckoutConfig,
    load_checkout_config_from_env,
)

__all__ = [
    "CheckoutConfig",
    "load_checkout_config_from_env",
]
