from checkout_engine.adapters.db.facade import DB

__all__ = ["DB"]
