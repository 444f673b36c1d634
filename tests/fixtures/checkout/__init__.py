from tests.fixtures.checkout.carts import (
    FIXED_NOW,
    create_db,
    fixed_clock,
    make_line,
)

__all__ = ["FIXED_NOW", "create_db", "fixed_clock", "make_line"]
