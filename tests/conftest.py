"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from checkout_engine.adapters.db.facade import DB
from tests.fixtures.checkout import create_db


@pytest.fixture
def db(tmp_path: Path) -> DB:
    """Fresh SQLite database with the checkout schema."""
    return create_db(tmp_path)
