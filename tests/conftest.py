"""Shared pytest fixtures for portfoliodash tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import duckdb
import pytest
from portfoliodash.db.connection import init_memory_db
from portfoliodash.db.state_store import HoldingsStore, SettingsStore
from portfoliodash.portfolio.holding import Holding


@pytest.fixture
def db() -> Iterator[duckdb.DuckDBPyConnection]:
    """Provide an in-memory state database with schema."""
    conn = init_memory_db()
    yield conn
    conn.close()


@pytest.fixture
def holdings_store(db: duckdb.DuckDBPyConnection) -> HoldingsStore:
    return HoldingsStore(db)


@pytest.fixture
def settings_store(db: duckdb.DuckDBPyConnection) -> SettingsStore:
    return SettingsStore(db)


@pytest.fixture
def make_holding() -> Callable[..., Holding]:
    """Build holdings directly, bypassing input validation."""
    counter = iter(range(1_000_000))

    def _make(
        symbol: str = "BBRI",
        qty: float = 100,
        price_buy: float = 4000.0,
        last_price: float | None = None,
        **extra: Any,
    ) -> Holding:
        return Holding(
            id=extra.pop("id", f"h{next(counter)}"),
            symbol=symbol,
            qty=qty,
            price_buy=price_buy,
            date_buy=extra.pop("date_buy", "2024-01-15"),
            last_price=last_price,
            **extra,
        )

    return _make
