"""Process-wide portfolio state.

``init()`` opens the state database, loads the holdings ledger and the
settings (falling back to defaults), and wires up the refresh scheduler.
The resulting ``PortfolioCore`` is the only entry point the UI layer uses
to change state: adding and removing holdings, changing a setting, and
refreshing prices. Every change is persisted before the call returns.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from portfoliodash.db.connection import init_state_db
from portfoliodash.db.state_store import HoldingsStore, SettingsStore
from portfoliodash.market.fetcher import fetch_price
from portfoliodash.portfolio.aggregation import aggregate
from portfoliodash.refresh.scheduler import FetchFn, RefreshResult, RefreshScheduler

if TYPE_CHECKING:
    import duckdb

    from portfoliodash.portfolio.holding import Holding
    from portfoliodash.settings import Settings

logger = logging.getLogger(__name__)


class PortfolioCore:
    """Holdings, settings and the refresh scheduler for one process.

    Args:
        conn: DuckDB connection with the app_state table.
        fetch: Price lookup coroutine passed to the scheduler.

    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        fetch: FetchFn = fetch_price,
    ) -> None:
        self.conn = conn
        self.holdings = HoldingsStore(conn)
        self.settings = SettingsStore(conn)
        self.scheduler = RefreshScheduler(self.holdings, self.settings, fetch)
        self._running = False

    def start(self) -> None:
        """Start periodic refresh. Must be called from a running event loop."""
        self.scheduler.start()
        self._running = True

    async def stop(self) -> None:
        self._running = False
        await self.scheduler.stop()

    def close(self) -> None:
        """Cancel refresh work without waiting and close the database."""
        self._running = False
        self.scheduler.cancel()
        self.conn.close()

    def list_holdings(self) -> list[Holding]:
        return list(self.holdings.value)

    def add_holding(self, **fields: Any) -> Holding:
        """Validate and add a holding; see ``create_holding`` for fields."""
        return self.holdings.add_holding(**fields)

    def remove_holding(self, holding_id: str) -> bool:
        return self.holdings.remove_holding(holding_id)

    def get_settings(self) -> Settings:
        return self.settings.value

    def update_setting(self, key: str, value: Any) -> Settings:
        """Change one setting, then refresh and re-arm the timer."""
        settings = self.settings.update_setting(key, value)
        if self._running:
            self.scheduler.reschedule()
        return settings

    async def fetch_all_prices(self) -> RefreshResult | None:
        """Run a refresh cycle now and wait for it."""
        return await self.scheduler.refresh()

    def summary(self) -> dict[str, Any]:
        """Aggregates for the current ledger plus refresh status."""
        result = aggregate(self.holdings.value).to_dict()
        last_updated = self.scheduler.last_updated
        result["last_updated"] = last_updated.isoformat() if last_updated else None
        result["loading"] = self.scheduler.is_refreshing
        return result


_core: PortfolioCore | None = None


def init(
    db_path: str | Path | None = None,
    fetch: FetchFn = fetch_price,
) -> PortfolioCore:
    """Load persisted state and install the process-wide core.

    Args:
        db_path: State database path; ``":memory:"`` for an ephemeral
            store. Defaults to <data dir>/state.duckdb.
        fetch: Price lookup coroutine, mainly overridden in tests.

    Returns:
        The initialized core.

    """
    global _core  # noqa: PLW0603
    if _core is not None:
        logger.info("Replacing existing core, closing its database")
        _core.close()
    conn = init_state_db(db_path)
    _core = PortfolioCore(conn, fetch)
    logger.info(
        "Loaded %d holdings (provider=%s)",
        len(_core.holdings.value),
        _core.settings.value.provider,
    )
    return _core


def get_core() -> PortfolioCore:
    """Return the core installed by ``init()``.

    Raises:
        RuntimeError: If ``init()`` has not been called.

    """
    if _core is None:
        msg = "portfoliodash.core.init() has not been called"
        raise RuntimeError(msg)
    return _core
