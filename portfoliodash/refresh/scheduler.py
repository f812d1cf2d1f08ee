"""Price refresh scheduler.

Runs refresh cycles on demand and on a periodic timer. A cycle fetches a
price for every holding concurrently, waits for all of them to settle,
and merges the successful prices into the holdings store. Failed fetches
leave the previous price in place.

Only one cycle runs at a time. A refresh requested while a cycle is in
flight is not started in parallel; it is remembered and exactly one more
cycle runs after the current one finishes. Any further requests made
while that rerun is pending collapse into it.

Changing settings cancels the pending timer (never an in-flight cycle),
starts a cycle immediately and arms a new timer at the new interval.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from portfoliodash.market.fetcher import fetch_price
from portfoliodash.market.provider import FetchError, Price, PriceResult, Unavailable

if TYPE_CHECKING:
    from portfoliodash.db.state_store import HoldingsStore, SettingsStore
    from portfoliodash.settings import Settings

logger = logging.getLogger(__name__)

FetchFn = Callable[[str, "Settings"], Awaitable[PriceResult]]


class RefreshState(Enum):
    """Scheduler states."""

    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one refresh cycle.

    Attributes:
        completed_at: UTC time the merged ledger was persisted.
        updated: Number of holdings that received a new price.
        unavailable: Holding ID -> reason, for holdings that kept
            their previous price.

    """

    completed_at: datetime
    updated: int
    unavailable: dict[str, FetchError] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "completed_at": self.completed_at.isoformat(),
            "updated": self.updated,
            "unavailable": {k: v.value for k, v in self.unavailable.items()},
        }


class RefreshScheduler:
    """Periodic and on-demand price refresh for the holdings ledger.

    Args:
        holdings: Holdings store to read from and merge into.
        settings: Settings store providing provider config and interval.
        fetch: Price lookup coroutine, ``fetch_price`` by default.

    """

    def __init__(
        self,
        holdings: HoldingsStore,
        settings: SettingsStore,
        fetch: FetchFn = fetch_price,
    ) -> None:
        self._holdings = holdings
        self._settings = settings
        self._fetch = fetch
        self._state = RefreshState.IDLE
        self._pending = False
        self._last_updated: datetime | None = None
        self._timer: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[RefreshResult | None]] = set()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state is RefreshState.REFRESHING

    @property
    def last_updated(self) -> datetime | None:
        """Completion time of the last cycle, None before the first."""
        return self._last_updated

    # ── timer ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Run the first cycle and arm the periodic timer."""
        self.reschedule()

    def reschedule(self) -> None:
        """Re-arm after a settings change.

        Cancels the pending timer, starts a cycle now, and arms a new
        timer at the current refresh interval. Must be called from a
        running event loop.
        """
        self._cancel_timer()
        self.request_refresh()
        interval = self._settings.value.refresh_interval_sec
        self._timer = asyncio.create_task(self._tick(interval))
        logger.info("Price refresh armed every %ss", interval)

    async def _tick(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            self.request_refresh()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def request_refresh(self) -> asyncio.Task[RefreshResult | None]:
        """Start a refresh in the background and return its task."""
        task = asyncio.create_task(self.refresh())
        self._cycles.add(task)
        task.add_done_callback(self._on_cycle_done)
        return task

    def _on_cycle_done(self, task: asyncio.Task[RefreshResult | None]) -> None:
        self._cycles.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Refresh cycle failed", exc_info=task.exception())

    def cancel(self) -> None:
        """Cancel the timer, in-flight cycles and any queued rerun."""
        self._cancel_timer()
        self._pending = False
        for task in self._cycles:
            task.cancel()

    async def stop(self) -> None:
        """Cancel everything and wait for cycles to unwind (shutdown only)."""
        tasks = list(self._cycles)
        self.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Price refresh stopped")

    # ── cycles ────────────────────────────────────────────────────

    async def refresh(self) -> RefreshResult | None:
        """Run a refresh cycle now.

        Returns:
            The result of the last cycle this call ran, or None if the
            ledger was empty or another cycle was already running (in
            which case one follow-up cycle is scheduled on that run).

        """
        if self.is_refreshing:
            logger.debug("Refresh already running, queuing one more cycle")
            self._pending = True
            return None

        try:
            result = await self._run_cycle()
            while self._pending:
                self._pending = False
                result = await self._run_cycle()
        except asyncio.CancelledError:
            # The queued rerun belonged to this call
            self._pending = False
            raise
        return result

    async def _run_cycle(self) -> RefreshResult | None:
        snapshot = list(self._holdings.value)
        if not snapshot:
            return None
        settings = self._settings.value

        self._state = RefreshState.REFRESHING
        try:
            results = await asyncio.gather(
                *(self._fetch(h.symbol, settings) for h in snapshot),
                return_exceptions=True,
            )

            prices: dict[str, float] = {}
            unavailable: dict[str, FetchError] = {}
            for holding, result in zip(snapshot, results, strict=True):
                if isinstance(result, Price):
                    prices[holding.id] = result.value
                elif isinstance(result, Unavailable):
                    unavailable[holding.id] = result.reason
                else:
                    logger.error(
                        "Unexpected fetch result for %s: %r", holding.symbol, result
                    )
                    unavailable[holding.id] = FetchError.TRANSPORT

            self._holdings.apply_prices(prices)
            completed_at = datetime.now(tz=UTC)
            self._last_updated = completed_at
        finally:
            self._state = RefreshState.IDLE

        logger.info(
            "Refresh complete: %d updated, %d unavailable",
            len(prices),
            len(unavailable),
        )
        return RefreshResult(
            completed_at=completed_at,
            updated=len(prices),
            unavailable=unavailable,
        )
