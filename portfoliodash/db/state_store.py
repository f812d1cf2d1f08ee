"""Persisted application state: DuckDB-backed JSON documents.

Each store owns one key in the ``app_state`` table. The value is loaded
once when the store is created, kept in memory, and rewritten in full on
every change. DuckDB commits each statement, so a ``save`` is durable
before it returns.

Bad data never stops the process: a missing key, unparseable JSON or a
record that fails validation falls back to the store's default, and the
bad row is overwritten on the next save.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from portfoliodash.portfolio.holding import Holding, create_holding
from portfoliodash.settings import Settings

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOLDINGS_KEY = "portfolio_holdings_v1"
SETTINGS_KEY = "portfolio_settings_v1"


class StateStore(Generic[T]):
    """A single JSON document persisted under one key.

    Args:
        conn: Active DuckDB connection with the app_state table.
        key: Row key in app_state.
        default: Factory for the value used when nothing valid is stored.
        encode: Converts a value to a JSON-serializable object.
        decode: Converts a parsed JSON object back to a value. Raises
            on invalid data.

    """

    def __init__(  # noqa: PLR0913
        self,
        conn: duckdb.DuckDBPyConnection,
        key: str,
        default: Callable[[], T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        self._conn = conn
        self.key = key
        self._default = default
        self._encode = encode
        self._decode = decode
        self._updating = False
        self._value = self.load()

    @property
    def value(self) -> T:
        """The current in-memory value."""
        return self._value

    def load(self) -> T:
        """Read the persisted value, or the default if absent or corrupt."""
        row = self._conn.execute(
            "SELECT value FROM app_state WHERE key = ?", [self.key]
        ).fetchone()
        if row is None:
            logger.debug("No stored value for %s, using default", self.key)
            return self._default()

        try:
            return self._decode(json.loads(row[0]))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning(
                "Stored value for %s is corrupt (%s), using default", self.key, exc
            )
            return self._default()

    def save(self, value: T) -> None:
        """Overwrite the persisted value."""
        payload = json.dumps(self._encode(value))
        self._conn.execute(
            """
            INSERT OR REPLACE INTO app_state (key, value, updated_at)
            VALUES (?, ?, current_timestamp)
            """,
            [self.key, payload],
        )
        self._value = value

    def update(self, mutator: Callable[[T], T]) -> T:
        """Apply ``mutator`` to the current value and persist the result.

        Raises:
            RuntimeError: If called from inside another update's mutator.

        """
        if self._updating:
            msg = f"Re-entrant update of {self.key}"
            raise RuntimeError(msg)
        self._updating = True
        try:
            new_value = mutator(self._value)
            self.save(new_value)
        finally:
            self._updating = False
        return new_value


def _encode_holdings(holdings: list[Holding]) -> list[dict[str, Any]]:
    return [h.to_record() for h in holdings]


def _decode_holdings(data: Any) -> list[Holding]:
    if not isinstance(data, list):
        msg = "holdings ledger must be a JSON array"
        raise ValueError(msg)
    return [Holding.from_record(record) for record in data]


class HoldingsStore(StateStore[list[Holding]]):
    """The holdings ledger, newest holding first."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        super().__init__(conn, HOLDINGS_KEY, list, _encode_holdings, _decode_holdings)

    def add_holding(self, **fields: Any) -> Holding:
        """Validate and prepend a new holding.

        Args:
            **fields: Arguments for ``create_holding`` (symbol, qty,
                price_buy, name, sector, date_buy).

        Returns:
            The created holding.

        Raises:
            HoldingValidationError: If the input is invalid. The ledger
                is left unchanged.

        """
        holding = create_holding(**fields)
        self.update(lambda ledger: [holding, *ledger])
        logger.info(
            "Added holding %s: %s x %s @ %s",
            holding.id,
            holding.symbol,
            holding.qty,
            holding.price_buy,
        )
        return holding

    def remove_holding(self, holding_id: str) -> bool:
        """Remove a holding by ID. Returns False if no holding matched."""
        before = len(self.value)
        ledger = self.update(lambda ledger: [h for h in ledger if h.id != holding_id])
        removed = len(ledger) < before
        if removed:
            logger.info("Removed holding %s", holding_id)
        else:
            logger.warning("Holding %s not found", holding_id)
        return removed

    def apply_prices(self, prices: Mapping[str, float]) -> list[Holding]:
        """Set last_price on holdings by ID and persist the ledger.

        Holdings without an entry in ``prices`` keep their previous
        last_price. IDs that are no longer in the ledger are ignored.
        """
        return self.update(
            lambda ledger: [
                h.with_price(prices[h.id]) if h.id in prices else h for h in ledger
            ]
        )


class SettingsStore(StateStore[Settings]):
    """The refresh settings record."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        super().__init__(
            conn, SETTINGS_KEY, Settings, Settings.to_record, Settings.from_record
        )

    def update_setting(self, key: str, value: Any) -> Settings:
        """Change one setting and persist.

        Raises:
            ValueError: If the key is unknown or the value is invalid.

        """
        settings = self.update(lambda current: current.with_value(key, value))
        logger.info("Setting %s updated", key)
        return settings
