"""Portfolio aggregation engine.

Computes cost basis, market value, profit/loss and composition from a
ledger snapshot. Holdings without a fetched price are valued at their
purchase price, so an empty or never-refreshed ledger shows zero P/L.

Aggregation is pure: no I/O, no hidden state, same ledger in, same
numbers out.

Rows are reported per ledger row. Two lots of the same symbol appear as
two composition slices and two profit bars; callers that want one entry
per symbol must combine rows sharing a symbol themselves.

"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from portfoliodash.portfolio.holding import Holding


@dataclass(frozen=True)
class HoldingMetrics:
    """Valuation of a single ledger row.

    Attributes:
        id: Holding ID.
        symbol: Holding symbol.
        cost: qty * price_buy.
        value_now: qty * (last_price, or price_buy if never fetched).
        pl_amount: value_now - cost.
        pl_pct: pl_amount / cost as a fraction, 0 if cost is 0.
        weight: Share of total portfolio value, 0 if the total is 0.

    """

    id: str
    symbol: str
    cost: float
    value_now: float
    pl_amount: float
    pl_pct: float
    weight: float


@dataclass(frozen=True)
class Aggregates:
    """Portfolio-level totals plus per-row metrics.

    Attributes:
        total_cost: Sum of qty * price_buy over all holdings.
        total_value: Sum of current market value over all holdings.
        total_pl: total_value - total_cost.
        total_pl_pct: total_pl / total_cost as a fraction, 0 if the
            total cost is 0.
        rows: Per-holding metrics in ledger order.

    """

    total_cost: float = 0.0
    total_value: float = 0.0
    total_pl: float = 0.0
    total_pl_pct: float = 0.0
    rows: list[HoldingMetrics] = field(default_factory=list)

    @property
    def composition(self) -> list[tuple[str, float]]:
        """(symbol, weight) per ledger row."""
        return [(row.symbol, row.weight) for row in self.rows]

    @property
    def profit_series(self) -> list[tuple[str, float]]:
        """(symbol, pl_amount) per ledger row."""
        return [(row.symbol, row.pl_amount) for row in self.rows]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "total_value": self.total_value,
            "total_pl": self.total_pl,
            "total_pl_pct": self.total_pl_pct,
            "rows": [asdict(row) for row in self.rows],
            "composition": [
                {"symbol": symbol, "weight": weight}
                for symbol, weight in self.composition
            ],
            "profit_series": [
                {"symbol": symbol, "profit": profit}
                for symbol, profit in self.profit_series
            ],
        }


def market_value(holding: Holding) -> float:
    """Current value of a holding, falling back to cost without a quote."""
    price = holding.last_price if holding.last_price is not None else holding.price_buy
    return holding.qty * price


def aggregate(holdings: Sequence[Holding]) -> Aggregates:
    """Compute portfolio totals and per-row metrics.

    Args:
        holdings: Ledger snapshot, in display order.

    Returns:
        Aggregates with one row per holding, in the same order.

    """
    total_cost = 0.0
    total_value = 0.0
    valued: list[tuple[Holding, float, float]] = []

    for holding in holdings:
        cost = holding.qty * holding.price_buy
        value_now = market_value(holding)
        total_cost += cost
        total_value += value_now
        valued.append((holding, cost, value_now))

    rows: list[HoldingMetrics] = []
    for holding, cost, value_now in valued:
        pl_amount = value_now - cost
        rows.append(
            HoldingMetrics(
                id=holding.id,
                symbol=holding.symbol,
                cost=cost,
                value_now=value_now,
                pl_amount=pl_amount,
                pl_pct=pl_amount / cost if cost > 0 else 0.0,
                weight=value_now / total_value if total_value != 0 else 0.0,
            )
        )

    total_pl = total_value - total_cost
    return Aggregates(
        total_cost=total_cost,
        total_value=total_value,
        total_pl=total_pl,
        total_pl_pct=total_pl / total_cost if total_cost > 0 else 0.0,
        rows=rows,
    )
