"""Holding records for the portfolio ledger.

A holding is one purchase lot: a symbol, a quantity and a cost basis per
unit. The ledger is an ordered list of holdings, newest first, and may
contain several lots of the same symbol.

Only ``last_price`` changes after creation, and only when a quote is
fetched successfully.

"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Any

_DEFAULT_LABEL = "-"


class HoldingValidationError(ValueError):
    """Raised when holding input is rejected at creation."""


@dataclass(frozen=True)
class Holding:
    """A single purchase lot.

    Attributes:
        id: Unique identifier assigned at creation.
        symbol: Uppercase ticker symbol as entered (no provider suffix).
        name: Free-text company name, ``"-"`` if unknown.
        sector: Free-text sector label, ``"-"`` if unknown.
        qty: Number of units purchased. Always positive.
        price_buy: Cost basis per unit. Always positive.
        date_buy: Purchase date (YYYY-MM-DD).
        last_price: Latest fetched price, None until the first success.

    """

    id: str
    symbol: str
    qty: float
    price_buy: float
    date_buy: str
    name: str = _DEFAULT_LABEL
    sector: str = _DEFAULT_LABEL
    last_price: float | None = None

    @property
    def total_buy(self) -> float:
        """Total cost basis, always derived from qty and price_buy."""
        return self.qty * self.price_buy

    def with_price(self, price: float) -> Holding:
        """Return a copy carrying a freshly fetched price."""
        return replace(self, last_price=price)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "sector": self.sector,
            "qty": self.qty,
            "priceBuy": self.price_buy,
            "dateBuy": self.date_buy,
            "totalBuy": self.total_buy,
            "lastPrice": self.last_price,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Holding:
        """Rebuild a holding from a persisted record.

        The stored ``totalBuy`` is ignored and recomputed from qty and
        priceBuy.

        Raises:
            HoldingValidationError: If the record violates a holding
                invariant.
            KeyError: If a required field is missing.

        """
        last_price = record.get("lastPrice")
        if last_price is not None:
            last_price = _parse_number(last_price, "lastPrice")
        return cls(
            id=str(record["id"]),
            symbol=_parse_symbol(record["symbol"]),
            qty=_parse_positive(record["qty"], "qty"),
            price_buy=_parse_positive(record["priceBuy"], "priceBuy"),
            date_buy=_parse_date(record.get("dateBuy"), date.today()),
            name=_label(record.get("name")),
            sector=_label(record.get("sector")),
            last_price=last_price,
        )


def _generate_id() -> str:
    """Return a random 16-hex-character holding ID."""
    return uuid.uuid4().hex[:16]


def _label(value: Any) -> str:
    if value is None:
        return _DEFAULT_LABEL
    text = str(value).strip()
    return text or _DEFAULT_LABEL


def _parse_symbol(value: Any) -> str:
    symbol = str(value).strip().upper() if value is not None else ""
    if not symbol:
        msg = "symbol must be a non-empty string"
        raise HoldingValidationError(msg)
    return symbol


def _parse_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        msg = f"{field_name} must be a number, got {value!r}"
        raise HoldingValidationError(msg)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        msg = f"{field_name} must be a number, got {value!r}"
        raise HoldingValidationError(msg) from exc
    if not math.isfinite(number):
        msg = f"{field_name} must be finite, got {value!r}"
        raise HoldingValidationError(msg)
    return number


def _parse_positive(value: Any, field_name: str) -> float:
    number = _parse_number(value, field_name)
    if number <= 0:
        msg = f"{field_name} must be > 0, got {value!r}"
        raise HoldingValidationError(msg)
    return number


def _parse_date(value: Any, default: date) -> str:
    if value is None or not str(value).strip():
        return default.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError as exc:
        msg = f"date_buy must be YYYY-MM-DD, got {value!r}"
        raise HoldingValidationError(msg) from exc


def create_holding(  # noqa: PLR0913
    symbol: str,
    qty: float | str,
    price_buy: float | str,
    name: str | None = None,
    sector: str | None = None,
    date_buy: str | None = None,
    *,
    today: date | None = None,
) -> Holding:
    """Validate user input and build a new holding.

    Args:
        symbol: Ticker symbol; trimmed and uppercased.
        qty: Units purchased. Numeric strings are accepted.
        price_buy: Cost per unit. Numeric strings are accepted.
        name: Optional company name.
        sector: Optional sector label.
        date_buy: Optional purchase date (YYYY-MM-DD).
        today: Date used when date_buy is omitted. Defaults to today.

    Returns:
        A new holding with a fresh ID and no price yet.

    Raises:
        HoldingValidationError: If the symbol is blank, qty or price_buy
            is not a positive finite number, or date_buy is malformed.

    """
    return Holding(
        id=_generate_id(),
        symbol=_parse_symbol(symbol),
        qty=_parse_positive(qty, "qty"),
        price_buy=_parse_positive(price_buy, "price_buy"),
        date_buy=_parse_date(date_buy, today or date.today()),
        name=_label(name),
        sector=_label(sector),
    )
