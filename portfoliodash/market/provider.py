"""Quote provider interface and price results.

Every provider implements the same ``fetch()`` contract so the refresh
scheduler doesn't need to know which quote source is configured. A
provider reports failure by returning ``Unavailable`` with a
``FetchError`` reason instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portfoliodash.settings import Settings

# Symbols containing this already carry an exchange marker
SYMBOL_SEPARATOR = "."


class FetchError(Enum):
    """Why a price could not be fetched."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PARSE = "parse"
    UNSUPPORTED_PROVIDER = "unsupported_provider"


@dataclass(frozen=True)
class Price:
    """A successfully fetched price."""

    symbol: str
    value: float

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    """No price this cycle, with the reason."""

    symbol: str
    reason: FetchError
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


PriceResult = Price | Unavailable


class PriceProvider(ABC):
    """Base class for quote providers."""

    @abstractmethod
    async def fetch(self, symbol: str, settings: Settings) -> PriceResult:
        """Look up the current price of an already-normalized symbol."""


def normalize_symbol(symbol: str, suffix: str) -> str:
    """Build the provider-facing query symbol.

    Appends ``suffix`` unless the symbol already contains a ".".

    >>> normalize_symbol("BMRI", ".JK")
    'BMRI.JK'
    >>> normalize_symbol("BMRI.JK", ".JK")
    'BMRI.JK'
    """
    if SYMBOL_SEPARATOR in symbol:
        return symbol
    return f"{symbol}{suffix}"

