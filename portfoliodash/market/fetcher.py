"""Price lookup across quote providers.

``fetch_price`` resolves one ledger symbol to a price using the provider
named in the settings. It never raises: a missing API key, a network
error, a malformed response or an unknown provider all come back as
``Unavailable`` so one bad symbol cannot fail a whole refresh cycle.

Usage::

    from portfoliodash.market.fetcher import fetch_price

    result = await fetch_price("BBRI", settings)
    if result.ok:
        print(result.value)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from portfoliodash.market.provider import (
    FetchError,
    PriceProvider,
    PriceResult,
    Unavailable,
    normalize_symbol,
)
from portfoliodash.market.twelvedata import TwelveDataProvider

if TYPE_CHECKING:
    from portfoliodash.settings import Settings

logger = logging.getLogger(__name__)

# -- Provider registry -------------------------------------------------------

_PROVIDERS: dict[str, type[PriceProvider]] = {
    "twelvedata": TwelveDataProvider,
}


def available_providers() -> list[str]:
    """Return the registered provider tags, sorted."""
    return sorted(_PROVIDERS)


def get_provider(tag: str) -> PriceProvider | None:
    """Instantiate the provider registered under ``tag``.

    Returns:
        A provider ready for ``fetch()`` calls, or None if the tag is
        not registered.

    """
    cls = _PROVIDERS.get(tag)
    if cls is None:
        return None
    return cls()


async def fetch_price(
    symbol: str,
    settings: Settings,
    *,
    providers: Mapping[str, PriceProvider] | None = None,
) -> PriceResult:
    """Fetch the current price for a ledger symbol.

    Args:
        symbol: Ledger symbol (e.g. "BBRI" or "BBRI.JK").
        settings: Current settings; selects provider, API key and suffix.
        providers: Optional tag -> provider instances used instead of the
            registry.

    Returns:
        ``Price`` on success, ``Unavailable`` on any failure.

    """
    query_symbol = normalize_symbol(symbol, settings.price_suffix)
    if providers is not None:
        provider = providers.get(settings.provider)
    else:
        provider = get_provider(settings.provider)

    if provider is None:
        logger.warning(
            "Unknown price provider '%s'. Choose from: %s",
            settings.provider,
            ", ".join(available_providers()),
        )
        return Unavailable(
            query_symbol,
            FetchError.UNSUPPORTED_PROVIDER,
            f"unknown provider '{settings.provider}'",
        )

    try:
        result = await provider.fetch(query_symbol, settings)
    except Exception as exc:  # noqa: BLE001 - a provider bug must not fail the refresh cycle
        logger.exception("Provider %s failed for %s", settings.provider, query_symbol)
        return Unavailable(query_symbol, FetchError.TRANSPORT, str(exc))

    if isinstance(result, Unavailable):
        logger.warning(
            "Price unavailable for %s (%s): %s",
            query_symbol,
            result.reason.value,
            result.detail,
        )
    return result
