"""Twelve Data quote adapter.

Fetches the latest price for a symbol from the Twelve Data ``/price``
endpoint::

    GET https://api.twelvedata.com/price?symbol=BMRI.JK&apikey=KEY
    -> {"price": "6400.00"}

Set ``TWELVEDATA_BASE_URL`` to point at a different host. Requests use
``urllib`` with a bounded timeout and run in a worker thread so the event
loop keeps serving other fetches.

Note:
    Twelve Data reports errors (bad symbol, exhausted quota) as a JSON
    body without a ``price`` field, often with HTTP 200. Those are
    treated the same as any other malformed response.

"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import math
import os
import urllib.parse
import urllib.request
from typing import TYPE_CHECKING, Any

from portfoliodash.market.provider import (
    FetchError,
    Price,
    PriceProvider,
    PriceResult,
    Unavailable,
)

if TYPE_CHECKING:
    from portfoliodash.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.twelvedata.com"
DEFAULT_TIMEOUT_SEC = 10.0


class TwelveDataProvider(PriceProvider):
    """Quotes from the Twelve Data REST API.

    Requires ``Settings.api_key``. An empty key short-circuits to
    ``Unavailable`` without touching the network.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        self.base_url = (
            base_url or os.environ.get("TWELVEDATA_BASE_URL", DEFAULT_BASE_URL)
        ).rstrip("/")
        self.timeout = timeout

    def build_url(self, symbol: str, api_key: str) -> str:
        query = urllib.parse.urlencode({"symbol": symbol, "apikey": api_key})
        return f"{self.base_url}/price?{query}"

    async def fetch(self, symbol: str, settings: Settings) -> PriceResult:
        if not settings.api_key:
            return Unavailable(
                symbol, FetchError.CONFIGURATION, "Twelve Data API key is not set"
            )

        url = self.build_url(symbol, settings.api_key)
        try:
            body = await asyncio.to_thread(self._get, url)
        except (OSError, http.client.HTTPException) as exc:
            return Unavailable(symbol, FetchError.TRANSPORT, str(exc))

        try:
            payload = json.loads(body)
        except ValueError:
            return Unavailable(symbol, FetchError.PARSE, "response is not JSON")

        price = parse_price(payload)
        if price is None:
            return Unavailable(symbol, FetchError.PARSE, "no price in response")

        logger.debug("Twelve Data %s = %s", symbol, price)
        return Price(symbol, price)

    def _get(self, url: str) -> bytes:
        """Blocking GET. Raises HTTPError for non-2xx responses."""
        req = urllib.request.Request(url, method="GET")
        req.add_header("Accept", "application/json")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            return resp.read()


def parse_price(payload: Any) -> float | None:
    """Extract a finite numeric ``price`` from a response body.

    Returns:
        The price, or None if the field is missing or not a finite number.

    """
    if not isinstance(payload, dict):
        return None
    raw = payload.get("price")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        price = float(raw)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None
