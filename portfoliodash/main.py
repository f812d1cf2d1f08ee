"""portfoliodash sidecar entry point.

Communicates with the dashboard UI via stdin/stdout using
newline-delimited JSON messages. Prices keep refreshing in the
background between requests.

Protocol:
    Request:  {"id": "uuid", "method": "string", "params": {}}
    Response: {"id": "uuid", "result": {}}
    Error:    {"id": "uuid", "error": {"message": "string"}}
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import sys
import traceback
from functools import partial
from typing import Any

from portfoliodash import log_config
from portfoliodash.core import PortfolioCore, init

logger = logging.getLogger(__name__)


def _handle_list_holdings(core: PortfolioCore) -> list[dict[str, Any]]:
    return [h.to_record() for h in core.list_holdings()]


def _handle_add_holding(core: PortfolioCore, **fields: Any) -> dict[str, Any]:
    """Add a holding via sidecar.

    Args:
        core: The process-wide core.
        **fields: symbol, qty, price_buy and optionally name, sector,
            date_buy.

    Returns:
        The stored holding record.

    """
    return core.add_holding(**fields).to_record()


def _handle_remove_holding(core: PortfolioCore, holding_id: str) -> dict[str, bool]:
    return {"removed": core.remove_holding(holding_id)}


def _handle_get_settings(core: PortfolioCore) -> dict[str, Any]:
    return core.get_settings().to_record()


def _handle_update_setting(
    core: PortfolioCore, key: str, value: Any
) -> dict[str, Any]:
    return core.update_setting(key, value).to_record()


async def _handle_refresh(core: PortfolioCore) -> dict[str, Any] | None:
    result = await core.fetch_all_prices()
    return result.to_dict() if result is not None else None


async def dispatch(core: PortfolioCore, method: str, params: dict[str, Any]) -> Any:
    """Route a method call to the appropriate handler.

    Args:
        core: The process-wide core.
        method: The method name (e.g., "holdings.add").
        params: The parameters for the method.

    Returns:
        The result of the method call.

    Raises:
        ValueError: If the method is not recognized.

    """
    handlers: dict[str, Any] = {
        "ping": lambda: {"status": "ok"},
        # Holdings
        "holdings.list": partial(_handle_list_holdings, core),
        "holdings.add": partial(_handle_add_holding, core),
        "holdings.remove": partial(_handle_remove_holding, core),
        # Settings
        "settings.get": partial(_handle_get_settings, core),
        "settings.update": partial(_handle_update_setting, core),
        # Prices
        "prices.refresh": partial(_handle_refresh, core),
        # Portfolio
        "portfolio.summary": core.summary,
    }
    if method not in handlers:
        msg = f"Unknown method: {method}"
        raise ValueError(msg)
    result = handlers[method](**params)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _handle_line(core: PortfolioCore, stripped: str) -> dict[str, Any]:
    request: dict[str, Any] = {}
    try:
        request = json.loads(stripped)
        request_id = request.get("id", "unknown")
        method = request["method"]
        params = request.get("params", {})
        result = await dispatch(core, method, params)
        return {"id": request_id, "result": result}
    except Exception as exc:  # noqa: BLE001 - dispatcher must catch all errors and return them as JSON
        request_id = (
            request.get("id", "unknown") if isinstance(request, dict) else "unknown"
        )
        return {
            "id": request_id,
            "error": {
                "message": str(exc),
                "traceback": traceback.format_exc(),
            },
        }


async def serve(core: PortfolioCore) -> None:
    """Run the sidecar message loop until stdin is closed.

    Reads newline-delimited JSON from stdin, dispatches to handlers,
    and writes JSON responses to stdout. Periodic price refresh runs
    alongside and is stopped when the loop ends.
    """
    core.start()
    logger.info("Sidecar ready")
    try:
        while True:
            raw_line = await asyncio.to_thread(sys.stdin.readline)
            if not raw_line:
                logger.info("stdin closed, shutting down")
                break
            stripped = raw_line.strip()
            if not stripped:
                continue
            response = await _handle_line(core, stripped)
            sys.stdout.write(json.dumps(response) + "\n")
            sys.stdout.flush()
    finally:
        await core.stop()


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, load state, and serve requests."""
    parser = argparse.ArgumentParser(description="portfoliodash sidecar")
    parser.add_argument(
        "--db",
        default=None,
        help="State database path (':memory:' for ephemeral state)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    log_config.setup(verbose=args.verbose)

    asyncio.run(serve(init(args.db)))


if __name__ == "__main__":
    main()
