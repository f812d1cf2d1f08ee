"""Refresh settings.

Settings select the quote provider, carry its API key, and control how
often prices are refreshed. They are persisted as a single record and
edited one key at a time.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "twelvedata"

# Persisted record key -> attribute name
_RECORD_KEYS: dict[str, str] = {
    "provider": "provider",
    "apiKey": "api_key",
    "priceSuffix": "price_suffix",
    "refreshIntervalSec": "refresh_interval_sec",
}


@dataclass(frozen=True)
class Settings:
    """Price refresh configuration.

    Attributes:
        provider: Quote provider tag (e.g. "twelvedata").
        api_key: Provider API key. Empty disables fetching.
        price_suffix: Appended to symbols without a "." before querying.
        refresh_interval_sec: Seconds between periodic refresh cycles.

    """

    provider: str = DEFAULT_PROVIDER
    api_key: str = ""
    price_suffix: str = ".JK"
    refresh_interval_sec: int = 60

    def __post_init__(self) -> None:
        """Reject values the scheduler and fetcher cannot work with."""
        for name in ("provider", "api_key", "price_suffix"):
            if not isinstance(getattr(self, name), str):
                msg = f"{name} must be a string"
                raise ValueError(msg)
        interval = self.refresh_interval_sec
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            msg = f"refresh_interval_sec must be a positive integer, got {interval!r}"
            raise ValueError(msg)

    def with_value(self, key: str, value: Any) -> Settings:
        """Return a copy with one setting changed.

        Args:
            key: Attribute name or persisted record key
                (e.g. "refresh_interval_sec" or "refreshIntervalSec").
            value: New value. Interval values may be numeric strings.

        Raises:
            ValueError: If the key is unknown or the value is invalid.

        """
        attr = _RECORD_KEYS.get(key, key)
        if attr not in _RECORD_KEYS.values():
            msg = f"Unknown setting '{key}'. Choose from: {', '.join(_RECORD_KEYS)}"
            raise ValueError(msg)
        if attr == "refresh_interval_sec":
            value = _parse_interval(value)
        return replace(self, **{attr: value})

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        values = asdict(self)
        return {record_key: values[attr] for record_key, attr in _RECORD_KEYS.items()}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Settings:
        """Rebuild settings from a persisted record.

        Fields are decoded one at a time. Missing keys, and values that
        fail validation, take their default values so one bad field does
        not discard the rest of the record.

        Raises:
            ValueError: If the record is not a JSON object.

        """
        if not isinstance(record, dict):
            msg = "settings record must be a JSON object"
            raise ValueError(msg)
        settings = cls()
        for record_key in _RECORD_KEYS:
            if record_key not in record:
                continue
            try:
                settings = settings.with_value(record_key, record[record_key])
            except ValueError as exc:
                logger.warning("Ignoring stored setting %s: %s", record_key, exc)
        return settings


def _parse_interval(value: Any) -> int:
    if isinstance(value, bool):
        msg = f"refresh_interval_sec must be a positive integer, got {value!r}"
        raise ValueError(msg)
    try:
        interval = int(value)
    except (TypeError, ValueError) as exc:
        msg = f"refresh_interval_sec must be a positive integer, got {value!r}"
        raise ValueError(msg) from exc
    if isinstance(value, float) and value != interval:
        msg = f"refresh_interval_sec must be a whole number, got {value!r}"
        raise ValueError(msg)
    return interval
