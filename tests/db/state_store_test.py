"""Tests for the persisted holdings and settings stores."""

from __future__ import annotations

import json

import pytest
from portfoliodash.db.state_store import (
    HOLDINGS_KEY,
    SETTINGS_KEY,
    HoldingsStore,
    SettingsStore,
    StateStore,
)
from portfoliodash.portfolio.holding import HoldingValidationError
from portfoliodash.settings import Settings


def _stored(db, key):
    row = db.execute("SELECT value FROM app_state WHERE key = ?", [key]).fetchone()
    return None if row is None else json.loads(row[0])


def _put_raw(db, key, value):
    db.execute(
        "INSERT OR REPLACE INTO app_state (key, value) VALUES (?, ?)", [key, value]
    )


class TestStateStore:
    """Tests for the generic JSON document store."""

    def _store(self, db):
        return StateStore(db, "counter", lambda: 0, lambda v: v, int)

    def test_missing_key_returns_default(self, db):
        assert self._store(db).value == 0

    def test_save_is_visible_to_a_new_store(self, db):
        self._store(db).save(5)
        assert self._store(db).value == 5

    def test_save_overwrites(self, db):
        store = self._store(db)
        store.save(1)
        store.save(2)
        assert _stored(db, "counter") == 2
        count = db.execute("SELECT count(*) FROM app_state").fetchone()
        assert count == (1,)

    def test_update_applies_and_persists(self, db):
        store = self._store(db)
        assert store.update(lambda v: v + 3) == 3
        assert store.value == 3
        assert _stored(db, "counter") == 3

    def test_update_is_not_reentrant(self, db):
        store = self._store(db)

        def mutator(value):
            store.update(lambda v: v + 1)
            return value

        with pytest.raises(RuntimeError, match="Re-entrant"):
            store.update(mutator)
        # The guard resets after the failed update
        assert store.update(lambda v: v + 1) == 1

    def test_failed_mutator_leaves_value(self, db):
        store = self._store(db)
        store.save(7)

        def boom(_value):
            raise ValueError("nope")

        with pytest.raises(ValueError, match="nope"):
            store.update(boom)
        assert store.value == 7
        assert _stored(db, "counter") == 7

    def test_corrupt_json_falls_back_to_default(self, db):
        _put_raw(db, "counter", "{not json")
        store = self._store(db)
        assert store.value == 0
        store.save(4)
        assert _stored(db, "counter") == 4


class TestHoldingsStore:
    """Tests for the holdings ledger store."""

    def test_starts_empty(self, holdings_store):
        assert holdings_store.value == []

    def test_add_holding_prepends(self, holdings_store):
        first = holdings_store.add_holding(symbol="bbri", qty=100, price_buy=4000)
        second = holdings_store.add_holding(symbol="BMRI", qty=50, price_buy=6000)
        assert [h.id for h in holdings_store.value] == [second.id, first.id]
        assert first.symbol == "BBRI"

    def test_add_holding_persists_record(self, db, holdings_store):
        holding = holdings_store.add_holding(
            symbol="BBRI", qty=100, price_buy=4000, date_buy="2024-01-15"
        )
        records = _stored(db, HOLDINGS_KEY)
        assert records == [
            {
                "id": holding.id,
                "symbol": "BBRI",
                "name": "-",
                "sector": "-",
                "qty": 100.0,
                "priceBuy": 4000.0,
                "dateBuy": "2024-01-15",
                "totalBuy": 400000.0,
                "lastPrice": None,
            }
        ]

    def test_duplicate_symbols_allowed(self, holdings_store):
        holdings_store.add_holding(symbol="BBRI", qty=100, price_buy=4000)
        holdings_store.add_holding(symbol="BBRI", qty=50, price_buy=4200)
        assert len(holdings_store.value) == 2

    def test_zero_qty_rejected_and_ledger_unchanged(self, db, holdings_store):
        holdings_store.add_holding(symbol="BBRI", qty=100, price_buy=4000)
        before = _stored(db, HOLDINGS_KEY)

        with pytest.raises(HoldingValidationError, match="qty"):
            holdings_store.add_holding(symbol="BMRI", qty=0, price_buy=6000)

        assert len(holdings_store.value) == 1
        assert _stored(db, HOLDINGS_KEY) == before

    def test_remove_holding(self, holdings_store):
        keep = holdings_store.add_holding(symbol="BBRI", qty=100, price_buy=4000)
        drop = holdings_store.add_holding(symbol="BMRI", qty=50, price_buy=6000)
        assert holdings_store.remove_holding(drop.id) is True
        assert [h.id for h in holdings_store.value] == [keep.id]

    def test_remove_unknown_holding(self, holdings_store):
        holdings_store.add_holding(symbol="BBRI", qty=100, price_buy=4000)
        assert holdings_store.remove_holding("missing") is False
        assert len(holdings_store.value) == 1

    def test_apply_prices_merges_by_id(self, holdings_store):
        a = holdings_store.add_holding(symbol="BBRI", qty=100, price_buy=4000)
        b = holdings_store.add_holding(symbol="BMRI", qty=50, price_buy=6000)
        holdings_store.apply_prices({a.id: 4500.0})
        holdings_store.apply_prices({b.id: 6100.0, "gone": 1.0})

        by_id = {h.id: h for h in holdings_store.value}
        assert by_id[a.id].last_price == 4500.0
        assert by_id[b.id].last_price == 6100.0
        assert len(by_id) == 2

    def test_reload_round_trip(self, db, holdings_store):
        holding = holdings_store.add_holding(
            symbol="BBRI", qty=100, price_buy=4000, name="Bank BRI", sector="Finance"
        )
        holdings_store.apply_prices({holding.id: 4500.0})

        reloaded = HoldingsStore(db).value
        assert reloaded == holdings_store.value

    def test_stale_total_buy_is_recomputed(self, db):
        record = {
            "id": "x1",
            "symbol": "BBRI",
            "qty": 100,
            "priceBuy": 4000,
            "dateBuy": "2024-01-15",
            "totalBuy": 1,
            "lastPrice": None,
        }
        _put_raw(db, HOLDINGS_KEY, json.dumps([record]))
        holding = HoldingsStore(db).value[0]
        assert holding.total_buy == 400000.0

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            json.dumps({"id": "x"}),
            json.dumps([{"id": "x", "symbol": "BBRI"}]),
            json.dumps([{"id": "x", "symbol": "BBRI", "qty": -1, "priceBuy": 1}]),
            json.dumps(["just a string"]),
        ],
    )
    def test_corrupt_ledger_degrades_to_empty(self, db, raw):
        _put_raw(db, HOLDINGS_KEY, raw)
        store = HoldingsStore(db)
        assert store.value == []

        store.add_holding(symbol="BBRI", qty=1, price_buy=1)
        assert len(_stored(db, HOLDINGS_KEY)) == 1


class TestSettingsStore:
    """Tests for the settings store."""

    def test_defaults(self, settings_store):
        assert settings_store.value == Settings()
        assert settings_store.value.price_suffix == ".JK"
        assert settings_store.value.refresh_interval_sec == 60

    def test_update_setting_persists(self, db, settings_store):
        settings_store.update_setting("apiKey", "secret")
        settings_store.update_setting("refresh_interval_sec", "30")

        assert _stored(db, SETTINGS_KEY) == {
            "provider": "twelvedata",
            "apiKey": "secret",
            "priceSuffix": ".JK",
            "refreshIntervalSec": 30,
        }
        assert SettingsStore(db).value.api_key == "secret"

    def test_invalid_setting_leaves_store_unchanged(self, db, settings_store):
        settings_store.update_setting("api_key", "secret")
        with pytest.raises(ValueError, match="positive integer"):
            settings_store.update_setting("refreshIntervalSec", 0)
        assert settings_store.value.refresh_interval_sec == 60
        assert _stored(db, SETTINGS_KEY)["refreshIntervalSec"] == 60

    def test_unknown_setting_rejected(self, settings_store):
        with pytest.raises(ValueError, match="Unknown setting"):
            settings_store.update_setting("theme", "dark")

    def test_partial_record_fills_defaults(self, db):
        _put_raw(db, SETTINGS_KEY, json.dumps({"apiKey": "k"}))
        settings = SettingsStore(db).value
        assert settings.api_key == "k"
        assert settings.price_suffix == ".JK"

    def test_invalid_field_keeps_the_others(self, db, caplog):
        record = {
            "provider": "twelvedata",
            "apiKey": "SECRET",
            "priceSuffix": ".SI",
            "refreshIntervalSec": 0,
        }
        _put_raw(db, SETTINGS_KEY, json.dumps(record))

        with caplog.at_level("WARNING", logger="portfoliodash.settings"):
            settings = SettingsStore(db).value

        assert settings.api_key == "SECRET"
        assert settings.price_suffix == ".SI"
        assert settings.refresh_interval_sec == 60
        assert "refreshIntervalSec" in caplog.text

    def test_numeric_string_interval_is_read(self, db):
        _put_raw(db, SETTINGS_KEY, json.dumps({"refreshIntervalSec": "30"}))
        assert SettingsStore(db).value.refresh_interval_sec == 30

    @pytest.mark.parametrize(
        "raw",
        [
            "{{{",
            json.dumps([1, 2]),
            json.dumps({"refreshIntervalSec": "soon"}),
            json.dumps({"apiKey": 42}),
        ],
    )
    def test_corrupt_settings_degrade_to_default(self, db, raw):
        _put_raw(db, SETTINGS_KEY, raw)
        assert SettingsStore(db).value == Settings()
