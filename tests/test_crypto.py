"""Tests for the crypto watchlist and price alerts."""

from datetime import datetime

import pytest

from butler.modules.crypto import CryptoAlertsModule, CryptoModule, PriceAlert, format_price

from conftest import MONDAY_18, FakeSource, converse


@pytest.fixture
def source() -> FakeSource:
    return FakeSource({"BTCUSDT": 40000.0, "ETHUSDT": 2000.0, "DOGEUSDT": 0.08})


@pytest.fixture
def crypto(bot, data_dir, source) -> CryptoModule:
    module = CryptoModule(data_dir, source, refresh_minutes=5)
    bot.add_module(module)
    return module


@pytest.fixture
def alerts(bot, data_dir, crypto) -> CryptoAlertsModule:
    module = CryptoAlertsModule(data_dir, crypto)
    bot.add_module(module)
    return module


def test_format_price():
    assert format_price(42000) == "42,000.00"
    assert format_price(0.08) == "0.08"


class TestWatchlist:
    def test_default_symbols(self, crypto):
        assert crypto.symbols == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_show_with_change(self, bot, connector, crypto, source):
        await crypto.refresh(MONDAY_18)
        source.prices["BTCUSDT"] = 44000.0
        await converse(bot, "/crypto")
        assert connector.last == "BTCUSDT: 44,000.00 (+10.00%)\nETHUSDT: 2,000.00 (+0.00%)"

    @pytest.mark.asyncio
    async def test_missing_price_shown_as_na(self, bot, connector, crypto, source):
        del source.prices["ETHUSDT"]
        await converse(bot, "/crypto")
        assert connector.last == "BTCUSDT: 40,000.00\nETHUSDT: n/a"

    @pytest.mark.asyncio
    async def test_add_and_remove(self, bot, connector, crypto):
        await converse(bot, "/crypto add", "doge/usdt")
        assert connector.last == "Watching DOGEUSDT, now 0.08."
        await converse(bot, "/crypto add", "DOGEUSDT")
        assert connector.last == "DOGEUSDT is already watched."
        await converse(bot, "/crypto remove", "dogeusdt")
        assert crypto.symbols == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_add_unknown_symbol(self, bot, connector, crypto):
        await converse(bot, "/crypto add", "NOPE")
        assert connector.last.startswith("Can't get a price for NOPE")
        assert "NOPE" not in crypto.symbols

    @pytest.mark.asyncio
    async def test_cycle_is_throttled(self, bot, crypto, source):
        await crypto.cycle(bot, MONDAY_18)
        await crypto.cycle(bot, MONDAY_18.replace(minute=4))
        assert source.calls == 1
        await crypto.cycle(bot, MONDAY_18.replace(minute=5))
        assert source.calls == 2
        assert crypto.price("BTCUSDT") == 40000.0


class TestAlerts:
    def test_holds(self):
        above = PriceAlert(id=1, symbol="BTCUSDT", direction="above", target=50000)
        assert above.holds(50000) and not above.holds(49999)
        below = PriceAlert(id=2, symbol="BTCUSDT", direction="below", target=30000)
        assert below.holds(29000) and not below.holds(31000)

    @pytest.mark.asyncio
    async def test_add_alert_watches_symbol(self, bot, connector, crypto, alerts):
        await converse(bot, "/crypto alert add", "dogeusdt above 0,1")
        assert connector.last == "Added alert #1 DOGEUSDT above 0.1"
        assert "DOGEUSDT" in crypto.symbols

    @pytest.mark.asyncio
    async def test_bad_format(self, bot, connector, alerts):
        await converse(bot, "/crypto alert add", "BTC to the moon")
        assert connector.last == "Format: SYMBOL above|below PRICE"
        assert alerts.alerts == []

    @pytest.mark.asyncio
    async def test_fires_once(self, bot, connector, crypto, alerts, source):
        alerts.add("BTCUSDT", "above", 41000)
        await crypto.refresh(MONDAY_18)
        await alerts.cycle(bot, MONDAY_18)
        assert connector.sent == []

        source.prices["BTCUSDT"] = 41500.0
        await crypto.refresh(datetime(2024, 1, 1, 18, 5))
        await alerts.cycle(bot, datetime(2024, 1, 1, 18, 5))
        await alerts.cycle(bot, datetime(2024, 1, 1, 18, 6))
        assert connector.texts == ["🔔 BTCUSDT is above 41,000.00 (now 41,500.00)"]
        assert alerts.alerts[0].triggered

    @pytest.mark.asyncio
    async def test_list_and_remove(self, bot, connector, alerts):
        alerts.add("ETHUSDT", "below", 1500)
        await converse(bot, "/crypto alerts")
        assert connector.last == "#1 ETHUSDT below 1,500.00"
        await converse(bot, "/crypto alert remove", "#1")
        assert alerts.alerts == []
