"""Crypto watchlist with periodically refreshed prices, plus price alerts."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import Module, matches, parse_float, parse_int
from butler.modules.prices import PriceError, PriceSource
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)

_ALERT_RE = re.compile(r"^\s*([A-Za-z0-9]+)\s+(above|below)\s+([\d.,]+)\s*$", re.IGNORECASE)


def format_price(price: float) -> str:
    if price >= 100:
        return f"{price:,.2f}"
    return f"{price:.6g}"


def normalize_symbol(text: str) -> str:
    return text.strip().upper().replace("/", "")


class CryptoModule(Module):
    """Watchlist of trading pairs and their last known prices."""

    name = "crypto"

    def __init__(self, data_dir: Path, source: PriceSource, refresh_minutes: int = 5) -> None:
        self._source = source
        self._refresh = timedelta(minutes=refresh_minutes)
        self._store = JsonStore(data_dir / "crypto.json")
        data = self._store.load({"symbols": ["BTCUSDT", "ETHUSDT"], "prices": {}, "last_refresh": None})
        self.symbols: list[str] = data.get("symbols", [])
        self.prices: dict[str, dict] = data.get("prices", {})
        self.last_refresh: str | None = data.get("last_refresh")

    def save(self) -> None:
        self._store.save(
            {"symbols": self.symbols, "prices": self.prices, "last_refresh": self.last_refresh}
        )

    def keyboard(self) -> Keyboard:
        return [
            ["/crypto", "/crypto add", "/crypto remove"],
            ["/crypto alerts", "/crypto alert add", "/crypto alert remove"],
            ["/exit"],
        ]

    def price(self, symbol: str) -> float | None:
        entry = self.prices.get(symbol)
        return entry["price"] if entry else None

    async def refresh(self, now: datetime) -> dict[str, float]:
        """Fetch all watched prices; returns the previous values for comparison."""
        previous = {s: e["price"] for s, e in self.prices.items()}
        fetched = await self._source.fetch_many(self.symbols)
        stamp = now.isoformat(timespec="seconds")
        for symbol, price in fetched.items():
            self.prices[symbol] = {"price": price, "updated": stamp}
        self.last_refresh = stamp
        self.save()
        return previous

    async def cycle(self, bot: Butler, now: datetime) -> None:
        if self.last_refresh and now - datetime.fromisoformat(self.last_refresh) < self._refresh:
            return
        await self.refresh(now)

    def render(self, previous: dict[str, float]) -> str:
        lines = []
        for symbol in self.symbols:
            price = self.price(symbol)
            if price is None:
                lines.append(f"{symbol}: n/a")
                continue
            line = f"{symbol}: {format_price(price)}"
            before = previous.get(symbol)
            if before:
                line += f" ({(price - before) * 100 / before:+.2f}%)"
            lines.append(line)
        return "\n".join(lines)

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/crypto add"):
            await bot.ask("Write the symbol to watch, e.g. BTCUSDT.", self._add(bot))
            return True
        if matches(msg, r"^/crypto remove"):
            await bot.ask("Write the symbol to stop watching.", self._remove(bot))
            return True
        if matches(msg, r"^/crypto$"):
            previous = await self.refresh(msg.timestamp)
            await self.reply(bot, msg, self.render(previous) or "Watchlist is empty.")
            return True
        return False

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            symbol = normalize_symbol(msg.text)
            if symbol in self.symbols:
                await self.reply(bot, msg, f"{symbol} is already watched.")
                return
            try:
                price = await self._source.fetch(symbol)
            except PriceError as e:
                await self.reply(bot, msg, f"Can't get a price for {symbol}: {e}")
                return
            self.symbols.append(symbol)
            self.prices[symbol] = {"price": price, "updated": msg.timestamp.isoformat(timespec="seconds")}
            self.save()
            await self.reply(bot, msg, f"Watching {symbol}, now {format_price(price)}.")

        return callback

    def _remove(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            symbol = normalize_symbol(msg.text)
            if symbol not in self.symbols:
                await self.reply(bot, msg, f"{symbol} is not watched.")
                return
            self.symbols.remove(symbol)
            self.prices.pop(symbol, None)
            self.save()
            await self.reply(bot, msg, f"Stopped watching {symbol}.")

        return callback


@dataclass
class PriceAlert:
    id: int
    symbol: str
    direction: str
    target: float
    triggered: bool = False

    def holds(self, price: float) -> bool:
        if self.direction == "above":
            return price >= self.target
        return price <= self.target

    def describe(self) -> str:
        state = " (triggered)" if self.triggered else ""
        return f"#{self.id} {self.symbol} {self.direction} {format_price(self.target)}{state}"


class CryptoAlertsModule(Module):
    """One-shot price alerts checked against the watchlist's cached prices."""

    name = "crypto_alerts"

    def __init__(self, data_dir: Path, crypto: CryptoModule) -> None:
        self._crypto = crypto
        self._store = JsonStore(data_dir / "crypto_alerts.json")
        data = self._store.load({"alerts": [], "next_id": 1})
        self.alerts: list[PriceAlert] = [from_dict(PriceAlert, a) for a in data.get("alerts", [])]
        self.next_id: int = data.get("next_id", 1)

    def save(self) -> None:
        self._store.save({"alerts": [asdict(a) for a in self.alerts], "next_id": self.next_id})

    def keyboard(self) -> Keyboard:
        return self._crypto.keyboard()

    def add(self, symbol: str, direction: str, target: float) -> PriceAlert:
        alert = PriceAlert(id=self.next_id, symbol=symbol, direction=direction, target=target)
        self.next_id += 1
        self.alerts.append(alert)
        if symbol not in self._crypto.symbols:
            self._crypto.symbols.append(symbol)
            self._crypto.save()
        self.save()
        return alert

    async def cycle(self, bot: Butler, now: datetime) -> None:
        fired = []
        for alert in self.alerts:
            if alert.triggered:
                continue
            price = self._crypto.price(alert.symbol)
            if price is not None and alert.holds(price):
                alert.triggered = True
                fired.append((alert, price))
        if not fired:
            return
        self.save()
        for alert, price in fired:
            await bot.send(
                f"🔔 {alert.symbol} is {alert.direction} {format_price(alert.target)} (now {format_price(price)})"
            )

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/crypto alert add"):
            await bot.ask("Write the alert as: SYMBOL above|below PRICE", self._add(bot))
            return True
        if matches(msg, r"^/crypto alert remove"):
            await bot.ask(f"Which alert to remove?\n{self.render()}", self._remove(bot))
            return True
        if matches(msg, r"^/crypto alerts"):
            await self.reply(bot, msg, self.render() or "No alerts.")
            return True
        return False

    def render(self) -> str:
        return "\n".join(a.describe() for a in self.alerts)

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            m = _ALERT_RE.match(msg.text)
            target = parse_float(m.group(3)) if m else None
            if m is None or target is None:
                await self.reply(bot, msg, "Format: SYMBOL above|below PRICE")
                return
            alert = self.add(normalize_symbol(m.group(1)), m.group(2).lower(), target)
            await self.reply(bot, msg, f"Added alert {alert.describe()}")

        return callback

    def _remove(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            aid = parse_int(msg.text.lstrip("#"))
            found = next((a for a in self.alerts if a.id == aid), None)
            if found is None:
                await self.reply(bot, msg, "No such alert.")
                return
            self.alerts.remove(found)
            self.save()
            await self.reply(bot, msg, f"Removed alert {found.describe()}")

        return callback
