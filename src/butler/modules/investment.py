"""Investment portfolio: money put in versus current value, with daily snapshots."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import Module, find_by_subject, matches, parse_float
from butler.modules.crypto import normalize_symbol
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler
    from butler.modules.crypto import CryptoModule

logger = logging.getLogger(__name__)

HISTORY_SHOWN = 14


@dataclass
class Investment:
    name: str
    invested: float = 0.0
    value: float = 0.0
    updated: str = ""
    # Set both to track a crypto position valued from the watchlist
    symbol: str | None = None
    quantity: float | None = None

    @property
    def profit(self) -> float:
        return self.value - self.invested

    @property
    def profit_percent(self) -> float:
        return self.profit * 100 / self.invested if self.invested else 0.0


class InvestmentModule(Module):
    name = "investment"

    def __init__(self, data_dir: Path, snapshot_hour: int = 23, crypto: CryptoModule | None = None) -> None:
        self._snapshot_hour = snapshot_hour
        self._crypto = crypto
        self._store = JsonStore(data_dir / "investment.json")
        data = self._store.load({"investments": [], "history": []})
        self.investments: list[Investment] = [from_dict(Investment, i) for i in data.get("investments", [])]
        self.history: list[dict] = data.get("history", [])

    def save(self) -> None:
        self._store.save({"investments": [asdict(i) for i in self.investments], "history": self.history})

    def keyboard(self) -> Keyboard:
        return [
            ["/investment add", "/investment value", "/investment remove"],
            ["/investment", "/investment history", "/investment track"],
            ["/exit"],
        ]

    def find(self, text: str) -> Investment | None:
        return find_by_subject(self.investments, text, lambda i: i.name)

    def totals(self) -> tuple[float, float]:
        return (
            sum(i.invested for i in self.investments),
            sum(i.value for i in self.investments),
        )

    def watch(self, symbol: str) -> None:
        """Add symbol to the crypto watchlist so its price gets refreshed."""
        if self._crypto is not None and symbol not in self._crypto.symbols:
            self._crypto.symbols.append(symbol)
            self._crypto.save()

    def revalue(self, now: datetime) -> int:
        """Update crypto positions from cached prices. Returns how many changed."""
        if self._crypto is None:
            return 0
        changed = 0
        for inv in self.investments:
            if not inv.symbol or inv.quantity is None:
                continue
            price = self._crypto.price(inv.symbol)
            if price is None:
                continue
            inv.value = round(price * inv.quantity, 2)
            inv.updated = now.isoformat(timespec="seconds")
            changed += 1
        return changed

    def render(self) -> str:
        lines = []
        for inv in self.investments:
            lines.append(
                f"{inv.name}: {inv.invested:.2f} → {inv.value:.2f} "
                f"({inv.profit:+.2f}, {inv.profit_percent:+.2f}%)"
            )
        invested, value = self.totals()
        if lines:
            pct = (value - invested) * 100 / invested if invested else 0.0
            lines.append(f"Total: {invested:.2f} → {value:.2f} ({value - invested:+.2f}, {pct:+.2f}%)")
        return "\n".join(lines)

    async def cycle(self, bot: Butler, now: datetime) -> None:
        today = now.date().isoformat()
        if now.hour != self._snapshot_hour or (self.history and self.history[-1]["date"] == today):
            return
        self.revalue(now)
        invested, value = self.totals()
        self.history.append({"date": today, "invested": round(invested, 2), "value": round(value, 2)})
        self.save()
        logger.info("Investment snapshot %s: %.2f / %.2f", today, invested, value)

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/investment add"):
            await bot.ask("Write the name of the asset.", self._add(bot))
            return True
        if matches(msg, r"^/investment value"):
            await bot.ask("Which asset to revalue?", self._set_value(bot))
            return True
        if matches(msg, r"^/investment track"):
            await bot.ask("Which asset to link to a crypto symbol?", self._track(bot))
            return True
        if matches(msg, r"^/investment remove"):
            await bot.ask("Write the name of the asset to remove.", self._remove(bot))
            return True
        if matches(msg, r"^/investment history"):
            lines = [
                f"{h['date']}: {h['invested']:.2f} → {h['value']:.2f}"
                for h in self.history[-HISTORY_SHOWN:]
            ]
            await self.reply(bot, msg, "\n".join(lines) or "No snapshots yet.")
            return True
        if matches(msg, r"^/investment$"):
            if self.revalue(msg.timestamp):
                self.save()
            await self.reply(bot, msg, self.render() or "No investments yet.")
            return True
        return False

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            name = msg.text.strip()
            if not name:
                await self.reply(bot, msg, "Specify the asset name.")
                return

            async def on_amount(m: IncomingMessage) -> None:
                amount = parse_float(m.text)
                if amount is None or amount <= 0:
                    await self.reply(bot, m, "Amount must be a positive number.")
                    return
                stamp = m.timestamp.isoformat(timespec="seconds")
                inv = next((i for i in self.investments if i.name.lower() == name.lower()), None)
                if inv is None:
                    inv = Investment(name=name, invested=amount, value=amount, updated=stamp)
                    self.investments.append(inv)
                else:
                    inv.invested += amount
                    inv.value += amount
                    inv.updated = stamp
                self.save()
                await self.reply(bot, m, f"{inv.name}: invested {inv.invested:.2f}, value {inv.value:.2f}.")

            await bot.ask(f"How much was invested in {name}?", on_amount)

        return callback

    def _set_value(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            inv = self.find(msg.text)
            if inv is None:
                await self.reply(bot, msg, "No such asset.")
                return

            async def on_value(m: IncomingMessage) -> None:
                value = parse_float(m.text)
                if value is None or value < 0:
                    await self.reply(bot, m, "Value must be a non-negative number.")
                    return
                inv.value = value
                inv.updated = m.timestamp.isoformat(timespec="seconds")
                self.save()
                await self.reply(bot, m, f"{inv.name} is worth {value:.2f} ({inv.profit_percent:+.2f}%).")

            await bot.ask(f"Current value of {inv.name}?", on_value)

        return callback

    def _remove(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            inv = self.find(msg.text)
            if inv is None:
                await self.reply(bot, msg, "No such asset.")
                return
            self.investments.remove(inv)
            self.save()
            await self.reply(bot, msg, f"Removed {inv.name}.")

        return callback

    def _track(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            inv = self.find(msg.text)
            if inv is None:
                await self.reply(bot, msg, "No such asset.")
                return

            async def on_position(m: IncomingMessage) -> None:
                parts = m.text.split()
                quantity = parse_float(parts[1]) if len(parts) == 2 else None
                if quantity is None or quantity <= 0:
                    await self.reply(bot, m, "Format: SYMBOL QUANTITY, e.g. BTCUSDT 0.05")
                    return
                inv.symbol = normalize_symbol(parts[0])
                inv.quantity = quantity
                self.watch(inv.symbol)
                self.revalue(m.timestamp)
                self.save()
                await self.reply(bot, m, f"{inv.name} follows {inv.symbol} x {quantity:g}.")

            await bot.ask("Write SYMBOL QUANTITY.", on_position)

        return callback
