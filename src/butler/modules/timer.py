"""Countdown timers. Kept in memory only; they don't survive a restart."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from butler.modules.base import Module, matches, parse_float, parse_int

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)

_START_RE = re.compile(r"^/timer\s+(\d+(?:[.,]\d+)?)\s*(.*)$")


@dataclass
class Timer:
    minutes: float
    label: str
    ends_at: datetime
    task: asyncio.Task | None = None

    def remaining(self, now: datetime) -> timedelta:
        return max(self.ends_at - now, timedelta(0))


def format_minutes(minutes: float) -> str:
    return f"{minutes:g}"


class TimerModule(Module):
    name = "timer"

    def __init__(self) -> None:
        self.timers: list[Timer] = []

    def keyboard(self) -> Keyboard:
        return [["/timer 5", "/timer 25", "/timer 60"], ["/timers", "/timer cancel"], ["/exit"]]

    def start_timer(self, bot: Butler, minutes: float, label: str = "") -> Timer:
        timer = Timer(minutes=minutes, label=label, ends_at=datetime.now() + timedelta(minutes=minutes))
        timer.task = bot.spawn(self._run(bot, timer))
        self.timers.append(timer)
        logger.info("Timer %s started for %s min", label or "-", format_minutes(minutes))
        return timer

    async def _run(self, bot: Butler, timer: Timer) -> None:
        try:
            await asyncio.sleep(timer.minutes * 60)
            name = f"{timer.label} " if timer.label else ""
            await bot.send(f"⏰ Timer {name}({format_minutes(timer.minutes)} min) finished.")
        finally:
            if timer in self.timers:
                self.timers.remove(timer)

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/timers"):
            await self.reply(bot, msg, self.render(datetime.now()) or "No running timers.")
            return True
        if matches(msg, r"^/timer cancel"):
            await bot.ask(f"Which timer to cancel?\n{self.render(datetime.now())}", self._cancel(bot))
            return True
        m = _START_RE.match(msg.text.strip())
        if m:
            await self._start_from_text(bot, msg, m.group(1), m.group(2).strip())
            return True
        if matches(msg, r"^/timer$"):
            await bot.ask("For how many minutes?", self._ask_minutes(bot))
            return True
        return False

    def render(self, now: datetime) -> str:
        lines = []
        for n, t in enumerate(self.timers, 1):
            left = int(t.remaining(now).total_seconds())
            label = f" {t.label}" if t.label else ""
            lines.append(f"{n}.{label} {left // 60}:{left % 60:02d} left of {format_minutes(t.minutes)} min")
        return "\n".join(lines)

    async def _start_from_text(self, bot: Butler, msg: IncomingMessage, amount: str, label: str) -> None:
        minutes = parse_float(amount)
        if minutes is None or minutes <= 0:
            await self.reply(bot, msg, "Timer length must be a positive number of minutes.")
            return
        self.start_timer(bot, minutes, label)
        await self.reply(bot, msg, f"Timer set for {format_minutes(minutes)} min.")

    def _ask_minutes(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            amount, _, label = msg.text.strip().partition(" ")
            await self._start_from_text(bot, msg, amount, label.strip())

        return callback

    def _cancel(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            number = parse_int(msg.text)
            if number is None or not 1 <= number <= len(self.timers):
                await self.reply(bot, msg, "No such timer.")
                return
            timer = self.timers.pop(number - 1)
            if timer.task is not None:
                timer.task.cancel()
            await self.reply(bot, msg, f"Cancelled timer {number}.")

        return callback
