"""Notifier: reminders sent at a fixed time of day."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import WEEKDAYS, Module, matches, parse_int
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^\s*(\d{1,2})[:.](\d{2})\s*$")


@dataclass
class Notification:
    id: int
    text: str
    hour: int
    minute: int
    days: list[int] = field(default_factory=list)
    once: bool = False
    last_sent: str | None = None

    def due(self, now: datetime) -> bool:
        if (now.hour, now.minute) != (self.hour, self.minute):
            return False
        if self.days and now.weekday() not in self.days:
            return False
        return self.last_sent != now.date().isoformat()

    def describe(self) -> str:
        if self.once:
            when = "once"
        elif self.days:
            when = ", ".join(WEEKDAYS[d] for d in self.days)
        else:
            when = "every day"
        return f"#{self.id} {self.hour:02d}:{self.minute:02d} ({when}) {self.text}"


def parse_time(text: str) -> tuple[int, int] | None:
    m = _TIME_RE.match(text)
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_days(text: str) -> tuple[list[int], bool] | None:
    """Parse '*', 'once' or comma-separated weekday numbers into (days, once)."""
    text = text.strip().lower()
    if text in ("*", ""):
        return [], False
    if text == "once":
        return [], True
    days = []
    for part in text.split(","):
        day = parse_int(part)
        if day is None or not 0 <= day <= 6:
            return None
        days.append(day)
    return sorted(set(days)), False


class NotifierModule(Module):
    name = "notifier"

    def __init__(self, data_dir: Path) -> None:
        self._store = JsonStore(data_dir / "notifier.json")
        data = self._store.load({"notifications": [], "next_id": 1})
        self.notifications: list[Notification] = [
            from_dict(Notification, n) for n in data.get("notifications", [])
        ]
        self.next_id: int = data.get("next_id", 1)

    def save(self) -> None:
        self._store.save(
            {"notifications": [asdict(n) for n in self.notifications], "next_id": self.next_id}
        )

    def keyboard(self) -> Keyboard:
        return [["/notify add", "/notify list", "/notify remove"], ["/exit"]]

    def add(self, text: str, hour: int, minute: int, days: list[int], once: bool) -> Notification:
        notification = Notification(
            id=self.next_id, text=text, hour=hour, minute=minute, days=days, once=once
        )
        self.next_id += 1
        self.notifications.append(notification)
        self.save()
        return notification

    async def cycle(self, bot: Butler, now: datetime) -> None:
        due = [n for n in self.notifications if n.due(now)]
        if not due:
            return
        for n in due:
            n.last_sent = now.date().isoformat()
        self.notifications = [n for n in self.notifications if not (n.once and n in due)]
        self.save()
        for n in due:
            await bot.send(f"🔔 {n.text}")

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/notify add"):
            await bot.ask("What should I remind you about?", self._add(bot))
            return True
        if matches(msg, r"^/notify remove"):
            await bot.ask(f"Which one to remove?\n{self.render()}", self._remove(bot))
            return True
        if matches(msg, r"^/notify( list)?$"):
            await self.reply(bot, msg, self.render() or "No notifications.")
            return True
        return False

    def render(self) -> str:
        ordered = sorted(self.notifications, key=lambda n: (n.hour, n.minute))
        return "\n".join(n.describe() for n in ordered)

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            text = msg.text.strip()
            if not text:
                await self.reply(bot, msg, "Reminder text can't be empty.")
                return

            async def on_time(m: IncomingMessage) -> None:
                parsed = parse_time(m.text)
                if parsed is None:
                    await self.reply(bot, m, "Time must look like HH:MM.")
                    return
                hour, minute = parsed

                async def on_days(d: IncomingMessage) -> None:
                    schedule = parse_days(d.text)
                    if schedule is None:
                        await self.reply(bot, d, "Days must be '*', 'once' or numbers in range [0,6].")
                        return
                    days, once = schedule
                    n = self.add(text, hour, minute, days, once)
                    await self.reply(bot, d, f"Added {n.describe()}")

                await bot.ask("Which days? '*' for every day, 'once', or numbers like 0,2,4.", on_days)

            await bot.ask("At what time? (HH:MM)", on_time)

        return callback

    def _remove(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            nid = parse_int(msg.text.lstrip("#"))
            found = next((n for n in self.notifications if n.id == nid), None)
            if found is None:
                await self.reply(bot, msg, "No such notification.")
                return
            self.notifications.remove(found)
            self.save()
            await self.reply(bot, msg, f"Removed {found.describe()}")

        return callback
