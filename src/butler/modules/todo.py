"""Todo list with a morning reminder."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import Module, matches, parse_int, string_includes
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)


@dataclass
class TodoItem:
    text: str
    created: str = ""
    done: bool = False
    done_at: str | None = None


class TodoModule(Module):
    name = "todo"

    def __init__(self, data_dir: Path, reminder_hour: int = 9) -> None:
        self._reminder_hour = reminder_hour
        self._store = JsonStore(data_dir / "todo.json")
        data = self._store.load({"items": [], "last_reminder": None})
        self.items: list[TodoItem] = [from_dict(TodoItem, i) for i in data.get("items", [])]
        self.last_reminder: str | None = data.get("last_reminder")

    def save(self) -> None:
        self._store.save({"items": [asdict(i) for i in self.items], "last_reminder": self.last_reminder})

    def keyboard(self) -> Keyboard:
        return [
            ["/todo add", "/todo done", "/todo remove"],
            ["/todo list", "/todo clear"],
            ["/exit"],
        ]

    @property
    def open_items(self) -> list[TodoItem]:
        return [i for i in self.items if not i.done]

    def render_open(self) -> str:
        return "\n".join(f"{n}. {item.text}" for n, item in enumerate(self.open_items, 1))

    def resolve(self, text: str) -> TodoItem | None:
        """Find an open item by its 1-based number or a text fragment."""
        items = self.open_items
        number = parse_int(text)
        if number is not None:
            return items[number - 1] if 1 <= number <= len(items) else None
        for item in items:
            if text.strip() and string_includes(item.text, text):
                return item
        return None

    async def cycle(self, bot: Butler, now: datetime) -> None:
        today = now.date().isoformat()
        if now.hour != self._reminder_hour or self.last_reminder == today:
            return
        self.last_reminder = today
        self.save()
        if self.open_items:
            await bot.send(f"Open todos:\n{self.render_open()}", self.keyboard())

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/todo add"):
            await bot.ask("Write the todo.", self._add(bot))
            return True
        if matches(msg, r"^/todo done"):
            await bot.ask(f"Which one is done?\n{self.render_open()}", self._done(bot))
            return True
        if matches(msg, r"^/todo remove"):
            await bot.ask(f"Which one to remove?\n{self.render_open()}", self._remove(bot))
            return True
        if matches(msg, r"^/todo clear"):
            before = len(self.items)
            self.items = self.open_items
            self.save()
            await self.reply(bot, msg, f"Removed {before - len(self.items)} done todos.")
            return True
        if matches(msg, r"^/todo( list)?$"):
            await self.reply(bot, msg, self.render_open() or "Nothing to do.")
            return True
        return False

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            text = msg.text.strip()
            if not text:
                await self.reply(bot, msg, "Todo can't be empty.")
                return
            self.items.append(TodoItem(text=text, created=msg.timestamp.isoformat(timespec="seconds")))
            self.save()
            await self.reply(bot, msg, f"Added todo #{len(self.open_items)}: {text}")

        return callback

    def _done(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            item = self.resolve(msg.text)
            if item is None:
                await self.reply(bot, msg, "No such todo.")
                return
            item.done = True
            item.done_at = msg.timestamp.isoformat(timespec="seconds")
            self.save()
            await self.reply(bot, msg, f"Done: {item.text}")

        return callback

    def _remove(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            item = self.resolve(msg.text)
            if item is None:
                await self.reply(bot, msg, "No such todo.")
                return
            self.items.remove(item)
            self.save()
            await self.reply(bot, msg, f"Removed: {item.text}")

        return callback
