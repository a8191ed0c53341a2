"""Notes: free text typed into the chat, grouped into named slots."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import frontmatter

from butler.core import default_keyboard
from butler.modules.base import Module, matches
from butler.storage import JsonStore

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)

_DEFAULT_SLOT = "main"


class NotesModule(Module):
    name = "notes"

    def __init__(self, data_dir: Path) -> None:
        self._published_dir = data_dir / "published"
        self._store = JsonStore(data_dir / "notes.json")
        data = self._store.load({"slots": [_DEFAULT_SLOT], "current": 0, "notes": {_DEFAULT_SLOT: []}})
        self.slots: list[str] = data.get("slots") or [_DEFAULT_SLOT]
        self.current: int = min(data.get("current", 0), len(self.slots) - 1)
        self.notes: dict[str, list[dict]] = data.get("notes", {})
        for slot in self.slots:
            self.notes.setdefault(slot, [])

    def save(self) -> None:
        self._store.save({"slots": self.slots, "current": self.current, "notes": self.notes})

    def keyboard(self) -> Keyboard:
        return default_keyboard()

    @property
    def slot(self) -> str:
        return self.slots[self.current]

    async def log_note(self, msg: IncomingMessage, bot: Butler) -> None:
        """Store plain text that no module claimed."""
        self.notes[self.slot].append(
            {"text": msg.text, "created": msg.timestamp.isoformat(timespec="seconds")}
        )
        self.save()
        await self.reply(bot, msg, f"Noted ({len(self.notes[self.slot])} in {self.slot}).")

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/logs"):
            await self.reply(bot, msg, self.render(self.slot) or f"No notes in {self.slot}.")
            return True
        if matches(msg, r"^/notes undo"):
            notes = self.notes[self.slot]
            if not notes:
                await self.reply(bot, msg, f"No notes in {self.slot}.")
                return True
            removed = notes.pop()
            self.save()
            await self.reply(bot, msg, f"Removed: {removed['text']}")
            return True
        if matches(msg, r"^/reset"):
            count = len(self.notes[self.slot])
            self.notes[self.slot] = []
            self.save()
            await self.reply(bot, msg, f"Cleared {count} notes from {self.slot}.")
            return True
        if matches(msg, r"^/slots"):
            lines = [
                f"{'*' if i == self.current else ' '} {name} ({len(self.notes[name])})"
                for i, name in enumerate(self.slots)
            ]
            await self.reply(bot, msg, "\n".join(lines))
            return True
        if matches(msg, r"^/slot next"):
            self.current = (self.current + 1) % len(self.slots)
            self.save()
            await self.reply(bot, msg, f"Current slot: {self.slot}")
            return True
        if matches(msg, r"^/slot prev"):
            self.current = (self.current - 1) % len(self.slots)
            self.save()
            await self.reply(bot, msg, f"Current slot: {self.slot}")
            return True
        if matches(msg, r"^/slot add"):
            await bot.ask("Write the name of the new slot.", self._add_slot(bot))
            return True
        if matches(msg, r"^/publish"):
            if not self.notes[self.slot]:
                await self.reply(bot, msg, f"No notes in {self.slot}.")
                return True
            path = self.publish(msg.timestamp)
            await bot.send_document(path, f"{self.slot}: {len(self.notes[self.slot])} notes")
            return True
        return False

    def render(self, slot: str) -> str:
        lines = []
        for note in self.notes.get(slot, []):
            created = datetime.fromisoformat(note["created"])
            lines.append(f"{created:%H:%M} {note['text']}")
        return "\n".join(lines)

    def publish(self, now: datetime) -> Path:
        """Write the current slot as Markdown with front matter."""
        notes = self.notes[self.slot]
        body = "\n".join(f"- {n['text']}" for n in notes)
        post = frontmatter.Post(
            f"# {self.slot}\n\n{body}\n",
            slot=self.slot,
            published=now.isoformat(timespec="seconds"),
            count=len(notes),
        )
        self._published_dir.mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[<>:\"/\\|?*\s]+", "-", self.slot).strip("-") or "slot"
        path = self._published_dir / f"{slug}-{now:%Y%m%dT%H%M%S}.md"
        path.write_text(frontmatter.dumps(post), encoding="utf-8")
        logger.info("Published %d notes to %s", len(notes), path)
        return path

    def _add_slot(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            name = msg.text.strip()
            if not name or name.startswith("/"):
                await self.reply(bot, msg, "Slot name can't be empty or a command.")
                return
            if name not in self.slots:
                self.slots.append(name)
                self.notes.setdefault(name, [])
            self.current = self.slots.index(name)
            self.save()
            await self.reply(bot, msg, f"Current slot: {self.slot}")

        return callback
