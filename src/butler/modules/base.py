"""Feature module base class and shared helpers."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

T = TypeVar("T")

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def matches(msg: IncomingMessage, pattern: str) -> bool:
    """Regex search on the message text."""
    return re.search(pattern, msg.text) is not None


def string_includes(haystack: str, needle: str) -> bool:
    return needle.strip().lower() in haystack.lower()


def find_by_subject(items: Iterable[T], text: str, key: Callable[[T], str]) -> T | None:
    """First item whose key contains text, case-insensitive."""
    if not text.strip():
        return None
    for item in items:
        if string_includes(key(item), text):
            return item
    return None


def parse_int(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def parse_float(text: str) -> float | None:
    try:
        return float(text.strip().replace(",", "."))
    except ValueError:
        return None


class Module:
    """A feature module: command handler plus optional per-minute cycle.

    Subclasses load their state in ``__init__`` and persist it after every
    mutation through a :class:`butler.storage.JsonStore`.
    """

    name: str = "module"

    def keyboard(self) -> Keyboard:
        return [["/exit"]]

    async def reply(self, bot: Butler, msg: IncomingMessage, text: str) -> None:
        await bot.reply(msg, text, self.keyboard())

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        """Return True when the message was claimed by this module."""
        return False

    async def cycle(self, bot: Butler, now: datetime) -> None:
        """Called once per scheduler tick."""
        return None
