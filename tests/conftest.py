"""Shared fixtures: a recording connector and a hub wired to it."""

from __future__ import annotations

import itertools
from datetime import datetime
from pathlib import Path

import pytest

from butler.config import ButlerConfig, TelegramConfig
from butler.connectors.base import IncomingMessage
from butler.core import Butler
from butler.modules.prices import PriceError

CHAT = 42
# 2024-01-01 was a Monday
MONDAY_18 = datetime(2024, 1, 1, 18, 0)


class FakeConnector:
    """Records everything the hub sends."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str, list | None]] = []
        self.documents: list[tuple[int, Path, str | None]] = []
        self.deleted: list[tuple[int, int]] = []
        self.started = False
        self.stopped = False
        self._ids = itertools.count(1000)

    @property
    def name(self) -> str:
        return "fake"

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]

    @property
    def last(self) -> str:
        return self.sent[-1][1]

    async def start(self, handler) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def send(self, chat_id, text, keyboard=None):
        self.sent.append((chat_id, text, keyboard))
        return next(self._ids)

    async def send_document(self, chat_id, path, caption=None) -> None:
        self.documents.append((chat_id, path, caption))

    async def delete_message(self, chat_id, message_id) -> None:
        self.deleted.append((chat_id, message_id))


class FakeSource:
    """Stands in for PriceSource with a mutable price table."""

    def __init__(self, prices: dict[str, float]) -> None:
        self.prices = dict(prices)
        self.calls = 0

    async def fetch(self, symbol: str) -> float:
        self.calls += 1
        if symbol not in self.prices:
            raise PriceError(f"{symbol}: HTTP 400 Invalid symbol.")
        return self.prices[symbol]

    async def fetch_many(self, symbols: list[str]) -> dict[str, float]:
        self.calls += 1
        return {s: self.prices[s] for s in symbols if s in self.prices}


_message_ids = itertools.count(1)


def make_msg(text: str, chat_id: int = CHAT, when: datetime | None = None) -> IncomingMessage:
    return IncomingMessage(
        text=text,
        chat_id=chat_id,
        sender="tester",
        message_id=next(_message_ids),
        connector_name="fake",
        timestamp=when or MONDAY_18,
    )


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def config(data_dir: Path) -> ButlerConfig:
    return ButlerConfig(
        telegram=TelegramConfig(token="", chat_id=CHAT, password="secret"),
        data_dir=data_dir,
        delete_delay=0,
    )


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def bot(config: ButlerConfig, connector: FakeConnector) -> Butler:
    b = Butler(config)
    b.add_connector(connector)
    return b


async def converse(bot: Butler, *texts: str, when: datetime | None = None) -> None:
    """Feed messages to the hub one after another."""
    for text in texts:
        await bot.handle_message(make_msg(text, when=when))
