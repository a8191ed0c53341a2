"""Telegram connector.

Receives text messages via long polling and sends replies through the
Bot API using python-telegram-bot.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from telegram import ReplyKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from butler.connectors.base import IncomingMessage

if TYPE_CHECKING:
    from butler.config import TelegramConfig
    from butler.connectors.base import Keyboard
    from butler.connectors.base import MessageHandler as Handler

logger = logging.getLogger(__name__)


def build_markup(keyboard: Keyboard | None) -> ReplyKeyboardMarkup | None:
    if not keyboard:
        return None
    return ReplyKeyboardMarkup(keyboard, resize_keyboard=True)


class TelegramConnector:
    """Long-polling Telegram connector."""

    def __init__(self, config: TelegramConfig) -> None:
        if not config.token:
            raise ValueError("Telegram token is not configured (BUTLER_TELEGRAM_TOKEN)")
        self._config = config
        self._handler: Handler | None = None
        self._stopped = asyncio.Event()
        self._ready = asyncio.Event()
        self._app = Application.builder().token(config.token).build()
        self._app.add_handler(MessageHandler(filters.TEXT & filters.UpdateType.MESSAGE, self._on_text))

    @property
    def name(self) -> str:
        return "telegram"

    async def start(self, handler: Handler) -> None:
        self._handler = handler
        await self._app.initialize()
        self._ready.set()
        await self._app.start()
        await self._app.updater.start_polling()
        logger.info("Telegram polling started")
        await self._stopped.wait()

    async def _on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if message is None or self._handler is None:
            return

        user = message.from_user
        msg = IncomingMessage(
            text=message.text or "",
            chat_id=message.chat_id,
            sender=user.username or str(user.id) if user else "",
            message_id=message.message_id,
            connector_name=self.name,
            timestamp=message.date.astimezone().replace(tzinfo=None),
        )
        await self._handler(msg)

    async def stop(self) -> None:
        if self._app.updater and self._app.updater.running:
            await self._app.updater.stop()
        if self._app.running:
            await self._app.stop()
        await self._app.shutdown()
        self._stopped.set()
        logger.info("Telegram polling stopped")

    async def send(self, chat_id: int, text: str, keyboard: Keyboard | None = None) -> int | None:
        await self._ready.wait()
        markup = build_markup(keyboard)
        try:
            sent = await self._app.bot.send_message(
                chat_id, text, parse_mode=ParseMode.MARKDOWN, reply_markup=markup
            )
        except BadRequest as e:
            # Usually unbalanced Markdown entities in user-provided text
            logger.warning("Markdown rejected (%s), resending as plain text", e)
            sent = await self._app.bot.send_message(chat_id, text, reply_markup=markup)
        return sent.message_id

    async def send_document(self, chat_id: int, path: Path, caption: str | None = None) -> None:
        await self._ready.wait()
        with path.open("rb") as f:
            await self._app.bot.send_document(chat_id, document=f, filename=path.name, caption=caption)

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self._app.bot.delete_message(chat_id, message_id)
        except TelegramError as e:
            logger.warning("Failed to delete message %s: %s", message_id, e)
