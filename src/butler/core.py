"""Butler hub: routes chat messages to feature modules.

Responsibilities:
1. Receive messages from any connector (IncomingMessage)
2. Serialize processing, one message at a time
3. Authorize the single allowed chat
4. Resume a pending dialog (the one-slot continuation)
5. Walk the ordered module chain until one claims the message
6. Drive every module's periodic cycle for the scheduler
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.auth import AuthService
from butler.config import ButlerConfig
from butler.connectors.base import IncomingMessage, Keyboard

if TYPE_CHECKING:
    from butler.connectors.base import Connector
    from butler.modules.base import Module
    from butler.modules.notes import NotesModule

logger = logging.getLogger(__name__)

Continuation = Callable[[IncomingMessage], Awaitable[None]]

EXIT_KEYBOARD: Keyboard = [["/exit"]]


def default_keyboard() -> Keyboard:
    return [
        ["/logs", "/notes undo", "/publish"],
        ["/slots", "/slot prev", "/slot next"],
        ["/crypto", "/investment", "/todo"],
        ["/reset", "/extra"],
    ]


def extra_keyboard() -> Keyboard:
    return [
        ["/notify", "/timer", "/backup"],
        ["/projects", "/learning", "/crypto alerts"],
        ["/exit"],
    ]


class Butler:
    """Core hub: one authorized chat, an ordered chain of modules."""

    def __init__(self, config: ButlerConfig) -> None:
        self.config = config
        self.data_dir = config.data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.auth = AuthService(self.data_dir, config.telegram.password, config.telegram.chat_id)
        self.notes: NotesModule | None = None
        self._modules: list[Module] = []
        self._connectors: list[Connector] = []
        self._waiting: Continuation | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    # ── Registration ─────────────────────────────────────────

    def add_connector(self, connector: Connector) -> None:
        self._connectors.append(connector)
        logger.info("Registered connector: %s", connector.name)

    def add_module(self, module: Module) -> None:
        self._modules.append(module)
        logger.info("Registered module: %s", module.name)

    def get_module(self, name: str) -> Module | None:
        for module in self._modules:
            if module.name == name:
                return module
        return None

    @property
    def modules(self) -> list[Module]:
        return list(self._modules)

    # ── Continuation slot ────────────────────────────────────

    @property
    def waiting(self) -> bool:
        return self._waiting is not None

    def wait_for(self, callback: Continuation) -> None:
        """Route the next message to callback instead of the module chain."""
        self._waiting = callback

    async def ask(self, prompt: str, callback: Continuation, chat_id: int | None = None) -> None:
        """Send prompt and route the reply to callback."""
        if chat_id is None:
            await self.send(prompt, EXIT_KEYBOARD)
        else:
            await self._send_to(self._primary(), chat_id, prompt, EXIT_KEYBOARD)
        self._waiting = callback

    # ── Outgoing ─────────────────────────────────────────────

    def _primary(self) -> Connector | None:
        return self._connectors[0] if self._connectors else None

    def _connector_for(self, msg: IncomingMessage) -> Connector | None:
        for connector in self._connectors:
            if connector.name == msg.connector_name:
                return connector
        return self._primary()

    @property
    def default_chat(self) -> int | None:
        if self.config.telegram.chat_id is not None:
            return self.config.telegram.chat_id
        return self.auth.chat_id

    async def _send_to(
        self, connector: Connector | None, chat_id: int, text: str, keyboard: Keyboard | None
    ) -> int | None:
        if connector is None:
            logger.warning("No connector to deliver: %s", text[:80])
            return None
        return await connector.send(chat_id, text or "null", keyboard or default_keyboard())

    async def send(self, text: str, keyboard: Keyboard | None = None) -> int | None:
        """Send to the default chat."""
        logger.info("%s", text)
        chat_id = self.default_chat
        if chat_id is None:
            logger.warning("No authorized chat yet, dropping: %s", text[:80])
            return None
        return await self._send_to(self._primary(), chat_id, text, keyboard)

    async def reply(self, msg: IncomingMessage, text: str, keyboard: Keyboard | None = None) -> int | None:
        return await self._send_to(self._connector_for(msg), msg.chat_id, text, keyboard)

    async def send_document(self, path: Path, caption: str | None = None, chat_id: int | None = None) -> None:
        connector = self._primary()
        target = chat_id if chat_id is not None else self.default_chat
        if connector is None or target is None:
            logger.warning("Cannot deliver document %s", path)
            return
        await connector.send_document(target, path, caption)

    def delete_later(self, chat_id: int, message_id: int | None, delay: float | None = None) -> None:
        """Delete a message after delay seconds, in the background."""
        connector = self._primary()
        if message_id is None or connector is None:
            return
        delay = self.config.delete_delay if delay is None else delay

        async def _delete() -> None:
            await asyncio.sleep(delay)
            try:
                await connector.delete_message(chat_id, message_id)
            except Exception as e:
                logger.warning("Failed to delete message %s: %s", message_id, e)

        self.spawn(_delete())

    def spawn(self, coro: Awaitable) -> asyncio.Task:
        """Run a coroutine in the background, tracked until stop()."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Message handling (the core loop) ─────────────────────

    async def handle_message(self, msg: IncomingMessage) -> None:
        """Process an incoming message: the main entry point for all connectors."""
        async with self._lock:
            try:
                await self._process(msg)
            except Exception as e:
                logger.exception("Error handling %r", msg.text)
                try:
                    await self.send(str(e))
                except Exception as send_error:
                    logger.error("Failed to report error: %s", send_error)

    async def _process(self, msg: IncomingMessage) -> None:
        text = msg.text.strip()
        logger.info("[%s] %s", msg.printable_time(), msg.text)

        if text.startswith("/id"):
            await self.reply(msg, f"Current chat id: {msg.chat_id}")
            return

        if text.startswith("/auth"):
            self.auth.reset()

        if not self.auth.check(msg.chat_id):
            ok = self.auth.try_auth(text, msg.chat_id)
            sent = await self.reply(msg, "Authorized successfully" if ok else "Wrong password")
            self.delete_later(msg.chat_id, sent)
            self.delete_later(msg.chat_id, msg.message_id)
            return

        if not text:
            return

        if self._waiting is not None:
            callback = self._waiting
            self._waiting = None
            if text == "/exit":
                await self.reply(msg, "Cancelled.")
                return
            await callback(msg)
            return

        if text.startswith("/exit"):
            await self.reply(msg, "Main module.")
            return

        if text.startswith("/extra"):
            await self.reply(msg, "Extra modules", extra_keyboard())
            return

        for module in self._modules:
            if await module.handle(msg, self):
                return

        if text.startswith("/"):
            self.delete_later(msg.chat_id, msg.message_id)
            return

        if self.config.modules.notes_enabled and self.notes is not None:
            await self.notes.log_note(msg, self)
        else:
            await self.reply(msg, "Unknown command")

    # ── Periodic cycles ──────────────────────────────────────

    async def run_cycles(self, now: datetime | None = None) -> None:
        """Run every module's cycle in registration order."""
        now = now or datetime.now()
        for module in self._modules:
            try:
                await module.cycle(self, now)
            except Exception as e:
                logger.error("Cycle of %s failed: %s", module.name, e, exc_info=True)

    # ── Lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        """Start all connectors (each listens for messages)."""
        if not self._connectors:
            raise RuntimeError("No connectors registered. Call add_connector() first.")

        tasks = [connector.start(self.handle_message) for connector in self._connectors]
        await asyncio.gather(*tasks)

    async def stop(self) -> None:
        """Stop connectors and cancel background tasks."""
        for connector in self._connectors:
            await connector.stop()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
