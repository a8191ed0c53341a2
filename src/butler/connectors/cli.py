"""Local CLI REPL connector for development and testing."""

from __future__ import annotations

import asyncio
import itertools
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from butler.connectors.base import IncomingMessage

if TYPE_CHECKING:
    from butler.connectors.base import Keyboard, MessageHandler

logger = logging.getLogger(__name__)

CLI_CHAT_ID = 0
_CLI_SENDER = "user"


class CLIConnector:
    """Interactive REPL connector: reads from stdin, writes to stdout."""

    def __init__(self) -> None:
        self._running = False
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return "cli"

    async def start(self, handler: MessageHandler) -> None:
        self._running = True
        loop = asyncio.get_event_loop()

        print("Butler (type 'quit' or Ctrl+C to leave)")
        print("-" * 40)

        while self._running:
            try:
                line = await loop.run_in_executor(None, self._read_input)
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if line is None or line.strip().lower() == "quit":
                print("Bye!")
                break

            text = line.strip()
            if not text:
                continue

            msg = IncomingMessage(
                text=text,
                chat_id=CLI_CHAT_ID,
                sender=_CLI_SENDER,
                message_id=next(self._ids),
                connector_name=self.name,
            )
            await handler(msg)

    def _read_input(self) -> str | None:
        try:
            sys.stdout.write("\nYou: ")
            sys.stdout.flush()
            raw = sys.stdin.buffer.readline()
            if not raw:
                return None
            return raw.decode("utf-8", errors="replace").rstrip("\n")
        except EOFError:
            return None

    async def stop(self) -> None:
        self._running = False

    async def send(self, chat_id: int, text: str, keyboard: Keyboard | None = None) -> int | None:
        print(f"\nButler: {text}")
        if keyboard:
            for row in keyboard:
                print("  " + " ".join(f"[{label}]" for label in row))
        return next(self._ids)

    async def send_document(self, chat_id: int, path: Path, caption: str | None = None) -> None:
        print(f"\nButler: <file {path}>" + (f" {caption}" if caption else ""))

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        logger.debug("Would delete message %s", message_id)
