"""Connector protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Coroutine, Protocol, runtime_checkable

# Reply keyboard: rows of button labels
Keyboard = list[list[str]]


@dataclass
class IncomingMessage:
    """A text message received from any connector."""

    text: str
    chat_id: int
    sender: str = ""
    message_id: int | None = None
    connector_name: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)

    def printable_time(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")


# Callback type: core.Butler.handle_message
MessageHandler = Callable[[IncomingMessage], Coroutine[None, None, None]]


@runtime_checkable
class Connector(Protocol):
    """Protocol that all chat transports must implement."""

    @property
    def name(self) -> str: ...

    async def start(self, handler: MessageHandler) -> None:
        """Start listening for messages. Call handler for each incoming message."""
        ...

    async def stop(self) -> None:
        """Gracefully stop the connector."""
        ...

    async def send(self, chat_id: int, text: str, keyboard: Keyboard | None = None) -> int | None:
        """Send a text message. Returns the sent message id when the transport has one."""
        ...

    async def send_document(self, chat_id: int, path: Path, caption: str | None = None) -> None:
        """Upload a file to the chat."""
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        """Delete a message from the chat."""
        ...
