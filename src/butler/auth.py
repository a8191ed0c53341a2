"""Single-chat password authorization."""

from __future__ import annotations

import hmac
import logging
from pathlib import Path

from butler.storage import JsonStore

logger = logging.getLogger(__name__)


class AuthService:
    """Remembers the one chat allowed to talk to the bot."""

    def __init__(self, data_dir: Path, password: str, preset_chat_id: int | None = None) -> None:
        self._password = password
        self._store = JsonStore(data_dir / "auth.json")
        self._chat_id: int | None = self._store.load({"chat_id": None}).get("chat_id")
        if preset_chat_id is not None and self._chat_id is None:
            self._chat_id = preset_chat_id
            self._save()

    @property
    def chat_id(self) -> int | None:
        return self._chat_id

    def check(self, chat_id: int) -> bool:
        if not self._password and self._chat_id is None:
            # No password: the first chat to write claims the bot
            self._chat_id = chat_id
            self._save()
            logger.info("Bound to chat %s (no password configured)", chat_id)
            return True
        return self._chat_id == chat_id

    def try_auth(self, text: str, chat_id: int) -> bool:
        if not hmac.compare_digest(text.strip().encode(), self._password.encode()):
            logger.warning("Failed auth attempt from chat %s", chat_id)
            return False
        self._chat_id = chat_id
        self._save()
        logger.info("Authorized chat %s", chat_id)
        return True

    def reset(self) -> None:
        self._chat_id = None
        self._save()

    def _save(self) -> None:
        self._store.save({"chat_id": self._chat_id})
