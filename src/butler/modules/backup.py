"""Backups: zip every data file, on demand and once a day."""

from __future__ import annotations

import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import Module, matches
from butler.storage import JsonStore

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)


class BackupModule(Module):
    name = "backup"

    def __init__(self, data_dir: Path, backup_hour: int = 3, keep: int = 7) -> None:
        self._data_dir = data_dir
        self._backup_dir = data_dir / "backups"
        self._backup_hour = backup_hour
        self._store = JsonStore(data_dir / "backup.json")
        data = self._store.load({"last_backup": None, "last_daily": None, "keep": keep})
        self.last_backup: str | None = data.get("last_backup")
        # Date of the last scheduled run; manual backups don't touch it
        self.last_daily: str | None = data.get("last_daily")
        self.keep: int = data.get("keep", keep)

    def save(self) -> None:
        self._store.save({"last_backup": self.last_backup, "last_daily": self.last_daily, "keep": self.keep})

    def keyboard(self) -> Keyboard:
        return [["/backup", "/backup list"], ["/exit"]]

    def create_archive(self, now: datetime) -> Path:
        """Write a zip of all *.json data files to the backups dir."""
        self._backup_dir.mkdir(parents=True, exist_ok=True)
        path = self._backup_dir / f"backup-{now:%Y%m%dT%H%M%S}.zip"
        files = sorted(self._data_dir.glob("*.json"))
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for f in files:
                zf.write(f, arcname=f.name)
        self.last_backup = now.isoformat(timespec="seconds")
        self.save()
        logger.info("Backup %s written (%d files)", path.name, len(files))
        return path

    def archives(self) -> list[Path]:
        if not self._backup_dir.is_dir():
            return []
        return sorted(self._backup_dir.glob("backup-*.zip"))

    def prune(self) -> int:
        old = self.archives()[: -self.keep] if self.keep > 0 else []
        for path in old:
            path.unlink()
        return len(old)

    async def cycle(self, bot: Butler, now: datetime) -> None:
        today = now.date().isoformat()
        if now.hour != self._backup_hour or self.last_daily == today:
            return
        self.last_daily = today
        self.create_archive(now)
        removed = self.prune()
        if removed:
            logger.info("Pruned %d old backups", removed)

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/backup list"):
            lines = [f"{p.name} ({p.stat().st_size // 1024} KB)" for p in self.archives()]
            await self.reply(bot, msg, "\n".join(lines) or "No backups yet.")
            return True
        if matches(msg, r"^/backup$"):
            path = self.create_archive(msg.timestamp)
            self.prune()
            await bot.send_document(path, f"Backup {path.stem}")
            return True
        return False
