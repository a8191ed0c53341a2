"""Daemon process: always-on mode for production.

Usage: python -m butler serve

Manages:
- Module construction (data files under the data dir)
- Telegram connector lifecycle
- Scheduler (per-minute module cycles)
- PID file (prevent duplicate instances)
- Graceful shutdown (SIGTERM/SIGINT)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from butler.config import ButlerConfig, load_config
from butler.core import Butler
from butler.modules.backup import BackupModule
from butler.modules.crypto import CryptoAlertsModule, CryptoModule
from butler.modules.investment import InvestmentModule
from butler.modules.learning import LearningModule
from butler.modules.notes import NotesModule
from butler.modules.notifier import NotifierModule
from butler.modules.prices import PriceSource
from butler.modules.projects import ProjectsModule
from butler.modules.timer import TimerModule
from butler.modules.todo import TodoModule
from butler.scheduler.jobs import Scheduler

logger = logging.getLogger(__name__)


def build_butler(config: ButlerConfig, source: PriceSource | None = None) -> Butler:
    """Create the hub and register modules in dispatch order."""
    butler = Butler(config)
    data_dir = config.data_dir
    modules_cfg = config.modules

    source = source or PriceSource(config.crypto.api_url, config.crypto.timeout)
    crypto = CryptoModule(data_dir, source, config.crypto.refresh_minutes)
    notes = NotesModule(data_dir)

    butler.add_module(InvestmentModule(data_dir, modules_cfg.investment_snapshot_hour, crypto))
    butler.add_module(crypto)
    butler.add_module(CryptoAlertsModule(data_dir, crypto))
    butler.add_module(notes)
    butler.add_module(TodoModule(data_dir, modules_cfg.todo_reminder_hour))
    butler.add_module(LearningModule(data_dir, modules_cfg.learning_reminder_hour))
    butler.add_module(ProjectsModule(data_dir, modules_cfg.project_default_hour))
    butler.add_module(BackupModule(data_dir, modules_cfg.backup_hour, modules_cfg.backup_keep))
    butler.add_module(NotifierModule(data_dir))
    butler.add_module(TimerModule())
    butler.notes = notes
    return butler


class ButlerDaemon:
    """Always-on daemon process."""

    def __init__(self, config: ButlerConfig | None = None) -> None:
        self.config = config or load_config()
        self._shutdown_event = asyncio.Event()

    # ── PID file management ──────────────────────────────────

    def _write_pid(self) -> None:
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))
        logger.info("PID file written: %s (pid=%d)", self.config.pid_file, os.getpid())

    def _remove_pid(self) -> None:
        if self.config.pid_file.exists():
            self.config.pid_file.unlink()

    def _check_existing(self) -> None:
        if not self.config.pid_file.exists():
            return
        try:
            pid = int(self.config.pid_file.read_text().strip())
            os.kill(pid, 0)  # Check if process exists
            print(f"Butler daemon already running (pid={pid}). Exiting.", file=sys.stderr)
            sys.exit(1)
        except (ProcessLookupError, ValueError):
            # Stale PID file
            self._remove_pid()

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self) -> None:
        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown_event.set()

    # ── Build components ─────────────────────────────────────

    def _build_connectors(self, butler: Butler) -> None:
        from butler.connectors.telegram import TelegramConnector

        if not self.config.telegram.password and self.config.telegram.chat_id is None:
            logger.warning("No password and no chat id configured: the first chat to write gets access")
        butler.add_connector(TelegramConnector(self.config.telegram))

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> None:
        self._check_existing()
        self._write_pid()
        self._setup_signals()

        butler = build_butler(self.config)
        self._build_connectors(butler)
        scheduler = Scheduler(butler, self.config)

        logger.info("Butler daemon starting (data=%s)", self.config.data_dir)

        connectors = asyncio.ensure_future(butler.start())
        connectors.add_done_callback(lambda _: self._shutdown_event.set())
        butler.spawn(butler.send("Bot restarted"))
        try:
            await scheduler.start(self._shutdown_event)
        except asyncio.CancelledError:
            pass
        finally:
            await butler.stop()
            for result in await asyncio.gather(connectors, return_exceptions=True):
                if isinstance(result, Exception):
                    logger.error("Connector failed: %s", result)
            self._remove_pid()
            logger.info("Butler daemon stopped.")
