"""Configuration loading from environment variables and butler.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from dotenv import load_dotenv

_DEFAULT_DATA_DIR = Path.home() / ".butler" / "data"
_CONFIG_FILENAME = "butler.toml"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "yes", "true", "on")


@dataclass
class TelegramConfig:
    """Telegram connector configuration."""

    token: str = ""
    chat_id: int | None = None
    password: str = ""


@dataclass
class SchedulerConfig:
    """Scheduler configuration."""

    tick_interval: int = 60


@dataclass
class ModulesConfig:
    """Per-module switches and trigger hours."""

    notes_enabled: bool = True
    project_default_hour: int = 18
    todo_reminder_hour: int = 9
    learning_reminder_hour: int = 20
    investment_snapshot_hour: int = 23
    backup_hour: int = 3
    backup_keep: int = 7


@dataclass
class CryptoConfig:
    """Price API configuration."""

    api_url: str = "https://api.binance.com"
    refresh_minutes: int = 5
    timeout: int = 10


@dataclass
class ButlerConfig:
    """Top-level Butler configuration."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    modules: ModulesConfig = field(default_factory=ModulesConfig)
    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    data_dir: Path = _DEFAULT_DATA_DIR
    pid_file: Path = Path.home() / ".butler" / "butler.pid"
    delete_delay: float = 60.0
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> ButlerConfig:
    """Load configuration from environment variables and optional butler.toml.

    Priority: environment variables (including .env) > butler.toml > defaults.
    """
    load_dotenv(Path.cwd() / ".env")

    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".butler" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    telegram_data = file_data.get("telegram", {})
    scheduler_data = file_data.get("scheduler", {})
    modules_data = file_data.get("modules", {})
    crypto_data = file_data.get("crypto", {})

    chat_id = os.getenv("BUTLER_CHAT_ID", telegram_data.get("chat_id"))
    defaults = ModulesConfig()

    config = ButlerConfig(
        telegram=TelegramConfig(
            token=os.getenv("BUTLER_TELEGRAM_TOKEN", telegram_data.get("token", "")),
            chat_id=int(chat_id) if chat_id not in (None, "") else None,
            password=os.getenv("BUTLER_PASSWORD", telegram_data.get("password", "")),
        ),
        scheduler=SchedulerConfig(
            tick_interval=int(os.getenv("BUTLER_TICK", scheduler_data.get("tick_interval", 60))),
        ),
        modules=ModulesConfig(
            notes_enabled=_env_bool(
                "BUTLER_NOTES_ENABLED", modules_data.get("notes_enabled", defaults.notes_enabled)
            ),
            project_default_hour=int(
                modules_data.get("project_default_hour", defaults.project_default_hour)
            ),
            todo_reminder_hour=int(modules_data.get("todo_reminder_hour", defaults.todo_reminder_hour)),
            learning_reminder_hour=int(
                modules_data.get("learning_reminder_hour", defaults.learning_reminder_hour)
            ),
            investment_snapshot_hour=int(
                modules_data.get("investment_snapshot_hour", defaults.investment_snapshot_hour)
            ),
            backup_hour=int(modules_data.get("backup_hour", defaults.backup_hour)),
            backup_keep=int(modules_data.get("backup_keep", defaults.backup_keep)),
        ),
        crypto=CryptoConfig(
            api_url=os.getenv("BUTLER_CRYPTO_API", crypto_data.get("api_url", "https://api.binance.com")),
            refresh_minutes=int(crypto_data.get("refresh_minutes", 5)),
            timeout=int(crypto_data.get("timeout", 10)),
        ),
        data_dir=Path(os.getenv("BUTLER_DATA_DIR", file_data.get("data_dir", str(_DEFAULT_DATA_DIR)))),
        delete_delay=float(os.getenv("BUTLER_DELETE_DELAY", file_data.get("delete_delay", 60))),
        log_level=os.getenv("BUTLER_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
