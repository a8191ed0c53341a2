"""Tests for configuration loading."""

import pytest
from pathlib import Path

from butler.config import load_config

_ENV_KEYS = [
    "BUTLER_TELEGRAM_TOKEN",
    "BUTLER_CHAT_ID",
    "BUTLER_PASSWORD",
    "BUTLER_DATA_DIR",
    "BUTLER_TICK",
    "BUTLER_NOTES_ENABLED",
    "BUTLER_DELETE_DELAY",
    "BUTLER_CRYPTO_API",
    "BUTLER_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in _ENV_KEYS:
        # setenv first so values loaded from .env are rolled back too
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


class TestConfig:
    def test_defaults(self):
        config = load_config()
        assert config.telegram.token == ""
        assert config.telegram.chat_id is None
        assert config.scheduler.tick_interval == 60
        assert config.modules.notes_enabled is True
        assert config.modules.project_default_hour == 18
        assert config.crypto.api_url == "https://api.binance.com"
        assert config.delete_delay == 60.0
        assert config.data_dir.name == "data"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("BUTLER_TELEGRAM_TOKEN", "123:abc")
        monkeypatch.setenv("BUTLER_CHAT_ID", "-1001")
        monkeypatch.setenv("BUTLER_TICK", "5")
        monkeypatch.setenv("BUTLER_NOTES_ENABLED", "no")
        monkeypatch.setenv("BUTLER_DELETE_DELAY", "2.5")

        config = load_config()
        assert config.telegram.token == "123:abc"
        assert config.telegram.chat_id == -1001
        assert config.scheduler.tick_interval == 5
        assert config.modules.notes_enabled is False
        assert config.delete_delay == 2.5

    def test_toml_file(self, tmp_path: Path):
        toml_path = tmp_path / "custom.toml"
        toml_path.write_text("""
data_dir = "/srv/butler"

[telegram]
token = "from-toml"
chat_id = 77

[modules]
project_default_hour = 9
backup_keep = 3

[crypto]
refresh_minutes = 15
""")
        config = load_config(toml_path)
        assert config.telegram.token == "from-toml"
        assert config.telegram.chat_id == 77
        assert config.modules.project_default_hour == 9
        assert config.modules.backup_keep == 3
        assert config.crypto.refresh_minutes == 15
        assert config.data_dir == Path("/srv/butler")

    def test_toml_found_in_cwd(self, tmp_path: Path):
        (tmp_path / "butler.toml").write_text("[scheduler]\ntick_interval = 30\n")
        config = load_config()
        assert config.scheduler.tick_interval == 30

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("BUTLER_PASSWORD", "env-secret")

        toml_path = tmp_path / "butler.toml"
        toml_path.write_text("""
[telegram]
password = "toml-secret"
""")
        config = load_config(toml_path)
        assert config.telegram.password == "env-secret"  # env wins

    def test_dotenv_file(self, tmp_path: Path):
        (tmp_path / ".env").write_text("BUTLER_PASSWORD=dotenv-secret\nBUTLER_LOG_LEVEL=DEBUG\n")
        config = load_config()
        assert config.telegram.password == "dotenv-secret"
        assert config.log_level == "DEBUG"
