"""Tests for client configuration."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from issue_db.config import get_config_dir, get_config_file, get_config_value, load_config


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at a temp dir and clear overrides."""
    for var in ("ISSUE_DB_URL", "ISSUE_DB_USERNAME", "ISSUE_DB_PASSWORD"):
        monkeypatch.delenv(var, raising=False)
    with patch("pathlib.Path.home", return_value=tmp_path):
        yield tmp_path


def _write_config(home: Path, data: dict) -> None:
    config_dir = home / ".config" / "issue-db"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(json.dumps(data))


class TestConfigPaths:
    """Test configuration path functions."""

    def test_get_config_dir(self, home: Path) -> None:
        """Test that the config dir lives under ~/.config and is not created."""
        config_dir = get_config_dir()
        assert config_dir == home / ".config" / "issue-db"
        assert not config_dir.exists()

    def test_get_config_file_path(self, home: Path) -> None:
        """Test that get_config_file returns correct path."""
        assert get_config_file() == home / ".config" / "issue-db" / "config.json"


class TestLoadConfig:
    """Test loading configuration."""

    def test_load_config_empty(self, home: Path) -> None:
        """Test loading config when file doesn't exist."""
        assert load_config() == {}

    def test_load_config_with_data(self, home: Path) -> None:
        """Test loading config with existing data."""
        _write_config(home, {"server_url": "https://issues.example.org", "timeout": 5})
        assert load_config() == {"server_url": "https://issues.example.org", "timeout": 5}


class TestGetConfigValue:
    """Test single value lookup."""

    def test_default_when_missing(self, home: Path) -> None:
        """Test that the default is returned for unknown keys."""
        assert get_config_value("timeout", 30.0) == 30.0

    def test_value_from_file(self, home: Path) -> None:
        """Test reading a value from the config file."""
        _write_config(home, {"username": "alice"})
        assert get_config_value("username") == "alice"

    def test_environment_takes_precedence(
        self, home: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that environment variables override the file."""
        _write_config(home, {"server_url": "https://file.example.org"})
        monkeypatch.setenv("ISSUE_DB_URL", "https://env.example.org")
        assert get_config_value("server_url") == "https://env.example.org"

    def test_empty_environment_value_is_ignored(
        self, home: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that an empty variable falls back to the file."""
        _write_config(home, {"password": "from-file"})
        monkeypatch.setenv("ISSUE_DB_PASSWORD", "")
        assert get_config_value("password") == "from-file"
