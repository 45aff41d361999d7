"""Tests for configuration loading."""

from dataclasses import replace
from pathlib import Path

import pytest

from readtrack.config import Config, get_config, reset_config

ENV_VARS = [
    "READTRACK_DB_PATH",
    "READTRACK_COMPLETION_THRESHOLD",
    "READTRACK_TIMEZONE",
    "READTRACK_HISTORY_PAGE_SIZE",
    "READTRACK_CURRENT_LIMIT",
    "READTRACK_STATS_RETRIES",
    "READTRACK_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove readtrack settings from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestFromEnv:
    """Tests for Config.from_env."""

    def test_defaults(self):
        """Test defaults with no environment set."""
        config = Config.from_env()

        assert config.db_path == Path.home() / ".readtrack" / "readtrack.db"
        assert config.completion_threshold == 95
        assert config.timezone == "UTC"
        assert config.history_page_size == 20
        assert config.current_sessions_limit == 10
        assert config.stats_retries == 1
        assert config.log_level == "WARNING"

    def test_from_environment(self, monkeypatch, tmp_path):
        """Test values read from the environment."""
        monkeypatch.setenv("READTRACK_DB_PATH", str(tmp_path / "r.db"))
        monkeypatch.setenv("READTRACK_COMPLETION_THRESHOLD", "90")
        monkeypatch.setenv("READTRACK_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("READTRACK_STATS_RETRIES", "3")
        monkeypatch.setenv("READTRACK_LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.db_path == tmp_path / "r.db"
        assert config.completion_threshold == 90
        assert config.timezone == "Europe/Berlin"
        assert config.stats_retries == 3
        assert config.log_level == "DEBUG"


class TestValidate:
    """Tests for Config.validate."""

    @pytest.fixture
    def valid(self, tmp_path):
        """A valid configuration."""
        return replace(Config.from_env(), db_path=tmp_path / "readtrack.db")

    def test_valid(self, valid):
        """Test that defaults validate."""
        assert valid.validate() == []

    @pytest.mark.parametrize(
        "changes,message",
        [
            ({"completion_threshold": 0}, "Completion threshold"),
            ({"completion_threshold": 101}, "Completion threshold"),
            ({"timezone": "Mars/Olympus"}, "Unknown timezone"),
            ({"history_page_size": 0}, "History page size"),
            ({"current_sessions_limit": 0}, "Current sessions limit"),
            ({"stats_retries": -1}, "retries"),
            ({"log_level": "LOUD"}, "Unknown log level"),
        ],
    )
    def test_invalid(self, valid, changes, message):
        """Test each invalid setting."""
        errors = replace(valid, **changes).validate()

        assert len(errors) == 1
        assert message in errors[0]


class TestGlobalConfig:
    """Tests for get_config and reset_config."""

    def test_cached(self):
        """Test that the global config is created once."""
        assert get_config() is get_config()

    def test_reset(self, monkeypatch):
        """Test that reset picks up new environment values."""
        first = get_config()
        monkeypatch.setenv("READTRACK_TIMEZONE", "Asia/Tokyo")
        reset_config()

        second = get_config()

        assert second is not first
        assert second.timezone == "Asia/Tokyo"
