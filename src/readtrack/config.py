"""Configuration management for readtrack.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Session lifecycle
    completion_threshold: int  # percent

    # Streaks and goal windows
    timezone: str

    # Read path
    history_page_size: int
    current_sessions_limit: int
    stats_retries: int

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "READTRACK_DB_PATH",
            str(Path.home() / ".readtrack" / "readtrack.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            completion_threshold=int(
                os.environ.get("READTRACK_COMPLETION_THRESHOLD", "95")
            ),
            timezone=os.environ.get("READTRACK_TIMEZONE", "UTC"),
            history_page_size=int(os.environ.get("READTRACK_HISTORY_PAGE_SIZE", "20")),
            current_sessions_limit=int(os.environ.get("READTRACK_CURRENT_LIMIT", "10")),
            stats_retries=int(os.environ.get("READTRACK_STATS_RETRIES", "1")),
            log_level=os.environ.get("READTRACK_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if not 1 <= self.completion_threshold <= 100:
            errors.append(
                f"Completion threshold must be between 1 and 100: {self.completion_threshold}"
            )

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown timezone: {self.timezone}")

        if self.history_page_size < 1:
            errors.append("History page size must be at least 1")
        if self.current_sessions_limit < 1:
            errors.append("Current sessions limit must be at least 1")
        if self.stats_retries < 0:
            errors.append("Statistics retries cannot be negative")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
