"""Environment-driven settings for the reviewer bot."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from src.balancer import DEFAULT_REBALANCE_THRESHOLD
from src.store import DEFAULT_REVIEWER_DB_PATH

DEFAULT_PROJECT_NAME = "Sprint 🏃‍♀️"
DEFAULT_LOG_LEVEL = "INFO"


class ConfigError(ValueError):
    """Raised when an environment value cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved runtime configuration."""

    github_owner: str = ""
    github_repo: str = ""
    webhook_secret: str = ""
    chat_webhook_url: str = ""
    team_reviewer: str | None = None
    reviewer_db_path: Path = Path(DEFAULT_REVIEWER_DB_PATH)
    project_name: str = DEFAULT_PROJECT_NAME
    rebalance_threshold: int = DEFAULT_REBALANCE_THRESHOLD
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def repo_full_name(self) -> str:
        """Repository in owner/repo format."""
        return f"{self.github_owner}/{self.github_repo}"


def _first_env(*names: str) -> str:
    """Return the first non-empty value among environment variables."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return ""


def _int_env(name: str, default: int) -> int:
    """Read a positive integer environment variable."""
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise ConfigError(f"{name} must be an integer, got '{raw_value}'.") from error
    if parsed_value <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed_value}.")
    return parsed_value


def load_settings() -> Settings:
    """Load settings from `.env` in the working directory and the environment."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    return Settings(
        github_owner=_first_env("GITHUB_OWNER"),
        github_repo=_first_env("GITHUB_REPO"),
        webhook_secret=_first_env("GITHUB_WEBHOOK_SECRET", "WEBHOOK_SECRET"),
        chat_webhook_url=_first_env("CHAT_WEBHOOK_URL", "CHIME_URL"),
        team_reviewer=_first_env("TEAM_REVIEWER") or None,
        reviewer_db_path=Path(_first_env("REVIEWER_DB_PATH") or DEFAULT_REVIEWER_DB_PATH),
        project_name=_first_env("PROJECT_NAME") or DEFAULT_PROJECT_NAME,
        rebalance_threshold=_int_env("REBALANCE_THRESHOLD", DEFAULT_REBALANCE_THRESHOLD),
        log_level=(_first_env("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )
