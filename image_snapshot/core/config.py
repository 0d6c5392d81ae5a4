"""
Configuration management

Centralized settings using Pydantic BaseSettings for type-safe configuration
with environment variable support.

Settings can be overridden via environment variables:
- IMAGE_SNAPSHOT_UPDATE_MODE=all
- IMAGE_SNAPSHOT_RETRY_TIMES=2
- IMAGE_SNAPSHOT_INTERACTIVE_REVIEW=false
"""

import logging
import os
import sys
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

UpdateMode = Literal["none", "new", "all"]


class Settings(BaseSettings):
    """Process-wide settings for the snapshot matcher"""

    # None means: "none" on CI, "new" everywhere else
    update_mode: UpdateMode | None = None
    retry_times: int = 0

    # Leave run-state counters untouched (dry runs and introspection)
    suppress_reporting: bool = False

    # None means: enabled when stdin is a terminal and not on CI
    interactive_review: bool | None = None
    prompt_timeout_seconds: float = 60.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="IMAGE_SNAPSHOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def resolved_update_mode(self) -> UpdateMode:
        """Update mode with the CI default applied"""
        if self.update_mode is not None:
            return self.update_mode
        return "none" if is_ci() else "new"

    def review_enabled(self) -> bool:
        """Whether the interactive review loop may prompt the user"""
        if self.interactive_review is not None:
            return self.interactive_review
        try:
            interactive = sys.stdin is not None and sys.stdin.isatty()
        except ValueError:
            # stdin closed or replaced by the test runner
            interactive = False
        return interactive and not is_ci()


def is_ci() -> bool:
    """
    Check if running in a continuous integration environment

    Returns:
        bool: True if a CI environment variable is set
    """
    return bool(os.environ.get("CI"))


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get matcher settings (singleton)

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        logger.debug(f"Loaded settings: {_settings.model_dump()}")
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment"""
    global _settings
    _settings = None
