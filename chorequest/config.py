"""Runtime configuration loaded from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

__all__ = ["Settings", "load_settings"]

DEFAULT_DATA_DIR = Path("data")


@dataclass(frozen=True)
class Settings:
    """Settings shared by the bot and the cogs."""

    discord_token: str | None
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: int = logging.INFO

    @property
    def characters_path(self) -> Path:
        return self.data_dir / "characters.json"

    @property
    def tasks_path(self) -> Path:
        return self.data_dir / "tasks.json"

    @property
    def items_path(self) -> Path:
        return self.data_dir / "items.json"

    @property
    def rewards_path(self) -> Path:
        return self.data_dir / "rewards.json"

    @property
    def combat_path(self) -> Path:
        return self.data_dir / "combat_actions.json"

    def require_token(self) -> str:
        if not self.discord_token:
            raise RuntimeError(
                "DISCORD_TOKEN environment variable is required. "
                "Set it in the .env file before starting the bot."
            )
        return self.discord_token


def _parse_log_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{value}'")
    return level


def load_settings(*, env_file: Path | None = None) -> Settings:
    """Read settings from ``.env`` and the process environment."""

    load_dotenv(env_file)
    data_dir = os.getenv("CHOREQUEST_DATA_DIR")
    return Settings(
        discord_token=os.getenv("DISCORD_TOKEN") or None,
        data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
        log_level=_parse_log_level(os.getenv("CHOREQUEST_LOG_LEVEL")),
    )
