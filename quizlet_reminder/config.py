"""
Quizlet Reminder — Centralized configuration.

Loads all settings from .env and validates required keys.
Every other module imports the singleton from here.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from quizlet_reminder/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # SQLite
    DATABASE_PATH: str = "data/quizlet.db"

    # Daily reminder cycle (hour of day, UTC)
    TICK_HOUR_UTC: int = 3

    # Timezone that defines "today" for due dates and /time
    TIMEZONE: str = "Asia/Krasnoyarsk"

    # Appended to group passwords before hashing
    GROUP_PASSWORD_SALT: str = "ALALALA"

    # Users allowed to run /tick; empty → anyone
    ADMIN_USER_IDS: list[int] = []

    # Days until the next repetition, indexed by the item's counter
    PROLONG_DAYS: list[int] = [1, 3, 7, 14, 30, 60, 120]

    @field_validator("ADMIN_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("PROLONG_DAYS", mode="before")
    @classmethod
    def parse_prolong_days(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, str):
            v = [int(d.strip()) for d in v.split(",") if d.strip()]
        if not v:
            return [1, 3, 7, 14, 30, 60, 120]
        if any(int(d) < 1 for d in v):
            raise ValueError("PROLONG_DAYS must contain positive day counts")
        return [int(d) for d in v]

    @field_validator("TICK_HOUR_UTC", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError("TICK_HOUR_UTC must be between 0 and 23")
        return hour


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/quizlet.db"),
        TICK_HOUR_UTC=os.getenv("TICK_HOUR_UTC", "3"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Krasnoyarsk"),
        GROUP_PASSWORD_SALT=os.getenv("GROUP_PASSWORD_SALT", "ALALALA"),
        ADMIN_USER_IDS=os.getenv("ADMIN_USER_IDS", ""),
        PROLONG_DAYS=os.getenv("PROLONG_DAYS", ""),
    )


# Singleton, imported by all other modules as:
#   from quizlet_reminder.config import settings
settings = _load_settings()
