"""
Scholar Planner — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # Reminder poll cadences (seconds)
    TASK_POLL_SECONDS: float = 2.0
    EVENT_POLL_SECONDS: float = 10.0

    # Defaults for entries captured without an explicit date/time
    DEFAULT_TASK_LEAD_MINUTES: int = 5
    DEFAULT_EVENT_START_HOUR: int = 9
    DEFAULT_EVENT_DURATION_MINUTES: int = 60
    DEFAULT_ALERT_OFFSET_MINUTES: int = 15

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("TASK_POLL_SECONDS", "EVENT_POLL_SECONDS", mode="before")
    @classmethod
    def parse_seconds(cls, v: str | float) -> float:
        seconds = float(v)
        if seconds <= 0:
            raise ValueError(f"Poll interval must be positive, got {seconds}")
        return seconds

    @field_validator("DEFAULT_EVENT_START_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 22:
            raise ValueError(f"Default event hour must be in 0..22, got {hour}")
        return hour


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TASK_POLL_SECONDS=os.getenv("TASK_POLL_SECONDS", "2"),
        EVENT_POLL_SECONDS=os.getenv("EVENT_POLL_SECONDS", "10"),
        DEFAULT_TASK_LEAD_MINUTES=os.getenv("DEFAULT_TASK_LEAD_MINUTES", "5"),
        DEFAULT_EVENT_START_HOUR=os.getenv("DEFAULT_EVENT_START_HOUR", "9"),
        DEFAULT_EVENT_DURATION_MINUTES=os.getenv("DEFAULT_EVENT_DURATION_MINUTES", "60"),
        DEFAULT_ALERT_OFFSET_MINUTES=os.getenv("DEFAULT_ALERT_OFFSET_MINUTES", "15"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
