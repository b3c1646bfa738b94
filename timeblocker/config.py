"""
TimeBlocker — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from timeblocker/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # SQLite
    DATABASE_PATH: str = "data/timeblocker.db"

    # Auth
    SESSION_TTL_DAYS: int = 7
    DEMO_ENABLED: bool = True

    # Daily planning reminder
    DAILY_PLANNING_HOUR: int = 9
    SCHEDULER_TIMEZONE: str = "UTC"

    # Web Push (push is only logged when VAPID_PRIVATE_KEY is empty)
    VAPID_PRIVATE_KEY: str = ""
    VAPID_EMAIL: str = ""

    @field_validator("PORT", mode="before")
    @classmethod
    def parse_port(cls, v: str | int) -> int:
        port = int(v)
        if not 0 < port <= 65535:
            raise ValueError(f"invalid port number: {v}")
        return port

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [o.strip() for o in v.split(",") if o.strip()]
        return ["*"]

    @field_validator("DAILY_PLANNING_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError(f"hour out of range: {v}")
        return hour

    @field_validator("SCHEDULER_TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v!r}")
        return v

    @field_validator("VAPID_EMAIL")
    @classmethod
    def check_vapid_email(cls, v: str) -> str:
        if v and (not v.startswith("mailto:") or "@" not in v):
            raise ValueError("VAPID_EMAIL must be a valid mailto: address")
        return v

    @property
    def push_enabled(self) -> bool:
        return bool(self.VAPID_PRIVATE_KEY and self.VAPID_EMAIL)


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            HOST=os.getenv("HOST", "0.0.0.0"),
            PORT=os.getenv("PORT", "3000"),
            CORS_ORIGINS=os.getenv("CORS_ORIGINS", "*"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/timeblocker.db"),
            SESSION_TTL_DAYS=os.getenv("SESSION_TTL_DAYS", "7"),
            DEMO_ENABLED=os.getenv("DEMO_ENABLED", "true").lower() in ("1", "true", "yes"),
            DAILY_PLANNING_HOUR=os.getenv("DAILY_PLANNING_HOUR", "9"),
            SCHEDULER_TIMEZONE=os.getenv("SCHEDULER_TIMEZONE", "UTC"),
            VAPID_PRIVATE_KEY=os.getenv("VAPID_PRIVATE_KEY", ""),
            VAPID_EMAIL=os.getenv("VAPID_EMAIL", ""),
        )
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(p) for p in err["loc"])
            print(f"ERROR: {field}: {err['msg']}", file=sys.stderr)
        sys.exit(1)


# Singleton — read by the entry points as:
#   from timeblocker.config import settings
settings = _load_settings()
