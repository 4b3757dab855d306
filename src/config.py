"""
Reminder Assistant — Centralized configuration.

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

    # WhatsApp Cloud API
    VERIFY_TOKEN: str
    WHATSAPP_TOKEN: str
    PHONE_NUMBER_ID: str
    WHATSAPP_API_VERSION: str = "v17.0"

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str

    # SQLite
    DATABASE_PATH: str = "data/reminders.db"

    # Server
    PORT: int = 10000
    ENVIRONMENT: str = "development"

    # Dispatch loop cadence and outbound call bound
    DISPATCH_INTERVAL_SECONDS: int = 60
    EXTERNAL_TIMEOUT_SECONDS: float = 10.0

    # Storage startup retry
    STARTUP_DB_ATTEMPTS: int = 5
    STARTUP_DB_BACKOFF_SECONDS: float = 5.0

    @field_validator(
        "PORT", "DISPATCH_INTERVAL_SECONDS", "STARTUP_DB_ATTEMPTS", mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator(
        "EXTERNAL_TIMEOUT_SECONDS", "STARTUP_DB_BACKOFF_SECONDS", mode="before",
    )
    @classmethod
    def parse_seconds(cls, v: str | float) -> float:
        return float(v)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


_REQUIRED_KEYS = ("VERIFY_TOKEN", "WHATSAPP_TOKEN", "PHONE_NUMBER_ID", "LLM_API_KEY")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    missing = [
        key for key in _REQUIRED_KEYS
        if not os.getenv(key, "") or os.getenv(key, "").startswith("your-")
    ]
    if missing:
        print(
            f"ERROR: missing or unset environment variables in .env: {', '.join(missing)}",
            file=sys.stderr,
        )
        sys.exit(1)

    return Settings(
        VERIFY_TOKEN=os.getenv("VERIFY_TOKEN", ""),
        WHATSAPP_TOKEN=os.getenv("WHATSAPP_TOKEN", ""),
        PHONE_NUMBER_ID=os.getenv("PHONE_NUMBER_ID", ""),
        WHATSAPP_API_VERSION=os.getenv("WHATSAPP_API_VERSION", "v17.0"),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/reminders.db"),
        PORT=os.getenv("PORT", "10000"),
        ENVIRONMENT=os.getenv("ENVIRONMENT", "development"),
        DISPATCH_INTERVAL_SECONDS=os.getenv("DISPATCH_INTERVAL_SECONDS", "60"),
        EXTERNAL_TIMEOUT_SECONDS=os.getenv("EXTERNAL_TIMEOUT_SECONDS", "10"),
        STARTUP_DB_ATTEMPTS=os.getenv("STARTUP_DB_ATTEMPTS", "5"),
        STARTUP_DB_BACKOFF_SECONDS=os.getenv("STARTUP_DB_BACKOFF_SECONDS", "5"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
