"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp DB and a frozen clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("VERIFY_TOKEN", "fake-verify-token")
os.environ.setdefault("WHATSAPP_TOKEN", "fake-whatsapp-token")
os.environ.setdefault("PHONE_NUMBER_ID", "1234567890")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("DATABASE_PATH", ":memory:")

from datetime import datetime, timezone

import pytest

# Monday 2026-10-19 08:00 UTC — 11:00 in Istanbul (UTC+3)
FIXED_NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_reminders.db")


@pytest.fixture
def user_db(tmp_db_path):
    """Return a UserDB instance backed by a temp file."""
    from src.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def reminder_db(tmp_db_path):
    """Return a ReminderDB instance sharing the temp file with user_db."""
    from src.data.db import ReminderDB
    return ReminderDB(db_path=tmp_db_path)


@pytest.fixture
def clock():
    """A mutable clock: call it for 'now', set `.now` to move time."""
    class _Clock:
        now = FIXED_NOW

        def __call__(self):
            return self.now

    return _Clock()


@pytest.fixture
def reminder_service(reminder_db, clock):
    from src.core.reminders import ReminderService
    return ReminderService(reminder_db, clock=clock)
