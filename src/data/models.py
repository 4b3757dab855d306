"""
Reminder Assistant — Data Models.

Users and reminders persist in SQLite across restarts. A reminder points
back at its owner through the sender identifier; the user record holds no
list of reminders.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OnboardingStage(str, Enum):
    """Position in the mandatory setup sequence, in strict forward order."""

    WELCOME = "welcome"
    NAME = "name"
    PERSONALITY = "personality"
    TIMEZONE = "timezone"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER = list(OnboardingStage)


@dataclass
class User:
    """A person talking to the assistant, keyed by the transport's sender id."""

    user_id: str
    display_name: str
    preferred_name: str | None = None
    personality: str | None = None
    timezone_label: str | None = None
    timezone_offset: float | None = None   # hours from UTC, may be fractional
    stage: OnboardingStage = OnboardingStage.WELCOME
    created_at: str = ""

    @property
    def is_onboarded(self) -> bool:
        return self.stage is OnboardingStage.COMPLETE

    @property
    def greeting_name(self) -> str:
        return self.preferred_name or self.display_name


@dataclass
class Reminder:
    """A one-shot reminder.

    `local_display` is rendered in the owner's timezone at creation and is
    never recomputed.
    """

    id: int
    user_id: str
    user_name: str                 # owner's display name at creation time
    message: str                   # task text
    scheduled_utc: datetime        # timezone-aware, UTC
    local_display: str
    is_completed: bool = False
    created_at: str = ""
