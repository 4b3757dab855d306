"""
Reminder Assistant — Reminder Lifecycle.

Creates, lists and completes reminders. A reminder can only be created for
an instant strictly after "now"; completion is a one-way, idempotent flip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from src.data.db import ReminderDB
    from src.data.models import Reminder, User

logger = logging.getLogger(__name__)

REJECTED_TIME_PASSED = "time_already_passed"


@dataclass
class CreateOutcome:
    """Result of a create attempt: a stored reminder or a rejection reason."""
    reminder: Reminder | None = None
    rejected_reason: str = ""

    @property
    def created(self) -> bool:
        return self.reminder is not None


class ReminderService:
    """Lifecycle operations over a ReminderDB, with an injectable clock."""

    def __init__(
        self,
        reminder_db: ReminderDB,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = reminder_db
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    def create(
        self,
        user: User,
        task: str,
        scheduled_utc: datetime,
        local_display: str,
    ) -> CreateOutcome:
        now = self.now()
        if scheduled_utc <= now:
            logger.info(
                "Rejected reminder '%s' for %s: %s is not after %s",
                task, user.user_id, scheduled_utc.isoformat(), now.isoformat(),
            )
            return CreateOutcome(rejected_reason=REJECTED_TIME_PASSED)

        reminder = self._db.add_reminder(
            user_id=user.user_id,
            user_name=user.display_name,
            message=task,
            scheduled_utc=scheduled_utc,
            local_display=local_display,
        )
        return CreateOutcome(reminder=reminder)

    def list_upcoming(self, user_id: str) -> list[Reminder]:
        return self._db.list_upcoming(user_id, self.now())

    def list_due(self) -> list[Reminder]:
        return self._db.get_due(self.now())

    def complete(self, reminder_id: int) -> None:
        """Mark a reminder completed; a second call changes nothing."""
        if not self._db.mark_completed(reminder_id):
            logger.debug("Reminder #%d was already completed", reminder_id)
