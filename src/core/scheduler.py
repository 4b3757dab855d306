"""
Reminder Assistant — Due-Reminder Dispatch.

One dispatch tick: find every incomplete reminder whose time has come,
deliver it, then mark it completed. Each reminder is handled on its own;
a failed delivery leaves the reminder open for the next tick (at-least-once).

This module depends on the NotificationPort protocol, not on a specific
messaging provider. Scheduling the tick is the gateway's job.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.context_classifier import classify

if TYPE_CHECKING:
    from src.core.reminders import ReminderService
    from src.data.db import UserDB
    from src.data.models import Reminder
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

FALLBACK_NAME = "there"


def format_delivery_message(reminder: Reminder, name: str) -> str:
    """Format the text delivered when a reminder comes due."""
    context = classify(reminder.message)
    return (
        f"Hey {name}! {context.delivery}\n\n"
        f"\"{reminder.message}\" {context.emoji}\n\n"
        "Sent with care 💙"
    )


async def dispatch_due_reminders(
    reminders: ReminderService,
    user_db: UserDB,
    notifier: NotificationPort,
) -> int:
    """Deliver all due reminders. Returns how many were delivered and closed."""
    try:
        due = reminders.list_due()
    except Exception as exc:
        logger.error("Dispatch tick: could not load due reminders: %s", exc)
        return 0

    if not due:
        return 0
    logger.info("Dispatch tick: %d reminder(s) due", len(due))

    delivered = 0
    for reminder in due:
        try:
            await _deliver(reminder, reminders, user_db, notifier)
            delivered += 1
        except Exception as exc:
            logger.error(
                "Failed to deliver reminder #%d to %s: %s",
                reminder.id, reminder.user_id, exc,
            )
    return delivered


async def _deliver(
    reminder: Reminder,
    reminders: ReminderService,
    user_db: UserDB,
    notifier: NotificationPort,
) -> None:
    name = FALLBACK_NAME
    try:
        user = user_db.get_user(reminder.user_id)
        if user is not None:
            name = user.greeting_name
    except Exception as exc:
        logger.warning("Dispatch: user lookup failed for %s: %s", reminder.user_id, exc)

    await notifier.send_message(reminder.user_id, format_delivery_message(reminder, name))
    reminders.complete(reminder.id)
    logger.info("Reminder #%d delivered to %s: %s", reminder.id, name, reminder.message)
