"""Tests for src.core.scheduler — the due-reminder dispatch tick."""

from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.core.scheduler import FALLBACK_NAME, dispatch_due_reminders, format_delivery_message
from src.data.models import OnboardingStage, User
from src.ports.notification_port import NotificationError
from tests.conftest import FIXED_NOW


def _user(user_db, user_id="905551112233", preferred_name="Sam"):
    user_db.add_user(user_id, "Samantha")
    user_db.update_onboarding(
        user_id, OnboardingStage.COMPLETE, preferred_name=preferred_name,
        personality="calm", timezone_label="Europe/Istanbul", timezone_offset=3,
    )
    return user_db.get_user(user_id)


def _schedule(reminder_service, user, task, minutes):
    outcome = reminder_service.create(
        user, task, FIXED_NOW + timedelta(minutes=minutes), "Mon, Oct 19 at 11:30 AM",
    )
    return outcome.reminder


class TestFormatDeliveryMessage:
    def test_includes_name_task_and_emoji(self, reminder_service, user_db):
        reminder = _schedule(reminder_service, _user(user_db), "call mom", 5)
        text = format_delivery_message(reminder, "Sam")
        assert text.startswith("Hey Sam!")
        assert '"call mom" 💕' in text
        assert text.endswith("Sent with care 💙")


class TestDispatchDueReminders:
    @pytest.mark.asyncio
    async def test_delivers_and_completes(self, reminder_service, reminder_db, user_db, clock):
        sam = _user(user_db)
        reminder = _schedule(reminder_service, sam, "call mom", 5)
        notifier = MagicMock()
        notifier.send_message = AsyncMock()

        clock.now = FIXED_NOW + timedelta(minutes=5)
        count = await dispatch_due_reminders(reminder_service, user_db, notifier)

        assert count == 1
        notifier.send_message.assert_awaited_once()
        user_id, text = notifier.send_message.call_args.args
        assert user_id == sam.user_id
        assert "Hey Sam!" in text
        assert reminder_db.get_reminder(reminder.id).is_completed is True

    @pytest.mark.asyncio
    async def test_nothing_due(self, reminder_service, user_db):
        notifier = MagicMock()
        notifier.send_message = AsyncMock()
        _schedule(reminder_service, _user(user_db), "call mom", 5)

        assert await dispatch_due_reminders(reminder_service, user_db, notifier) == 0
        notifier.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_isolated_and_retried_next_tick(self, reminder_service, reminder_db, user_db, clock):
        sam = _user(user_db)
        first = _schedule(reminder_service, sam, "call mom", 1)
        second = _schedule(reminder_service, sam, "gym", 2)
        notifier = MagicMock()
        notifier.send_message = AsyncMock(side_effect=[NotificationError("503"), None])

        clock.now = FIXED_NOW + timedelta(minutes=3)
        assert await dispatch_due_reminders(reminder_service, user_db, notifier) == 1
        assert reminder_db.get_reminder(first.id).is_completed is False
        assert reminder_db.get_reminder(second.id).is_completed is True

        # next tick retries the failed one
        notifier.send_message = AsyncMock()
        assert await dispatch_due_reminders(reminder_service, user_db, notifier) == 1
        assert reminder_db.get_reminder(first.id).is_completed is True

    @pytest.mark.asyncio
    async def test_no_second_delivery_after_completion(self, reminder_service, user_db, clock):
        _schedule(reminder_service, _user(user_db), "call mom", 1)
        notifier = MagicMock()
        notifier.send_message = AsyncMock()

        clock.now = FIXED_NOW + timedelta(minutes=2)
        await dispatch_due_reminders(reminder_service, user_db, notifier)
        await dispatch_due_reminders(reminder_service, user_db, notifier)
        assert notifier.send_message.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_user_uses_fallback_name(self, reminder_service, user_db, clock):
        ghost = User(user_id="ghost", display_name="Ghost")
        _schedule(reminder_service, ghost, "take vitamin", 1)
        notifier = MagicMock()
        notifier.send_message = AsyncMock()

        clock.now = FIXED_NOW + timedelta(minutes=1)
        await dispatch_due_reminders(reminder_service, user_db, notifier)
        _, text = notifier.send_message.call_args.args
        assert text.startswith(f"Hey {FALLBACK_NAME}!")

    @pytest.mark.asyncio
    async def test_user_lookup_error_uses_fallback_name(self, reminder_service, clock):
        users = MagicMock()
        users.get_user.side_effect = RuntimeError("db locked")
        _schedule(reminder_service, User(user_id="1", display_name="Sam"), "gym", 1)
        notifier = MagicMock()
        notifier.send_message = AsyncMock()

        clock.now = FIXED_NOW + timedelta(minutes=1)
        assert await dispatch_due_reminders(reminder_service, users, notifier) == 1
        assert notifier.send_message.call_args.args[1].startswith(f"Hey {FALLBACK_NAME}!")

    @pytest.mark.asyncio
    async def test_load_failure_returns_zero(self, user_db):
        reminders = MagicMock()
        reminders.list_due.side_effect = RuntimeError("db gone")
        notifier = MagicMock()
        notifier.send_message = AsyncMock()
        assert await dispatch_due_reminders(reminders, user_db, notifier) == 0
