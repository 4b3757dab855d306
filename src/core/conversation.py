"""
Reminder Assistant — Conversation Orchestrator.

Entry point for one inbound message: load or create the user, run the
onboarding step if setup isn't finished, otherwise list reminders or
interpret the message and schedule a reminder.

Every path ends in exactly one reply. Unexpected failures are logged and
answered with an apology; the process keeps running. Messages from the same
sender are handled one at a time, in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable

from src.core.context_classifier import classify
from src.core.personality import profile_for
from src.core.time_resolver import resolve

if TYPE_CHECKING:
    from src.core.intent import Intent, IntentInterpreter
    from src.core.onboarding import OnboardingMachine
    from src.core.reminders import ReminderService
    from src.core.time_resolver import ResolvedTime
    from src.data.db import UserDB
    from src.data.models import User
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_LIST_KEYWORDS = ("list", "my reminders")

APOLOGY_MESSAGE = "❌ Sorry, something went wrong on my side. Please try again in a moment."


def is_list_command(message_text: str) -> bool:
    text = message_text.lower()
    return any(keyword in text for keyword in _LIST_KEYWORDS)


def capability_prompt(name: str) -> str:
    return (
        f"👋 Hi {name}! I'm your caring reminder assistant. 💝\n\n"
        "Tell me what to remember and when:\n\n"
        '💕 "call mom at 6pm"\n'
        '🤝 "team meeting tomorrow at 2pm"\n'
        '🏥 "doctor appointment friday at 10am"\n'
        '💪 "gym at 7am"\n\n'
        'Say "list my reminders" to see what\'s coming up! ✨'
    )


class ConversationService:
    """Routes each inbound message through onboarding or task handling."""

    def __init__(
        self,
        user_db: UserDB,
        reminders: ReminderService,
        notifier: NotificationPort,
        interpreter: IntentInterpreter,
        onboarding: OnboardingMachine,
        resolve_time: Callable[..., ResolvedTime | None] = resolve,
    ) -> None:
        self._users = user_db
        self._reminders = reminders
        self._notifier = notifier
        self._interpreter = interpreter
        self._onboarding = onboarding
        self._resolve_time = resolve_time
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def handle(self, sender_id: str, display_name: str, message_text: str) -> None:
        """Process one message to completion and send the reply."""
        logger.info("Processing message from %s (%s): %s", display_name, sender_id, message_text[:80])
        async with self._locks[sender_id]:
            try:
                reply = await self._respond(sender_id, display_name, message_text)
                await self._notifier.send_message(sender_id, reply)
            except Exception:
                logger.exception("Error handling message from %s", sender_id)
                try:
                    await self._notifier.send_message(sender_id, APOLOGY_MESSAGE)
                except Exception as exc:
                    logger.error("Could not deliver apology to %s: %s", sender_id, exc)

    async def _respond(self, sender_id: str, display_name: str, message_text: str) -> str:
        user, created = self._users.get_or_create(sender_id, display_name or "User")
        if created:
            logger.info("New user %s starts onboarding", sender_id)

        if not user.is_onboarded:
            return await self._advance_onboarding(user, message_text)

        if is_list_command(message_text):
            return self._list_reminders(user)

        intent = await self._interpreter.interpret(message_text, user.personality)
        task = intent.task.strip()

        if intent.is_recurring:
            return self._recurring_reply(intent)
        if not intent.is_task:
            return intent.motivation or capability_prompt(user.greeting_name)
        if intent.has_time and not intent.needs_time_confirmation:
            return self._schedule(user, message_text, intent)
        return self._clarify(intent, task)

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def _advance_onboarding(self, user: User, message_text: str) -> str:
        transition = await self._onboarding.step(user, message_text)
        self._users.update_onboarding(
            user.user_id,
            transition.stage,
            preferred_name=transition.preferred_name,
            personality=transition.personality,
            timezone_label=transition.timezone_label,
            timezone_offset=transition.timezone_offset,
        )
        return transition.reply

    # ------------------------------------------------------------------
    # Task handling
    # ------------------------------------------------------------------

    def _list_reminders(self, user: User) -> str:
        upcoming = self._reminders.list_upcoming(user.user_id)
        if not upcoming:
            return (
                "📋 You have no upcoming reminders.\n\n"
                '💡 Try saying "call mom at 6pm" or "doctor appointment tomorrow at 2pm"'
            )

        lines = ["📋 Your upcoming reminders:\n"]
        for index, reminder in enumerate(upcoming, start=1):
            emoji = classify(reminder.message).emoji
            lines.append(f"{index}. {reminder.message} {emoji}\n   📅 {reminder.local_display}\n")
        return "\n".join(lines).rstrip()

    def _schedule(self, user: User, message_text: str, intent: Intent) -> str:
        now = self._reminders.now()
        resolved = self._resolve_time(message_text, user.timezone_offset, now=now)
        if resolved is None and intent.time_phrase:
            resolved = self._resolve_time(intent.time_phrase, user.timezone_offset, now=now)

        task = intent.task.strip() or (resolved.task if resolved else "")
        if resolved is None:
            return self._time_suggestion(task or message_text.strip())

        outcome = self._reminders.create(user, task, resolved.scheduled_utc, resolved.local_display)
        if not outcome.created:
            return (
                f"⌛ That time has already passed for \"{task}\".\n"
                f"Want to pick a later one? e.g. \"{task} tomorrow at 9am\""
            )

        context = classify(task)
        profile = profile_for(user.personality)
        parts = [
            f"{profile.confirm_opener}\n✅ {context.encouragement}",
            f"Reminder set for {resolved.local_display}:\n\"{task}\" {context.emoji}",
        ]
        if intent.motivation:
            parts.append(intent.motivation)
        return "\n\n".join(parts)

    @staticmethod
    def _time_suggestion(task: str) -> str:
        return (
            f"🤔 I couldn't work out when to remind you about \"{task}\".\n"
            f"Try adding a time, e.g. \"{task} at 6pm\" or \"{task} tomorrow at 9am\"."
        )

    @staticmethod
    def _clarify(intent: Intent, task: str) -> str:
        question = intent.clarifying_question or (
            f"⏰ When should I remind you to {task}?" if task
            else "⏰ What should I remind you about, and when?"
        )
        if intent.suggested_time and task:
            question += (
                f"\n\n💡 How about {intent.suggested_time}? "
                f"Just send \"{task} at {intent.suggested_time}\"."
            )
        return question

    @staticmethod
    def _recurring_reply(intent: Intent) -> str:
        task = intent.task.strip() or "this"
        pattern = f" ({intent.recurrence_pattern})" if intent.recurrence_pattern else ""
        return (
            f"🔁 I can't schedule repeating reminders{pattern} as a series yet.\n"
            f"I can set a single reminder for \"{task}\" instead. "
            f"Just send it with a time, e.g. \"{task} tomorrow at 9am\"."
        )
