"""
Reminder Assistant — Context Classifier.

Maps a task description to a cosmetic category (emoji + phrasing) for
confirmations and delivered reminders. No scheduling effect.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextLabel:
    name: str
    keywords: tuple[str, ...]
    emoji: str
    encouragement: str
    delivery: str


# Order matters: the first category with a matching keyword wins.
CONTEXTS: tuple[ContextLabel, ...] = (
    ContextLabel(
        name="family",
        keywords=(
            "call mom", "call dad", "call family", "mom", "dad", "mother", "father",
            "sister", "brother", "family", "parents", "grandma", "grandpa",
        ),
        emoji="💕",
        encouragement="Family time is precious! 💕",
        delivery="👨‍👩‍👧‍👦 Don't forget your loved ones!",
    ),
    ContextLabel(
        name="meeting",
        keywords=(
            "meeting", "conference", "zoom", "teams", "work call",
            "presentation", "interview",
        ),
        emoji="🤝",
        encouragement="You've got this! Good luck with your meeting! 🤝",
        delivery="💼 Time for your meeting! Go show them what you're made of!",
    ),
    ContextLabel(
        name="health",
        keywords=(
            "doctor", "appointment", "dentist", "clinic", "hospital", "checkup",
            "medical", "medicine", "medication", "pills", "vitamin", "dose",
        ),
        emoji="🏥",
        encouragement="Taking care of your health is so important! 🏥",
        delivery="⚕️ Health comes first! This one's for you.",
    ),
    ContextLabel(
        name="workout",
        keywords=("gym", "workout", "exercise", "run", "jog", "fitness", "yoga", "training"),
        emoji="💪",
        encouragement="Your future self will thank you! 💪",
        delivery="🔥 Time to get moving! Your body will love you for this!",
    ),
    ContextLabel(
        name="work",
        keywords=("deadline", "project", "task", "work", "submit", "finish", "report", "email"),
        emoji="⚡",
        encouragement="You're capable of amazing things! ⚡",
        delivery="🎯 Time to tackle that task! You've got this!",
    ),
    ContextLabel(
        name="shopping",
        keywords=("buy", "shop", "grocer", "store", "market", "pick up", "order"),
        emoji="🛒",
        encouragement="Nothing left off the list! 🛒",
        delivery="🛍️ Shopping time! Don't forget the list.",
    ),
)

DEFAULT_CONTEXT = ContextLabel(
    name="general",
    keywords=(),
    emoji="⭐",
    encouragement="I'll make sure you don't forget! ⭐",
    delivery="🔔 Here's your friendly reminder!",
)


def classify(task_text: str) -> ContextLabel:
    """Return the first matching category for a task, or the default label."""
    text = task_text.lower()
    for context in CONTEXTS:
        if any(keyword in text for keyword in context.keywords):
            return context
    return DEFAULT_CONTEXT
