"""
Reminder Assistant — Onboarding State Machine.

Every new user walks welcome → name → personality → timezone → complete,
one inbound message per step. Stages only move forward.

The machine computes a `Transition` (next stage, reply text, profile fields
to store); persisting it is the caller's job. Name capture never stalls: if
the extraction call fails the raw reply becomes the name. Timezone capture
deliberately loops until the model is reasonably confident.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Literal

from pydantic import BaseModel

from src.core.oracle import StructuredOracle
from src.core.personality import personality_menu, profile_for, select_personality
from src.data.models import OnboardingStage

if TYPE_CHECKING:
    from src.core.llm import LLMClient
    from src.data.models import User

logger = logging.getLogger(__name__)

ConfidenceTier = Literal["low", "medium", "high"]
_CONFIDENCE_RANK = {"low": 0, "medium": 1, "high": 2}


class OnboardingError(RuntimeError):
    """A transition that would break the forward-only stage order."""


# ---------------------------------------------------------------------------
# Oracle contracts
# ---------------------------------------------------------------------------


class NameExtraction(BaseModel):
    """JSON example: {"name": "Sam", "confidence": "high", "acknowledgment": "Nice to meet you, Sam!"}"""
    name: str = ""
    confidence: ConfidenceTier = "low"
    acknowledgment: str = ""


class TimezoneGuess(BaseModel):
    """JSON example: {"offset_hours": 3, "label": "Europe/Istanbul", "confidence": "high", "confirmation": "Istanbul time it is!"}"""
    offset_hours: float | None = None
    label: str = ""
    confidence: ConfidenceTier = "low"
    confirmation: str = ""

    @property
    def is_confident(self) -> bool:
        """Above the lowest tier, with a real-world offset."""
        return (
            _CONFIDENCE_RANK[self.confidence] > _CONFIDENCE_RANK["low"]
            and self.offset_hours is not None
            and -12 <= self.offset_hours <= 14
        )


_NAME_PROMPT = """\
The user was asked what they would like to be called. Extract the name they want to use.
"Call me Sam" -> "Sam". "I'm Dana" -> "Dana". A bare word is usually the name itself.
Return ONLY a JSON object:
{{"name": "string", "confidence": "low" | "medium" | "high", "acknowledgment": "one warm, short sentence greeting them by name"}}
No markdown, no explanation.
"""

_TIMEZONE_PROMPT = """\
You infer a user's timezone from what they say (a city, a country, a region, or their
current local time). The current UTC time is {now_utc}.
Return ONLY a JSON object:
{{"offset_hours": number (hours from UTC, may be fractional, e.g. 5.5), "label": "IANA name or short description",
  "confidence": "low" | "medium" | "high", "confirmation": "one short sentence confirming the timezone"}}
Use "low" confidence when the message does not identify a place or time.
No markdown, no explanation.
"""

name_oracle: StructuredOracle[NameExtraction] = StructuredOracle(
    name="name", system_template=_NAME_PROMPT, schema=NameExtraction, max_tokens=128,
)
timezone_oracle: StructuredOracle[TimezoneGuess] = StructuredOracle(
    name="timezone", system_template=_TIMEZONE_PROMPT, schema=TimezoneGuess, max_tokens=128,
)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@dataclass
class Transition:
    stage: OnboardingStage
    reply: str
    preferred_name: str | None = None
    personality: str | None = None
    timezone_label: str | None = None
    timezone_offset: float | None = None


_NEXT: dict[OnboardingStage, OnboardingStage] = {
    OnboardingStage.WELCOME: OnboardingStage.NAME,
    OnboardingStage.NAME: OnboardingStage.PERSONALITY,
    OnboardingStage.PERSONALITY: OnboardingStage.TIMEZONE,
    OnboardingStage.TIMEZONE: OnboardingStage.COMPLETE,
}


def next_stage(stage: OnboardingStage, accepted: bool) -> OnboardingStage:
    """Forward one stage if the step's input was accepted, else stay."""
    if stage is OnboardingStage.COMPLETE:
        raise OnboardingError("Onboarding is already complete")
    return _NEXT[stage] if accepted else stage


USAGE_EXAMPLES = (
    "Try things like:\n"
    '💕 "call mom at 6pm"\n'
    '💊 "vitamin tomorrow"\n'
    '🤝 "team meeting friday at 10am"\n'
    '📋 "list my reminders"'
)


def welcome_message(display_name: str) -> str:
    return (
        f"👋 Hi {display_name}! I'm your personal reminder assistant. 💝\n\n"
        "I'll help you remember the things that matter, right on time.\n"
        "First things first: what would you like me to call you?"
    )


def personality_prompt(name: str, acknowledgment: str = "") -> str:
    greeting = acknowledgment or f"Lovely to meet you, {name}! 😊"
    return (
        f"{greeting}\n\n"
        "How would you like me to talk to you?\n"
        f"{personality_menu()}\n\n"
        "Reply with 1, 2 or 3."
    )


TIMEZONE_QUESTION = (
    "Where are you based? Tell me your city or country "
    "(or just what time it is for you right now) so I remind you at the right local time. 🌍"
)

TIMEZONE_RETRY = (
    "Hmm, I couldn't pin down your timezone. 🤔\n"
    'Could you name your city, e.g. "Istanbul" or "New York", '
    'or tell me your local time, e.g. "it\'s 3pm here"?'
)


class OnboardingMachine:
    """Drives a user through setup, one message at a time."""

    def __init__(
        self,
        llm: LLMClient,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._llm = llm
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._handlers: dict[
            OnboardingStage, Callable[[User, str], Awaitable[Transition]]
        ] = {
            OnboardingStage.WELCOME: self._on_welcome,
            OnboardingStage.NAME: self._on_name,
            OnboardingStage.PERSONALITY: self._on_personality,
            OnboardingStage.TIMEZONE: self._on_timezone,
        }

    async def step(self, user: User, message_text: str) -> Transition:
        handler = self._handlers.get(user.stage)
        if handler is None:
            raise OnboardingError(f"No onboarding step for stage {user.stage.value}")

        transition = await handler(user, message_text)
        if transition.stage.rank < user.stage.rank:
            raise OnboardingError(
                f"Refusing to move {user.user_id} back from "
                f"{user.stage.value} to {transition.stage.value}"
            )
        return transition

    async def _on_welcome(self, user: User, message_text: str) -> Transition:
        # Content of the first message is not inspected.
        return Transition(
            stage=next_stage(OnboardingStage.WELCOME, accepted=True),
            reply=welcome_message(user.display_name),
        )

    async def _on_name(self, user: User, message_text: str) -> Transition:
        raw = message_text.strip()
        extraction = await name_oracle.ask(
            self._llm, raw, fallback=NameExtraction(name=raw),
        )
        name = extraction.name.strip() or raw or user.display_name
        logger.info("User %s will be called '%s'", user.user_id, name)
        return Transition(
            stage=next_stage(OnboardingStage.NAME, accepted=True),
            reply=personality_prompt(name, extraction.acknowledgment.strip()),
            preferred_name=name,
        )

    async def _on_personality(self, user: User, message_text: str) -> Transition:
        personality = select_personality(message_text)
        label = profile_for(personality).label.split(" — ")[0]
        return Transition(
            stage=next_stage(OnboardingStage.PERSONALITY, accepted=True),
            reply=f"{label} it is! ✨\n\n{TIMEZONE_QUESTION}",
            personality=personality.value,
        )

    async def _on_timezone(self, user: User, message_text: str) -> Transition:
        now_utc = self._clock().astimezone(timezone.utc)
        guess = await timezone_oracle.ask(
            self._llm,
            message_text,
            fallback=TimezoneGuess(),
            now_utc=now_utc.strftime("%Y-%m-%d %H:%M UTC"),
        )
        if not guess.is_confident:
            logger.info(
                "Timezone for %s not resolved from '%s' (confidence=%s)",
                user.user_id, message_text[:80], guess.confidence,
            )
            return Transition(
                stage=next_stage(OnboardingStage.TIMEZONE, accepted=False),
                reply=TIMEZONE_RETRY,
            )

        profile = profile_for(user.personality)
        confirmation = guess.confirmation.strip() or f"Got it, {guess.label or 'your timezone'}. 🌍"
        reply = (
            f"{confirmation}\n\n"
            f"{profile.onboarding_done.format(name=user.greeting_name)}\n\n"
            f"{USAGE_EXAMPLES}"
        )
        return Transition(
            stage=next_stage(OnboardingStage.TIMEZONE, accepted=True),
            reply=reply,
            timezone_label=guess.label or None,
            timezone_offset=guess.offset_hours,
        )
