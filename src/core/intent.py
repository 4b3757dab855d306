"""
Reminder Assistant — Intent Interpreter.

Asks the LLM what a free-form message means: is it a task, does it carry a
time, is it recurring. The prompt is flavored with the user's personality and
a handful of worked examples for terse commands. If the model is unreachable
or answers with garbage, a fixed non-task intent keeps the conversation going.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from pydantic import BaseModel

from src.core.oracle import StructuredOracle
from src.core.personality import Personality, profile_for

if TYPE_CHECKING:
    from src.core.llm import LLMClient

logger = logging.getLogger(__name__)


class Intent(BaseModel):
    """Structured interpretation of a message.

    JSON example:
    {
        "is_task": true,
        "task": "check on mom",
        "has_time": true,
        "time_phrase": "3pm",
        "is_recurring": false,
        "recurrence_pattern": null,
        "suggested_time": null,
        "needs_time_confirmation": false,
        "motivation": "Family first 💕",
        "clarifying_question": null
    }
    """
    is_task: bool = False
    task: str = ""
    has_time: bool = False
    time_phrase: str | None = None
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    suggested_time: str | None = None
    needs_time_confirmation: bool = False
    motivation: str | None = None
    clarifying_question: str | None = None


_INTENT_PROMPT = """\
You are the understanding engine of a reminder assistant that chats over WhatsApp.
Read the user's message and decide whether it asks to be reminded of something.

Today's date is {today}.

Style for any text you write (the "motivation" and "clarifying_question" fields):
{style}

Return ONLY one JSON object with exactly these keys:
{{"is_task": bool, "task": "string", "has_time": bool, "time_phrase": "string or null",
  "is_recurring": bool, "recurrence_pattern": "string or null",
  "suggested_time": "string or null", "needs_time_confirmation": bool,
  "motivation": "string or null", "clarifying_question": "string or null"}}

Rules:
- "task" = a short, clean action phrase (expand shorthand into a natural task).
- "has_time" = true only if the user stated when (a clock time, day, or relative time).
- "time_phrase" = the user's time words, copied as written.
- If no time was given but one is obvious, put it in "suggested_time" and set
  "needs_time_confirmation" to true.
- "is_recurring" = true for repeating intents ("every day", "weekly", "each Monday").
- If the message is not a task, set "is_task" to false and reply conversationally in "motivation".
- If the task is unclear, ask one short question in "clarifying_question".

Examples:
- "mom check at 3pm" -> {{"is_task": true, "task": "check on mom", "has_time": true, "time_phrase": "3pm", ...}}
- "vitamin morning" -> {{"is_task": true, "task": "take vitamin", "has_time": false, "suggested_time": "8am", "needs_time_confirmation": true, ...}}
- "water plants weekly" -> {{"is_task": true, "task": "water plants", "is_recurring": true, "recurrence_pattern": "weekly", ...}}
- "dentist tomorrow 10am" -> {{"is_task": true, "task": "go to the dentist", "has_time": true, "time_phrase": "tomorrow 10am", ...}}
- "thanks!" -> {{"is_task": false, "motivation": "Anytime! ...", ...}}

No markdown, no explanation — only the JSON object.
"""

intent_oracle: StructuredOracle[Intent] = StructuredOracle(
    name="intent",
    system_template=_INTENT_PROMPT,
    schema=Intent,
    max_tokens=512,
)


def fallback_intent(personality: str | Personality | None) -> Intent:
    """Non-task intent used whenever the oracle is unavailable."""
    return Intent(is_task=False, motivation=profile_for(personality).ask_prompt)


class IntentInterpreter:
    """Wraps the intent oracle for a given LLM client."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def interpret(self, message_text: str, personality: str | None) -> Intent:
        profile = profile_for(personality)
        intent = await intent_oracle.ask(
            self._llm,
            message_text,
            fallback=fallback_intent(personality),
            today=date.today().isoformat(),
            style=profile.style,
        )
        logger.info(
            "Interpreted '%s': task=%s has_time=%s recurring=%s",
            message_text[:80], intent.is_task, intent.has_time, intent.is_recurring,
        )
        return intent
