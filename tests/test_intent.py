"""Tests for src.core.intent — LLM-based message interpretation."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.core.intent import Intent, IntentInterpreter, fallback_intent
from src.core.personality import PROFILES, Personality


def _llm(return_value=None, side_effect=None):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=return_value, side_effect=side_effect)
    return llm


class TestIntentModel:
    def test_defaults_describe_a_non_task(self):
        intent = Intent()
        assert intent.is_task is False
        assert intent.has_time is False
        assert intent.is_recurring is False
        assert intent.task == ""


class TestFallbackIntent:
    def test_styled_per_personality(self):
        for personality, profile in PROFILES.items():
            intent = fallback_intent(personality)
            assert intent.is_task is False
            assert intent.motivation == profile.ask_prompt

    def test_unknown_personality_is_calm(self):
        assert fallback_intent("grumpy").motivation == PROFILES[Personality.CALM].ask_prompt


class TestInterpret:
    @pytest.mark.asyncio
    async def test_task_with_time(self):
        llm = _llm(return_value=(
            '{"is_task": true, "task": "check on mom", "has_time": true, '
            '"time_phrase": "3pm", "is_recurring": false, "motivation": "Family first 💕"}'
        ))
        intent = await IntentInterpreter(llm).interpret("mom check at 3pm", "hype")
        assert intent.is_task is True
        assert intent.task == "check on mom"
        assert intent.time_phrase == "3pm"
        assert intent.needs_time_confirmation is False

    @pytest.mark.asyncio
    async def test_prompt_carries_personality_style(self):
        llm = _llm(return_value='{"is_task": false}')
        await IntentInterpreter(llm).interpret("hello", "direct")
        system = llm.complete.call_args.kwargs["system"]
        assert PROFILES[Personality.DIRECT].style in system
        assert "{" in system and "{{" not in system

    @pytest.mark.asyncio
    async def test_recurring(self):
        llm = _llm(return_value=(
            '```json\n{"is_task": true, "task": "water plants", '
            '"is_recurring": true, "recurrence_pattern": "weekly"}\n```'
        ))
        intent = await IntentInterpreter(llm).interpret("water plants weekly", "calm")
        assert intent.is_recurring is True
        assert intent.recurrence_pattern == "weekly"

    @pytest.mark.asyncio
    async def test_llm_failure_returns_fallback(self):
        llm = _llm(side_effect=RuntimeError("API down"))
        intent = await IntentInterpreter(llm).interpret("vitamin morning", "direct")
        assert intent.is_task is False
        assert intent.motivation == PROFILES[Personality.DIRECT].ask_prompt

    @pytest.mark.asyncio
    async def test_garbage_returns_fallback(self):
        llm = _llm(return_value="I think you want a reminder!")
        intent = await IntentInterpreter(llm).interpret("gym", None)
        assert intent == fallback_intent(None)
