"""Tests for src.core.oracle — JSON-or-fallback LLM calls."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock
from pydantic import BaseModel

from src.core.oracle import OracleResponseError, StructuredOracle, _clean_llm_response


class Answer(BaseModel):
    word: str
    count: int = 0


FALLBACK = Answer(word="fallback")


def _oracle(template="Be helpful. Today is {today}."):
    return StructuredOracle(name="test", system_template=template, schema=Answer, max_tokens=64)


def _llm(return_value=None, side_effect=None):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=return_value, side_effect=side_effect)
    return llm


# ---------------------------------------------------------------------------
# Unit tests for _clean_llm_response
# ---------------------------------------------------------------------------


class TestCleanLlmResponse:
    def test_strips_json_code_block(self):
        raw = '```json\n{"word": "hi"}\n```'
        assert _clean_llm_response(raw) == '{"word": "hi"}'

    def test_strips_plain_code_block(self):
        assert _clean_llm_response('```\n{"word": "hi"}\n```') == '{"word": "hi"}'

    def test_strips_whitespace(self):
        assert _clean_llm_response("  hello  ") == "hello"


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


class TestParse:
    def test_valid_object(self):
        assert _oracle().parse('{"word": "hi", "count": 2}') == Answer(word="hi", count=2)

    def test_single_item_list_unwrapped(self):
        assert _oracle().parse('[{"word": "hi"}]').word == "hi"

    @pytest.mark.parametrize("raw", [
        "",
        "   ",
        "not json at all",
        "[1, 2]",
        '"just a string"',
        '{"count": 3}',            # missing required field
        '{"word": "hi", "count": "many"}',
    ])
    def test_unusable_output_raises(self, raw):
        with pytest.raises(OracleResponseError):
            _oracle().parse(raw)


# ---------------------------------------------------------------------------
# ask (LLM mocked)
# ---------------------------------------------------------------------------


class TestAsk:
    @pytest.mark.asyncio
    async def test_returns_validated_answer(self):
        llm = _llm(return_value='```json\n{"word": "yes"}\n```')
        result = await _oracle().ask(llm, "question", fallback=FALLBACK, today="2026-10-19")
        assert result == Answer(word="yes")

    @pytest.mark.asyncio
    async def test_template_filled_and_budget_passed(self):
        llm = _llm(return_value='{"word": "yes"}')
        await _oracle().ask(llm, "question", fallback=FALLBACK, today="2026-10-19")
        llm.complete.assert_awaited_once_with(
            system="Be helpful. Today is 2026-10-19.",
            user_message="question",
            max_tokens=64,
        )

    @pytest.mark.asyncio
    async def test_invalid_json_returns_fallback(self):
        llm = _llm(return_value="Sure! Here you go.")
        assert await _oracle().ask(llm, "q", fallback=FALLBACK, today="x") is FALLBACK

    @pytest.mark.asyncio
    async def test_provider_error_returns_fallback(self):
        llm = _llm(side_effect=RuntimeError("API down"))
        assert await _oracle().ask(llm, "q", fallback=FALLBACK, today="x") is FALLBACK

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback(self):
        llm = _llm(side_effect=asyncio.TimeoutError())
        assert await _oracle().ask(llm, "q", fallback=FALLBACK, today="x") is FALLBACK

    @pytest.mark.asyncio
    async def test_missing_template_variable_returns_fallback(self):
        llm = _llm(return_value='{"word": "yes"}')
        assert await _oracle().ask(llm, "q", fallback=FALLBACK) is FALLBACK
        llm.complete.assert_not_awaited()
