"""Tests for src.core.llm — provider routing and call timeout."""

import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from src.core.llm import LLMClient, Prompt, _PROVIDERS


class TestLLMClientInit:
    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
            LLMClient(provider="mystery", api_key="k")

    def test_default_model_per_provider(self):
        client = LLMClient(provider="openai", api_key="k")
        assert client.model == _PROVIDERS["openai"][1]

    def test_explicit_model_and_case_insensitive_provider(self):
        client = LLMClient(provider="Anthropic", api_key="k", model="my-model")
        assert client.provider == "anthropic"
        assert client.model == "my-model"

    def test_from_settings(self):
        client = LLMClient.from_settings()
        assert client.provider == "gemini"


class TestComplete:
    @pytest.mark.asyncio
    async def test_routes_to_provider(self):
        fake = AsyncMock(return_value="hello")
        with patch.dict("src.core.llm._PROVIDERS", {"gemini": (fake, "g-model")}):
            client = LLMClient(provider="gemini", api_key="secret")
            result = await client.complete("sys", "hi", max_tokens=42)
        assert result == "hello"
        fake.assert_awaited_once_with("secret", "g-model", Prompt("sys", "hi", 42))

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self):
        async def slow(*args):
            await asyncio.sleep(5)
            return "too late"

        with patch.dict("src.core.llm._PROVIDERS", {"gemini": (slow, "g-model")}):
            client = LLMClient(provider="gemini", api_key="k", timeout_seconds=0.01)
            with pytest.raises(asyncio.TimeoutError):
                await client.complete("sys", "hi")

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        fake = AsyncMock(side_effect=RuntimeError("quota"))
        with patch.dict("src.core.llm._PROVIDERS", {"gemini": (fake, "g-model")}):
            client = LLMClient(provider="gemini", api_key="k")
            with pytest.raises(RuntimeError, match="quota"):
                await client.complete("sys", "hi")


class TestPrompt:
    def test_as_chat_puts_system_first(self):
        assert Prompt("be brief", "hi").as_chat() == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ]
