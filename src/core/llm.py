"""
Reminder Assistant — LLM Provider Abstraction.

`LLMClient.complete()` routes a prompt to the configured provider and bounds
every call with a timeout. The provider is chosen once, from LLM_PROVIDER.
Supports: gemini (default), anthropic, openai, cohere.

Every caller in this project wants a single JSON object back, so all
providers run at a low temperature.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

_TEMPERATURE = 0.2


@dataclass(frozen=True)
class Prompt:
    system: str
    user_message: str
    max_tokens: int = 256

    def as_chat(self) -> list[dict[str, str]]:
        """OpenAI-style message list (system first)."""
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user_message},
        ]


_ProviderFn = Callable[[str, str, Prompt], Awaitable[str]]

# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _gemini(api_key: str, model: str, prompt: Prompt) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(model_name=model, system_instruction=prompt.system)
    result = await gm.generate_content_async(
        prompt.user_message,
        generation_config=genai.types.GenerationConfig(
            max_output_tokens=prompt.max_tokens, temperature=_TEMPERATURE,
        ),
    )
    return result.text


async def _anthropic(api_key: str, model: str, prompt: Prompt) -> str:
    import anthropic

    result = await anthropic.AsyncAnthropic(api_key=api_key).messages.create(
        model=model,
        system=prompt.system,
        messages=[{"role": "user", "content": prompt.user_message}],
        max_tokens=prompt.max_tokens,
        temperature=_TEMPERATURE,
    )
    return result.content[0].text


async def _openai(api_key: str, model: str, prompt: Prompt) -> str:
    from openai import AsyncOpenAI

    result = await AsyncOpenAI(api_key=api_key).chat.completions.create(
        model=model,
        messages=prompt.as_chat(),
        max_tokens=prompt.max_tokens,
        temperature=_TEMPERATURE,
    )
    return result.choices[0].message.content or ""


async def _cohere(api_key: str, model: str, prompt: Prompt) -> str:
    import cohere

    result = await cohere.AsyncClientV2(api_key=api_key).chat(
        model=model,
        messages=prompt.as_chat(),
        max_tokens=prompt.max_tokens,
        temperature=_TEMPERATURE,
    )
    return result.message.content[0].text


_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_gemini,    "gemini-2.0-flash"),
    "anthropic": (_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_openai,    "gpt-4o-mini"),
    "cohere":    (_cohere,    "command-a-03-2025"),
}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """A configured text-completion provider with a per-call timeout."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str = "",
        timeout_seconds: float = 10.0,
    ) -> None:
        provider_name = provider.lower()
        if provider_name not in _PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={provider_name!r}. "
                f"Supported: {', '.join(_PROVIDERS)}"
            )
        fn, default_model = _PROVIDERS[provider_name]
        self.provider = provider_name
        self.model = model or default_model
        self._fn = fn
        self._api_key = api_key
        self._timeout = timeout_seconds
        logger.info("LLM provider: %s, model: %s", self.provider, self.model)

    @classmethod
    def from_settings(cls) -> LLMClient:
        from src.config import settings

        return cls(
            provider=settings.LLM_PROVIDER,
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            timeout_seconds=settings.EXTERNAL_TIMEOUT_SECONDS,
        )

    async def complete(self, system: str, user_message: str, max_tokens: int = 256) -> str:
        """Send a prompt and return the response text.

        Raises on API errors and on timeout (asyncio.TimeoutError); callers
        handle both.
        """
        return await asyncio.wait_for(
            self._fn(self._api_key, self.model, Prompt(system, user_message, max_tokens)),
            timeout=self._timeout,
        )
