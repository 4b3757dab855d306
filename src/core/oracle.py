"""
Reminder Assistant — Structured Oracle.

One pattern behind every model call in the engine: ask the LLM for a JSON
object, validate it against a pydantic schema, and hand back a caller-supplied
fallback if anything goes wrong (timeout, provider error, bad JSON, schema
mismatch). Nothing raised inside an oracle call reaches the conversation.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from src.core.llm import LLMClient

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


class OracleResponseError(ValueError):
    """The model answered, but not with a usable object."""


class StructuredOracle(Generic[ResponseT]):
    """A typed request/response call to the LLM.

    Args:
        name: Short label used in log lines.
        system_template: System prompt; `str.format` placeholders are filled
            from the keyword arguments given to `ask()`.
        schema: Pydantic model the JSON answer must validate against.
        max_tokens: Completion budget.
    """

    def __init__(
        self,
        name: str,
        system_template: str,
        schema: type[ResponseT],
        max_tokens: int = 512,
    ) -> None:
        self.name = name
        self.system_template = system_template
        self.schema = schema
        self.max_tokens = max_tokens

    def parse(self, raw_text: str) -> ResponseT:
        """Decode and validate a raw completion. Raises OracleResponseError."""
        cleaned = _clean_llm_response(raw_text or "")
        if not cleaned:
            raise OracleResponseError("empty response")
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise OracleResponseError(f"not JSON: {exc}") from exc

        # Some models wrap a single object in an array
        if isinstance(data, list) and len(data) == 1:
            data = data[0]
        if not isinstance(data, dict):
            raise OracleResponseError(f"expected object, got {type(data).__name__}")

        try:
            return self.schema.model_validate(data)
        except ValidationError as exc:
            raise OracleResponseError(str(exc)) from exc

    async def ask(
        self,
        llm: LLMClient,
        user_message: str,
        fallback: ResponseT,
        **prompt_vars: Any,
    ) -> ResponseT:
        """Run the call; return `fallback` on any failure."""
        raw_text = ""
        try:
            system = self.system_template.format(**prompt_vars)
            raw_text = await llm.complete(
                system=system,
                user_message=user_message,
                max_tokens=self.max_tokens,
            )
            logger.debug("%s oracle raw response: %s", self.name, raw_text)
            return self.parse(raw_text)
        except OracleResponseError as exc:
            logger.warning(
                "%s oracle returned unusable output (%s) — raw: '%s'",
                self.name, exc, raw_text,
            )
        except Exception as exc:
            logger.warning("%s oracle call failed: %r", self.name, exc)
        return fallback
