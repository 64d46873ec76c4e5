"""
OpenAI vendor adapter.

Uses the Chat Completions API through the official async SDK.
"""
from __future__ import annotations

from openai import AsyncOpenAI

from ...config import get_logger
from .interface import (
    CompletionConfig,
    CompletionResult,
    ModelDescriptor,
    ResponseFormat,
    TokenUsage,
    Vendor,
    VendorAdapterInterface,
    mentions_json,
)

logger = get_logger("llm.openai")

JSON_INSTRUCTION = "\n\nYou must respond with valid JSON."


class OpenAIAdapter(VendorAdapterInterface):
    """OpenAI chat completion adapter."""

    name = Vendor.OPENAI
    display_name = "OpenAI"
    label = "OpenAI"
    models = (
        ModelDescriptor(id="gpt-5.2", name="GPT 5.2", context_window=400000, max_output=128000),
        ModelDescriptor(id="gpt-4o", name="GPT 4o", context_window=128000, max_output=16384),
    )

    def _create_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        config: CompletionConfig,
    ) -> CompletionResult:
        """Run a chat completion, in JSON mode when requested."""
        client = await self._get_client()

        wants_json = config.response_format == ResponseFormat.JSON
        system_content = system_prompt
        if wants_json and not mentions_json(system_prompt):
            system_content = system_prompt + JSON_INSTRUCTION

        request: dict = {
            "model": config.model,
            "messages": [
                {"role": "system", "content": system_content},
                {"role": "user", "content": user_input},
            ],
            "temperature": config.temperature,
            "max_completion_tokens": config.max_tokens,
            "response_format": {"type": "json_object" if wants_json else "text"},
        }

        try:
            response = await self._with_timeout(client.chat.completions.create(**request))
        except Exception as e:
            logger.error("OpenAI completion failed | model=%s | error=%s", config.model, e)
            raise self._wrap_error(e)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = response.usage
        token_usage = TokenUsage(
            prompt=getattr(usage, "prompt_tokens", None) or 0,
            completion=getattr(usage, "completion_tokens", None) or 0,
            total=getattr(usage, "total_tokens", None) or 0,
        )

        return CompletionResult(content=content, token_usage=token_usage)
