"""
Anthropic vendor adapter.

Uses the Messages API through the official async SDK. Anthropic has no
native JSON mode, so JSON output is requested in the system prompt only.
"""
from __future__ import annotations

from anthropic import AsyncAnthropic

from ...config import get_logger
from .interface import (
    CompletionConfig,
    CompletionResult,
    ModelDescriptor,
    ResponseFormat,
    TokenUsage,
    Vendor,
    VendorAdapterInterface,
)

logger = get_logger("llm.anthropic")

JSON_INSTRUCTION = (
    "\n\nIMPORTANT: You must respond with valid JSON only. "
    "No additional text or explanation."
)


class AnthropicAdapter(VendorAdapterInterface):
    """Anthropic messages adapter."""

    name = Vendor.ANTHROPIC
    display_name = "Anthropic"
    label = "Anthropic"
    models = (
        ModelDescriptor(
            id="claude-opus-4-5-20251101",
            name="Claude Opus 4.5",
            context_window=200000,
            max_output=64000,
        ),
        ModelDescriptor(
            id="claude-sonnet-4-20250514",
            name="Claude Sonnet 4",
            context_window=200000,
            max_output=16000,
        ),
    )

    def _create_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        config: CompletionConfig,
    ) -> CompletionResult:
        client = await self._get_client()

        system_content = system_prompt
        if config.response_format == ResponseFormat.JSON:
            # Appended unconditionally, unlike the vendors with a JSON mode
            system_content = system_prompt + JSON_INSTRUCTION

        try:
            response = await self._with_timeout(
                client.messages.create(
                    model=config.model,
                    max_tokens=config.max_tokens,
                    temperature=config.temperature,
                    system=system_content,
                    messages=[{"role": "user", "content": user_input}],
                )
            )
        except Exception as e:
            logger.error("Anthropic completion failed | model=%s | error=%s", config.model, e)
            raise self._wrap_error(e)

        # Only a leading text block counts as the answer
        content = ""
        if response.content and getattr(response.content[0], "type", None) == "text":
            content = response.content[0].text

        usage = response.usage
        prompt_tokens = getattr(usage, "input_tokens", None) or 0
        completion_tokens = getattr(usage, "output_tokens", None) or 0

        return CompletionResult(
            content=content,
            token_usage=TokenUsage(
                prompt=prompt_tokens,
                completion=completion_tokens,
                total=prompt_tokens + completion_tokens,
            ),
        )
