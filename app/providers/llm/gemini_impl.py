"""
Gemini vendor adapter.

Uses Google's genai library (async surface) for generate-content calls.
"""
from __future__ import annotations

from google import genai
from google.genai import types

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

logger = get_logger("llm.gemini")

JSON_INSTRUCTION = "\n\nYou must respond with valid JSON only. No additional text or explanation."


class GeminiAdapter(VendorAdapterInterface):
    """
    Gemini generate-content adapter.

    JSON output uses the native response MIME type in addition to the
    system instruction.
    """

    name = Vendor.GEMINI
    display_name = "Google Gemini"
    label = "Gemini"
    models = (
        ModelDescriptor(
            id="gemini-3-pro-preview",
            name="Gemini 3 Pro",
            context_window=1000000,
            max_output=64000,
        ),
        ModelDescriptor(
            id="gemini-2.5-flash",
            name="Gemini 2.5 Flash",
            context_window=1048576,
            max_output=65536,
        ),
    )

    def _create_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        config: CompletionConfig,
    ) -> CompletionResult:
        """Generate content using Gemini."""
        client = await self._get_client()

        wants_json = config.response_format == ResponseFormat.JSON
        system_instruction = system_prompt
        if wants_json and not mentions_json(system_prompt):
            system_instruction = system_prompt + JSON_INSTRUCTION

        gen_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=config.temperature,
            max_output_tokens=config.max_tokens,
            response_mime_type="application/json" if wants_json else "text/plain",
        )

        try:
            response = await self._with_timeout(
                client.aio.models.generate_content(
                    model=config.model,
                    contents=user_input,
                    config=gen_config,
                )
            )
        except Exception as e:
            logger.error("Gemini completion failed | model=%s | error=%s", config.model, e)
            raise self._wrap_error(e)

        usage = response.usage_metadata
        token_usage = TokenUsage(
            prompt=getattr(usage, "prompt_token_count", None) or 0,
            completion=getattr(usage, "candidates_token_count", None) or 0,
            total=getattr(usage, "total_token_count", None) or 0,
        )

        return CompletionResult(content=response.text or "", token_usage=token_usage)
