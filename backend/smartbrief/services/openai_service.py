"""
SmartBrief Backend — OpenAI Provider
======================================

What:  SummaryProvider backed by the OpenAI chat completions API.
How:   A single `AsyncOpenAI` client per process. The SDK's own retries are
       disabled (`max_retries=0`); one failed attempt is terminal.
       `base_url` lets the same provider talk to any OpenAI-compatible
       endpoint.
"""

import logging

from openai import APITimeoutError, AsyncOpenAI

from smartbrief.services.llm_base import (
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    ProviderReply,
    SummaryProvider,
    TokenUsage,
    build_request_body,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(SummaryProvider):
    """OpenAI (or compatible) chat completion."""

    name = "openai"

    def __init__(self, api_key: str = "", base_url: str = ""):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = None
        logger.info("OpenAIProvider initialized (configured=%s)", self.is_configured)

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily: AsyncOpenAI refuses to construct without a key
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                max_retries=0,
            )
        return self._client

    async def summarize(self, prompt: str, text: str, model: str, timeout: float) -> ProviderReply:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": build_request_body(prompt, text)}],
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS,
                timeout=timeout,
            )
        except APITimeoutError as e:
            raise TimeoutError(f"OpenAI request exceeded {timeout:g}s") from e

        content = response.choices[0].message.content if response.choices else None
        usage = response.usage
        return ProviderReply(
            text=content or "",
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
        )
