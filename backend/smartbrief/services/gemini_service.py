"""
SmartBrief Backend — Google Gemini Provider
=============================================

What:  SummaryProvider backed by the Google Generative AI SDK.
How:   One `generate_content_async` call per summary with the shared sampling
       parameters. The SDK keeps its API key in module-level state, so
       `genai.configure` runs once at construction and only when a key exists.
       GEMINI_BASE_URL, when set, becomes the client's `api_endpoint` so a
       proxy or regional endpoint is honoured. The SDK's own deadline error is
       raised as TimeoutError, the same as the gateway's ceiling.
Who:   Built by the application factory; called only through AiProviderGateway,
       which owns the timeout, circuit breaker and error translation.
"""

import logging
from urllib.parse import urlparse

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from smartbrief.services.llm_base import (
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    ProviderReply,
    SummaryProvider,
    TokenUsage,
    build_request_body,
)

logger = logging.getLogger(__name__)


def api_endpoint(base_url: str) -> str:
    """
    Host (and port) the gRPC client should dial for a configured base URL.

    The SDK wants a bare `host[:port]`; a scheme or path is dropped.
    """
    base_url = (base_url or "").strip()
    if not base_url:
        return ""
    parsed = urlparse(base_url if "://" in base_url else f"https://{base_url}")
    return parsed.netloc


class GeminiProvider(SummaryProvider):
    """Google Gemini text generation."""

    name = "gemini"

    def __init__(self, api_key: str = "", base_url: str = ""):
        super().__init__(api_key=api_key, base_url=base_url)
        if self.api_key:
            options = {"api_key": self.api_key}
            endpoint = api_endpoint(self.base_url)
            if endpoint:
                options["client_options"] = {"api_endpoint": endpoint}
            genai.configure(**options)
        logger.info("GeminiProvider initialized (configured=%s)", self.is_configured)

    async def summarize(self, prompt: str, text: str, model: str, timeout: float) -> ProviderReply:
        generative_model = genai.GenerativeModel(model)
        try:
            response = await generative_model.generate_content_async(
                build_request_body(prompt, text),
                generation_config={
                    "temperature": TEMPERATURE,
                    "max_output_tokens": MAX_OUTPUT_TOKENS,
                },
                request_options={"timeout": timeout},
            )
        except google_exceptions.DeadlineExceeded as e:
            raise TimeoutError(f"Gemini deadline of {timeout:g}s exceeded") from e

        # .text raises ValueError when the candidate was blocked; the gateway
        # reports that as a malformed response
        return ProviderReply(text=response.text or "", usage=self._usage(response))

    @staticmethod
    def _usage(response) -> TokenUsage:
        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return TokenUsage()
        return TokenUsage(
            prompt_tokens=getattr(metadata, "prompt_token_count", 0) or 0,
            completion_tokens=getattr(metadata, "candidates_token_count", 0) or 0,
            total_tokens=getattr(metadata, "total_token_count", 0) or 0,
        )
