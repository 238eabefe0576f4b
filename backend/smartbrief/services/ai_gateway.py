"""
SmartBrief Backend — AI Provider Gateway
==========================================

What:  The one place that turns text into a summary, whichever backend is used.
Why:   Callers (the orchestrator) must see a single contract: either a
       SummaryResult or a ProviderError carrying the provider name and the
       time spent. Vendor SDK exceptions never escape this module.
How:   1. Validate the text (shared rules in text_rules)
       2. Resolve provider/model against the closed catalogue
       3. Refuse unconfigured providers without touching the network
       4. Gate through the provider's circuit breaker
       5. One call under asyncio.wait_for; no retries
       6. Trim and sanity-check the reply, zero-fill missing usage

Error Handling Chain:
    unknown provider/model      → ValidationError (client can fix it)
    provider has no API key     → ProviderError, breaker untouched
    breaker OPEN                → CircuitBreakerOpenError (fails in <1ms)
    call exceeds the timeout    → ProviderError(reason=timeout), breaker failure
    SDK deadline (TimeoutError) → same as above
    SDK raises                  → ProviderError(error_type=...), breaker failure
    empty or oversized reply    → ProviderError(reason=malformed_response)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from smartbrief.exceptions import ProviderError, ValidationError
from smartbrief.models.summary import AIProvider
from smartbrief.services.circuit_breaker import CircuitBreaker
from smartbrief.services.llm_base import ProviderReply, SummaryProvider, TokenUsage
from smartbrief.text_rules import (
    DEFAULT_PROMPT,
    MAX_PROMPT_CHARS,
    MAX_SUMMARY_CHARS,
    TextValidation,
    validate_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    display_name: str
    max_tokens: int

    def as_dict(self) -> dict:
        return {"id": self.id, "display_name": self.display_name, "max_tokens": self.max_tokens}


# Every AIProvider member must have an entry in both mappings
DEFAULT_MODELS: Dict[AIProvider, str] = {
    AIProvider.GEMINI: "gemini-1.5-flash-latest",
    AIProvider.OPENAI: "gpt-4o-mini",
}

MODEL_CATALOGUE: Dict[AIProvider, Tuple[ModelDescriptor, ...]] = {
    AIProvider.GEMINI: (
        ModelDescriptor("gemini-1.5-flash-latest", "Gemini 1.5 Flash (latest)", 1_048_576),
        ModelDescriptor("gemini-1.5-flash", "Gemini 1.5 Flash", 1_048_576),
        ModelDescriptor("gemini-1.5-pro", "Gemini 1.5 Pro", 2_097_152),
    ),
    AIProvider.OPENAI: (
        ModelDescriptor("gpt-4o-mini", "GPT-4o mini", 128_000),
        ModelDescriptor("gpt-4o", "GPT-4o", 128_000),
        ModelDescriptor("gpt-3.5-turbo", "GPT-3.5 Turbo", 16_385),
    ),
}


@dataclass(frozen=True)
class SummaryResult:
    """A successful generation, normalized across providers."""

    summary_text: str
    provider: AIProvider
    model: str
    prompt: str
    processing_time_ms: int
    usage: TokenUsage


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class AiProviderGateway:
    """
    Summarization over the registered providers.

    One instance per process, built by the application factory. It holds the
    provider objects and their circuit breakers; nothing here touches the
    database or credits.
    """

    def __init__(
        self,
        providers: Mapping[AIProvider, SummaryProvider],
        default_provider: AIProvider = AIProvider.GEMINI,
        timeout_seconds: float = 30.0,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ):
        self._providers = dict(providers)
        self._default_provider = AIProvider(default_provider)
        self._timeout = timeout_seconds
        self._breakers = {
            tag: CircuitBreaker(tag.value, failure_threshold, recovery_timeout)
            for tag in AIProvider
        }

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def breaker(self, provider: AIProvider) -> CircuitBreaker:
        return self._breakers[AIProvider(provider)]

    # ── Validation ────────────────────────────────────────────────────────

    @staticmethod
    def validate_text(text: Optional[str]) -> TextValidation:
        return validate_text(text)

    def resolve_selection(
        self, provider: Optional[str] = None, model: Optional[str] = None
    ) -> Tuple[AIProvider, str]:
        """
        Maps optional client strings onto a catalogue entry.

        Missing provider → configured default; missing model → that provider's
        default model. Anything outside the catalogue is a ValidationError.
        """
        if provider:
            try:
                tag = AIProvider(provider.strip().lower())
            except ValueError:
                raise ValidationError(
                    f"Unsupported AI provider '{provider}'. "
                    f"Available: {', '.join(p.value for p in AIProvider)}",
                    field="provider",
                )
        else:
            tag = self._default_provider

        if tag not in self._providers:
            raise ValidationError(f"AI provider '{tag.value}' is not available", field="provider")

        if not model:
            return tag, DEFAULT_MODELS[tag]

        model_id = model.strip()
        known = [descriptor.id for descriptor in MODEL_CATALOGUE[tag]]
        if model_id not in known:
            raise ValidationError(
                f"Unsupported model '{model_id}' for provider '{tag.value}'. "
                f"Available: {', '.join(known)}",
                field="model",
            )
        return tag, model_id

    @staticmethod
    def resolve_prompt(prompt: Optional[str]) -> str:
        if prompt is None or not prompt.strip():
            return DEFAULT_PROMPT
        prompt = prompt.strip()
        if len(prompt) > MAX_PROMPT_CHARS:
            raise ValidationError(
                f"Prompt cannot exceed {MAX_PROMPT_CHARS:,} characters", field="prompt"
            )
        return prompt

    # ── Generation ────────────────────────────────────────────────────────

    async def generate_summary(
        self,
        text: str,
        prompt: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> SummaryResult:
        """
        Summarize `text` with a single bounded provider call.

        Raises:
            ValidationError: text, prompt, provider or model rejected
            ProviderError:   anything that went wrong upstream (timeout included)
            CircuitBreakerOpenError: provider temporarily rejected
        """
        validation = validate_text(text)
        if not validation.valid:
            raise ValidationError(validation.reason, field="text")

        tag, model_id = self.resolve_selection(provider, model)
        prompt_text = self.resolve_prompt(prompt)
        backend = self._providers[tag]
        breaker = self._breakers[tag]

        if not backend.is_configured:
            logger.error("Summarization requested from unconfigured provider %s", tag.value)
            raise ProviderError(
                provider=tag.value,
                message=f"AI provider '{tag.value}' is not configured. Please contact support.",
                context={"model": model_id, "reason": "not_configured"},
            )

        breaker.before_call()

        logger.info(
            "Summarizing %d words with %s/%s", validation.word_count, tag.value, model_id
        )
        start = time.perf_counter()
        try:
            reply: ProviderReply = await asyncio.wait_for(
                backend.summarize(prompt_text, text.strip(), model_id, self._timeout),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, TimeoutError):
            elapsed = _elapsed_ms(start)
            breaker.record_failure()
            logger.warning("%s/%s timed out after %dms", tag.value, model_id, elapsed)
            raise ProviderError(
                provider=tag.value,
                message=f"AI provider '{tag.value}' did not respond within {self._timeout:g} seconds",
                processing_time_ms=elapsed,
                context={"model": model_id, "reason": "timeout"},
            )
        except Exception as e:
            elapsed = _elapsed_ms(start)
            breaker.record_failure()
            logger.error(
                "%s/%s call failed after %dms: %s", tag.value, model_id, elapsed, e, exc_info=True
            )
            raise ProviderError(
                provider=tag.value,
                message=f"AI provider '{tag.value}' failed to generate a summary",
                processing_time_ms=elapsed,
                context={"model": model_id, "error_type": type(e).__name__},
            )

        elapsed = _elapsed_ms(start)
        summary_text = (reply.text or "").strip()
        if not summary_text or len(summary_text) > MAX_SUMMARY_CHARS:
            breaker.record_failure()
            logger.error(
                "%s/%s returned an unusable summary (%d chars)",
                tag.value, model_id, len(summary_text),
            )
            raise ProviderError(
                provider=tag.value,
                message=f"AI provider '{tag.value}' returned an invalid summary",
                processing_time_ms=elapsed,
                context={"model": model_id, "reason": "malformed_response"},
            )

        breaker.record_success()
        usage = reply.usage or TokenUsage()
        logger.info(
            "%s/%s produced %d chars in %dms (tokens: %d)",
            tag.value, model_id, len(summary_text), elapsed, usage.total_tokens,
        )
        return SummaryResult(
            summary_text=summary_text,
            provider=tag,
            model=model_id,
            prompt=prompt_text,
            processing_time_ms=elapsed,
            usage=usage,
        )

    # ── Descriptors ───────────────────────────────────────────────────────

    def get_available_models(self) -> Dict[str, List[dict]]:
        return {
            tag.value: [descriptor.as_dict() for descriptor in MODEL_CATALOGUE[tag]]
            for tag in AIProvider
            if tag in self._providers
        }

    def check_configuration(self) -> Dict[str, dict]:
        """Per-provider configuration and breaker state; no network calls."""
        return {
            tag.value: {
                "configured": backend.is_configured,
                "base_url": backend.base_url,
                "default_model": DEFAULT_MODELS[tag],
                "circuit_breaker": self._breakers[tag].snapshot(),
            }
            for tag, backend in self._providers.items()
        }
