"""
SmartBrief Backend — Abstract Summarization Provider Interface
================================================================

What:  The contract every AI backend implements, plus the result type it
       returns.
Why:   AiProviderGateway owns timeouts, breakers and error translation; a
       provider only knows how to turn (prompt, text, model) into text. Adding
       a backend means one subclass and one catalogue entry.
How:   Concrete providers inherit from SummaryProvider and implement
       `summarize()`. Anything they raise is converted to ProviderError by the
       gateway, so implementations stay free of HTTP and retry concerns.

Implementations:
    - GeminiProvider: Google Generative AI SDK
    - OpenAIProvider: OpenAI SDK (also any OpenAI-compatible base URL)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Sampling parameters shared by every backend
TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 1000


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting as reported by the provider; zeros when it reports none."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def as_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class ProviderReply:
    """Raw text and usage straight from a provider, before normalization."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


def build_request_body(prompt: str, text: str) -> str:
    """The prompt, a blank line, then the source content."""
    return f"{prompt}\n\n{text}"


class SummaryProvider(ABC):
    """
    Abstract interface for one AI summarization backend.

    Contract:
        - `summarize()` performs exactly one upstream call; no retries
        - it may raise anything; the gateway translates failures
        - an SDK-side deadline is raised as the builtin TimeoutError
        - `is_configured` must answer without network access
    """

    name: str = ""

    def __init__(self, api_key: str = "", base_url: str = ""):
        self.api_key = api_key
        self.base_url = base_url

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def summarize(self, prompt: str, text: str, model: str, timeout: float) -> ProviderReply:
        """
        Produce a summary of `text` following `prompt` with `model`.

        Args:
            prompt:  Instruction text; already defaulted by the gateway
            text:    Source content; already validated
            model:   Model id from the catalogue
            timeout: Seconds the SDK may spend; the gateway enforces its own
                     ceiling on top of this

        Returns:
            ProviderReply with the untrimmed text the backend produced.
        """
        ...
