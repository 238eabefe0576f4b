"""
SmartBrief Backend — Text Rules
================================

What:  The single definition of how words are counted and which texts are
       acceptable for summarization.
Why:   The gateway, the file ingestor and the Summary model all need the same
       answer; a second copy would eventually drift.
"""

from dataclasses import dataclass
from typing import Optional

MAX_ORIGINAL_CHARS = 50_000
MAX_SUMMARY_CHARS = 10_000
MAX_PROMPT_CHARS = 1_000
MIN_WORDS = 10

DEFAULT_PROMPT = (
    "Summarize the following text in a clear and concise manner, "
    "maintaining the key points and main ideas:"
)


def count_words(text: Optional[str]) -> int:
    """Counts tokens separated by runs of whitespace; empty tokens are discarded."""
    if not text:
        return 0
    return len(text.split())


@dataclass(frozen=True)
class TextValidation:
    """Outcome of `validate_text`: either valid with a word count, or a reason."""

    valid: bool
    word_count: int = 0
    reason: Optional[str] = None


def validate_text(text: Optional[str]) -> TextValidation:
    """
    Checks that text is worth summarizing.

    Rules, in order:
        1. non-empty after trimming
        2. at most 50,000 characters after trimming
        3. at least 10 whitespace-delimited words
    """
    if not isinstance(text, str):
        return TextValidation(valid=False, reason="Text must be a non-empty string")

    trimmed = text.strip()
    if not trimmed:
        return TextValidation(valid=False, reason="Text cannot be empty")
    if len(trimmed) > MAX_ORIGINAL_CHARS:
        return TextValidation(
            valid=False, reason=f"Text cannot exceed {MAX_ORIGINAL_CHARS:,} characters"
        )

    word_count = count_words(trimmed)
    if word_count < MIN_WORDS:
        return TextValidation(
            valid=False,
            word_count=word_count,
            reason=(
                f"Text must have at least {MIN_WORDS} words for meaningful summarization "
                f"(found {word_count})"
            ),
        )
    return TextValidation(valid=True, word_count=word_count)


def compression_ratio(original_words: int, summary_words: int) -> float:
    """Percentage reduction in word count, rounded to one decimal; 0 for empty originals."""
    if original_words == 0:
        return 0.0
    return round((original_words - summary_words) / original_words * 100, 1)
