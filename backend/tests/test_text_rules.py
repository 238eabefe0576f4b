"""
SmartBrief Backend — Text Rules and Summary Model Tests
=========================================================

What:  Word counting, text validation, compression ratio, and the Summary
       model's derived fields and status machine.
"""

import pytest

from smartbrief.exceptions import ValidationError
from smartbrief.models.summary import Summary, SummaryStatus
from smartbrief.text_rules import (
    DEFAULT_PROMPT,
    MAX_ORIGINAL_CHARS,
    compression_ratio,
    count_words,
    validate_text,
)

from conftest import FIFTEEN_WORDS


class TestCountWords:

    def test_runs_of_whitespace_are_one_separator(self):
        assert count_words("alpha   beta\t\tgamma\n\n delta") == 4

    def test_empty_and_blank(self):
        assert count_words("") == 0
        assert count_words("   \n\t ") == 0
        assert count_words(None) == 0


class TestValidateText:

    def test_fifteen_words_valid_with_exact_count(self):
        result = validate_text(FIFTEEN_WORDS)
        assert result.valid is True
        assert result.word_count == 15
        assert result.reason is None

    def test_surrounding_whitespace_ignored(self):
        result = validate_text("\n\n  " + FIFTEEN_WORDS + "   \n")
        assert result.valid is True
        assert result.word_count == 15

    def test_nine_words_rejected_with_word_reason(self):
        result = validate_text("one two three four five six seven eight nine")
        assert result.valid is False
        assert "at least 10 words" in result.reason
        assert result.word_count == 9

    def test_few_long_words_still_rejected(self):
        """Character length does not compensate for a low word count."""
        result = validate_text(" ".join(["x" * 5000] * 5))
        assert result.valid is False
        assert "at least 10 words" in result.reason

    def test_empty_text_rejected(self):
        result = validate_text("    ")
        assert result.valid is False
        assert result.reason == "Text cannot be empty"

    def test_non_string_rejected(self):
        assert validate_text(None).valid is False
        assert validate_text(42).valid is False

    def test_too_long_rejected(self):
        text = ("word " * (MAX_ORIGINAL_CHARS // 5 + 10)).strip()
        result = validate_text(text)
        assert result.valid is False
        assert "50,000" in result.reason

    def test_exactly_at_limit_accepted(self):
        text = ("abcd " * (MAX_ORIGINAL_CHARS // 5)).strip()
        text = text + "x" * (MAX_ORIGINAL_CHARS - len(text))
        assert len(text) == MAX_ORIGINAL_CHARS
        assert validate_text(text).valid is True


class TestCompressionRatio:

    def test_rounded_to_one_decimal(self):
        assert compression_ratio(3, 1) == 66.7
        assert compression_ratio(100, 25) == 75.0

    def test_zero_original_is_zero(self):
        assert compression_ratio(0, 0) == 0.0
        assert compression_ratio(0, 5) == 0.0

    def test_longer_summary_is_negative(self):
        assert compression_ratio(10, 15) == -50.0


class TestSummaryModel:

    def _summary(self) -> Summary:
        return Summary(
            original_text=FIFTEEN_WORDS,
            summary_text="five words in this summary",
            provider="gemini",
            model="gemini-1.5-flash-latest",
        )

    def test_word_counts_follow_text(self):
        summary = self._summary()
        assert summary.word_count_original == 15
        assert summary.word_count_summary == 5

        summary.summary_text = "now only three"
        assert summary.word_count_summary == 3
        assert summary.compression_ratio == 80.0

    def test_empty_summary_rejected(self):
        summary = self._summary()
        with pytest.raises(ValidationError):
            summary.summary_text = "   "

    def test_oversized_summary_rejected(self):
        summary = self._summary()
        with pytest.raises(ValidationError, match="10,000"):
            summary.summary_text = "a" * 10_001

    def test_prompt_defaults_and_limit(self):
        summary = self._summary()
        summary.prompt = None
        assert summary.prompt == DEFAULT_PROMPT
        with pytest.raises(ValidationError, match="1,000"):
            summary.prompt = "p" * 1001

    def test_processing_to_completed(self):
        summary = self._summary()
        summary.status = SummaryStatus.PROCESSING.value
        summary.transition_to(SummaryStatus.COMPLETED)
        assert summary.status == "completed"
        assert summary.error_message is None

    def test_processing_to_failed_keeps_message(self):
        summary = self._summary()
        summary.status = SummaryStatus.PROCESSING.value
        summary.transition_to(SummaryStatus.FAILED, error_message="provider timeout")
        assert summary.status == "failed"
        assert summary.error_message == "provider timeout"

    @pytest.mark.parametrize("terminal", [SummaryStatus.COMPLETED, SummaryStatus.FAILED])
    def test_terminal_states_do_not_move(self, terminal):
        summary = self._summary()
        summary.status = terminal.value
        with pytest.raises(ValueError, match="Illegal"):
            summary.transition_to(SummaryStatus.PROCESSING)
