"""
SmartBrief Backend — Summary SQLAlchemy Model
===============================================

What:  ORM model representing the `summaries` table.
Why:   Maps Summary entities to rows; the model itself guards the invariants
       that must hold no matter which service touches it.
Who:   Written by SummaryStore; read by SummaryStore and the API schemas.

Invariants kept here (not in services):
    - word_count_original / word_count_summary are recomputed by attribute
      validators every time the corresponding text is assigned, so they can
      never be stale
    - original_text is 1..50,000 chars, summary_text 1..10,000, prompt ≤ 1,000
    - status only moves processing → completed | failed

Index on (owner_id, created_at DESC):
    Optimizes the common query "my most recent summaries". Privileged listings
    fall back to the created_at ordering without the owner prefix.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from smartbrief.database import Base
from smartbrief.exceptions import ValidationError
from smartbrief.models.user import utc_now
from smartbrief.text_rules import (
    DEFAULT_PROMPT,
    MAX_ORIGINAL_CHARS,
    MAX_PROMPT_CHARS,
    MAX_SUMMARY_CHARS,
    compression_ratio,
    count_words,
)


class AIProvider(str, enum.Enum):
    """Closed set of AI backends a summary can come from."""

    GEMINI = "gemini"
    OPENAI = "openai"


class SummaryStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Terminal states map to an empty set
_ALLOWED_TRANSITIONS = {
    SummaryStatus.PROCESSING: {SummaryStatus.COMPLETED, SummaryStatus.FAILED},
    SummaryStatus.COMPLETED: set(),
    SummaryStatus.FAILED: set(),
}


class Summary(Base):
    """
    An AI-generated summary owned by one user.

    Lifecycle:
        1. Built in memory as 'processing' once the AI call has succeeded
        2. Moved to 'completed' and persisted together with the credit deduction
        3. Regenerated in place (summary text, prompt, provider, model, timing
           overwritten; credits_used incremented)
        4. Deleted only explicitly by the owner or an editor/admin
    """

    __tablename__ = "summaries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Immutable after creation; SummaryStore never reassigns it
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    summary_text: Mapped[str] = mapped_column(Text, nullable=False)

    word_count_original: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    word_count_summary: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    prompt: Mapped[str] = mapped_column(
        String(MAX_PROMPT_CHARS),
        nullable=False,
        default=DEFAULT_PROMPT,
    )

    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SummaryStatus.PROCESSING.value,
        comment="Processing state: processing, completed, failed",
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    # Latency of the AI call that produced the current summary_text
    processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Cumulative: 1 on create, +1 per regeneration
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        Index("idx_summaries_owner_created_at", "owner_id", created_at.desc()),
        Index("idx_summaries_status", "status"),
        CheckConstraint("word_count_original >= 1", name="ck_summaries_original_words"),
        CheckConstraint("word_count_summary >= 1", name="ck_summaries_summary_words"),
        CheckConstraint("processing_time_ms >= 0", name="ck_summaries_processing_time"),
        CheckConstraint("credits_used >= 1", name="ck_summaries_credits_used"),
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed')", name="ck_summaries_status_valid"
        ),
    )

    # ── Derived fields ────────────────────────────────────────────────────

    @validates("original_text")
    def _apply_original_text(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValidationError("Original text cannot be empty", field="original_text")
        if len(value) > MAX_ORIGINAL_CHARS:
            raise ValidationError(
                f"Original text cannot exceed {MAX_ORIGINAL_CHARS:,} characters",
                field="original_text",
            )
        self.word_count_original = count_words(value)
        return value

    @validates("summary_text")
    def _apply_summary_text(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValidationError("Summary cannot be empty", field="summary_text")
        if len(value) > MAX_SUMMARY_CHARS:
            raise ValidationError(
                f"Summary cannot exceed {MAX_SUMMARY_CHARS:,} characters",
                field="summary_text",
            )
        self.word_count_summary = count_words(value)
        return value

    @validates("prompt")
    def _apply_prompt(self, key: str, value: Optional[str]) -> str:
        value = value or DEFAULT_PROMPT
        if len(value) > MAX_PROMPT_CHARS:
            raise ValidationError(
                f"Prompt cannot exceed {MAX_PROMPT_CHARS:,} characters", field="prompt"
            )
        return value

    @property
    def compression_ratio(self) -> float:
        return compression_ratio(self.word_count_original or 0, self.word_count_summary or 0)

    # ── State machine ─────────────────────────────────────────────────────

    def transition_to(self, new_status: SummaryStatus, error_message: Optional[str] = None) -> None:
        """
        Moves the summary to `new_status`.

        Raises:
            ValueError: the transition is not processing → completed | failed
        """
        current = SummaryStatus(self.status or SummaryStatus.PROCESSING.value)
        if new_status not in _ALLOWED_TRANSITIONS[current]:
            raise ValueError(
                f"Illegal summary status transition: {current.value} -> {new_status.value}"
            )
        self.status = new_status.value
        self.error_message = error_message if new_status == SummaryStatus.FAILED else None

    def __repr__(self) -> str:
        return (
            f"<Summary(id={self.id}, owner_id={self.owner_id}, status='{self.status}', "
            f"credits_used={self.credits_used})>"
        )
