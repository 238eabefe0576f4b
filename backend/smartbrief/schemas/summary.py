"""
SmartBrief Backend — Summary Request/Response Schemas
=======================================================

What:  Pydantic models defining the summaries API contract.
Why:   Strict input validation, explicit response shapes, and OpenAPI docs.
How:   Requests are validated by FastAPI before a route runs; responses are
       built from ORM objects and service results through `from_*` helpers.

Design Decision:
    Schemas stay separate from SQLAlchemy models: the API exposes derived
    fields (nested word_count, compression_ratio) that are not columns.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CreateSummaryRequest(BaseModel):
    """
    Body of POST /api/summaries.

    Text rules (non-blank, ≤50,000 chars, ≥10 words) are enforced by the
    gateway so typed and uploaded text fail with the same messages.
    """

    text: str = Field(description="Text to summarize")
    prompt: Optional[str] = Field(default=None, description="Instruction; default prompt when omitted")
    provider: Optional[str] = Field(default=None, description="AI provider, e.g. gemini")
    model: Optional[str] = Field(default=None, description="Model id from /api/summaries/ai/models")


class RegenerateSummaryRequest(BaseModel):
    """Body of PUT /api/summaries/{id}. Omitted fields keep their stored values."""

    prompt: Optional[str] = Field(default=None, description="Instruction; default prompt when omitted")
    provider: Optional[str] = None
    model: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class WordCount(BaseModel):
    original: int
    summary: int


class SummaryResponse(BaseModel):
    """Full representation of a summary."""

    id: uuid.UUID
    owner_id: uuid.UUID
    original_text: str
    summary_text: str
    word_count: WordCount
    compression_ratio: float = Field(description="Percent reduction in words, one decimal")
    prompt: str
    provider: str
    model: str
    status: str = Field(description="Processing state: processing, completed, failed")
    error_message: Optional[str] = None
    processing_time_ms: int
    credits_used: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, summary) -> "SummaryResponse":
        return cls(
            id=summary.id,
            owner_id=summary.owner_id,
            original_text=summary.original_text,
            summary_text=summary.summary_text,
            word_count=WordCount(
                original=summary.word_count_original, summary=summary.word_count_summary
            ),
            compression_ratio=summary.compression_ratio,
            prompt=summary.prompt,
            provider=summary.provider,
            model=summary.model,
            status=summary.status,
            error_message=summary.error_message,
            processing_time_ms=summary.processing_time_ms,
            credits_used=summary.credits_used,
            created_at=summary.created_at,
            updated_at=summary.updated_at,
        )


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AIInfo(BaseModel):
    provider: str
    model: str
    processing_time_ms: int
    usage: Usage


class CreditsInfo(BaseModel):
    deducted: int
    remaining: int


class FileInfo(BaseModel):
    file_name: str
    extension: str
    mime_type: str
    size: int
    word_count: int
    character_count: int


class SummaryOperationResponse(BaseModel):
    """
    Returned by create, upload and regenerate.

    `file` is only present for uploads.
    """

    message: str
    summary: SummaryResponse
    ai_info: AIInfo
    credits: CreditsInfo
    file: Optional[FileInfo] = None

    @classmethod
    def from_outcome(cls, message: str, outcome) -> "SummaryOperationResponse":
        result = outcome.result
        return cls(
            message=message,
            summary=SummaryResponse.from_model(outcome.summary),
            ai_info=AIInfo(
                provider=result.provider.value,
                model=result.model,
                processing_time_ms=result.processing_time_ms,
                usage=Usage(**result.usage.as_dict()),
            ),
            credits=CreditsInfo(
                deducted=outcome.credits_deducted, remaining=outcome.credits_remaining
            ),
            file=FileInfo(**outcome.file) if outcome.file else None,
        )


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class SummaryListResponse(BaseModel):
    """Paginated list; total also sent as the X-Total-Count header."""

    summaries: List[SummaryResponse]
    pagination: Pagination

    @classmethod
    def from_page(cls, page) -> "SummaryListResponse":
        return cls(
            summaries=[SummaryResponse.from_model(item) for item in page.items],
            pagination=Pagination(
                current_page=page.page,
                total_pages=page.total_pages,
                total_count=page.total_count,
                has_next=page.has_next,
                has_prev=page.has_prev,
            ),
        )


class MessageResponse(BaseModel):
    message: str


class ModelDescriptor(BaseModel):
    id: str
    display_name: str
    max_tokens: int


class ModelsResponse(BaseModel):
    """Catalogue plus per-provider configuration, as served by /ai/models."""

    models: Dict[str, List[ModelDescriptor]]
    configuration: Dict[str, dict]


class FileType(BaseModel):
    extension: str
    mime_type: str
    display_name: str
    max_size: int = Field(description="Maximum upload size in bytes")


class FileTypesResponse(BaseModel):
    supported_types: List[FileType]


# ══════════════════════════════════════════════════════════════════════════
# Error / Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for every SmartBriefError.

    Example:
        {
            "error": "insufficient_credits",
            "message": "Insufficient credits. Please recharge your account.",
            "details": {"user_id": "…", "required": 1, "balance": 0},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Service and dependency status for monitors and load balancers."""

    status: str = Field(description="Overall status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    providers: Dict[str, dict] = Field(description="Per-provider configuration and breaker state")
    uptime_seconds: float
