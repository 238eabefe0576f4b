"""
SmartBrief Backend — Summary Route Handlers
=============================================

What:  /api/summaries endpoints: create (text or upload), regenerate, delete,
       list, fetch, plus the model and file-type descriptors.
How:   Thin handlers. Each one authenticates through `get_current_principal`,
       delegates to the RequestOrchestrator and shapes the response. All
       failures are SmartBriefErrors rendered by the global handlers.

Route order matters: the literal descriptor paths (/ai/models, /file/types)
are declared before /{summary_id} so they are never parsed as ids.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.database import get_db_session
from smartbrief.dependencies import get_current_principal, get_orchestrator
from smartbrief.schemas.summary import (
    CreateSummaryRequest,
    ErrorResponse,
    FileTypesResponse,
    MessageResponse,
    ModelsResponse,
    RegenerateSummaryRequest,
    SummaryListResponse,
    SummaryOperationResponse,
    SummaryResponse,
)
from smartbrief.services.auth_service import Principal
from smartbrief.services.orchestrator import RequestOrchestrator
from smartbrief.services.summary_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/summaries", tags=["Summaries"])

_COMMON_ERRORS = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}
_GENERATION_ERRORS = {
    **_COMMON_ERRORS,
    400: {"description": "Validation error or insufficient credits", "model": ErrorResponse},
    502: {"description": "AI provider failed", "model": ErrorResponse},
    503: {"description": "AI provider temporarily unavailable", "model": ErrorResponse},
}
_ITEM_ERRORS = {
    **_COMMON_ERRORS,
    403: {"description": "Not the owner and no privileged role", "model": ErrorResponse},
    404: {"description": "Summary not found", "model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=SummaryOperationResponse,
    responses=_GENERATION_ERRORS,
    summary="Summarize text",
    description="Summarizes the given text with the chosen (or default) provider and costs one credit.",
)
async def create_summary(
    body: CreateSummaryRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SummaryOperationResponse:
    outcome = await orchestrator.create_summary(
        db, principal, body.text, prompt=body.prompt, provider=body.provider, model=body.model
    )
    return SummaryOperationResponse.from_outcome("Summary created successfully", outcome)


@router.post(
    "/upload",
    status_code=201,
    response_model=SummaryOperationResponse,
    responses=_GENERATION_ERRORS,
    summary="Summarize an uploaded document",
    description="Accepts a .txt (≤5MB) or .docx (≤10MB) file in the `file` field. Costs one credit.",
)
async def upload_and_summarize(
    file: Optional[UploadFile] = File(default=None, description=".txt or .docx document"),
    prompt: Optional[str] = Form(default=None),
    provider: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SummaryOperationResponse:
    filename: Optional[str] = None
    content: Optional[bytes] = None
    size_hint: Optional[int] = None
    if file is not None:
        try:
            filename = file.filename
            size_hint = file.size
            if filename:
                # Extension and declared size are rejected before any bytes are read
                file_type = orchestrator.ingestor.validate(filename, size_hint or 0)
                # One byte past the ceiling is enough for the size check to fail
                content = await file.read(file_type.max_size + 1)
        finally:
            await file.close()

    outcome = await orchestrator.create_summary_from_upload(
        db,
        principal,
        filename,
        content,
        content_length=size_hint,
        prompt=prompt or None,
        provider=provider or None,
        model=model or None,
    )
    return SummaryOperationResponse.from_outcome(
        "File uploaded and summary created successfully", outcome
    )


@router.get(
    "",
    response_model=SummaryListResponse,
    responses=_COMMON_ERRORS,
    summary="List summaries",
    description=(
        "Newest first. Plain users see their own summaries; privileged roles see all. "
        "`search` matches original and summary text case-insensitively."
    ),
)
async def list_summaries(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=200),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SummaryListResponse:
    result = await orchestrator.list_summaries(db, principal, page=page, limit=limit, search=search)
    response.headers["X-Total-Count"] = str(result.total_count)
    return SummaryListResponse.from_page(result)


@router.get(
    "/ai/models",
    response_model=ModelsResponse,
    responses=_COMMON_ERRORS,
    summary="Available AI models",
)
async def get_ai_models(
    principal: Principal = Depends(get_current_principal),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> ModelsResponse:
    return ModelsResponse(
        models=orchestrator.gateway.get_available_models(),
        configuration=orchestrator.gateway.check_configuration(),
    )


@router.get(
    "/file/types",
    response_model=FileTypesResponse,
    responses=_COMMON_ERRORS,
    summary="Supported upload types",
)
async def get_file_types(
    principal: Principal = Depends(get_current_principal),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> FileTypesResponse:
    return FileTypesResponse(supported_types=orchestrator.ingestor.get_supported_types())


@router.get(
    "/{summary_id}",
    response_model=SummaryResponse,
    responses=_ITEM_ERRORS,
    summary="Fetch one summary",
)
async def get_summary(
    summary_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SummaryResponse:
    summary = await orchestrator.get_summary(db, principal, summary_id)
    return SummaryResponse.from_model(summary)


@router.put(
    "/{summary_id}",
    response_model=SummaryOperationResponse,
    responses={**_ITEM_ERRORS, **_GENERATION_ERRORS},
    summary="Regenerate a summary",
    description="Re-summarizes the stored original text. Costs the requester one credit.",
)
async def regenerate_summary(
    summary_id: UUID,
    body: RegenerateSummaryRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SummaryOperationResponse:
    outcome = await orchestrator.regenerate_summary(
        db, principal, summary_id, prompt=body.prompt, provider=body.provider, model=body.model
    )
    return SummaryOperationResponse.from_outcome("Summary regenerated successfully", outcome)


@router.delete(
    "/{summary_id}",
    response_model=MessageResponse,
    responses=_ITEM_ERRORS,
    summary="Delete a summary",
)
async def delete_summary(
    summary_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> MessageResponse:
    await orchestrator.delete_summary(db, principal, summary_id)
    return MessageResponse(message="Summary deleted successfully")
