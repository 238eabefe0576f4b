"""
SmartBrief Backend — User Credit Route Handlers
=================================================

What:  The credit endpoints under /api/users. Account CRUD lives elsewhere.
Who may call:
    GET   /{id}/credits        the account itself or an admin
    POST  /{id}/deduct-credit  the account itself or an admin
    PATCH /{id}/credit         admin only
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.database import get_db_session
from smartbrief.dependencies import get_current_principal, get_orchestrator
from smartbrief.schemas.summary import ErrorResponse
from smartbrief.schemas.user import (
    CreditBalanceResponse,
    DeductCreditResponse,
    SetCreditsRequest,
    SetCreditsResponse,
    UserResponse,
)
from smartbrief.services.auth_service import Principal
from smartbrief.services.orchestrator import RequestOrchestrator

router = APIRouter(prefix="/api/users", tags=["Credits"])

_ERRORS = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    403: {"description": "Not allowed to manage these credits", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
}


@router.get("/{user_id}/credits", response_model=CreditBalanceResponse, responses=_ERRORS)
async def get_credits(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> CreditBalanceResponse:
    balance = await orchestrator.get_user_credits(db, principal, user_id)
    return CreditBalanceResponse(user_id=user_id, credits=balance)


@router.post(
    "/{user_id}/deduct-credit",
    response_model=DeductCreditResponse,
    responses={**_ERRORS, 400: {"description": "Insufficient credits", "model": ErrorResponse}},
)
async def deduct_credit(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> DeductCreditResponse:
    result = await orchestrator.deduct_user_credit(db, principal, user_id)
    return DeductCreditResponse(
        message="Credit deducted successfully", remaining_credits=result.balance
    )


@router.patch("/{user_id}/credit", response_model=SetCreditsResponse, responses=_ERRORS)
async def set_credits(
    user_id: UUID,
    body: SetCreditsRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> SetCreditsResponse:
    user = await orchestrator.set_user_credits(db, principal, user_id, body.credits)
    return SetCreditsResponse(
        message="User credits updated successfully", user=UserResponse.model_validate(user)
    )
