"""
SmartBrief Backend — User Credit Schemas
==========================================

Request/response models for the credit endpoints under /api/users.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class SetCreditsRequest(BaseModel):
    credits: int = Field(ge=0, description="New absolute balance")


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    credits: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SetCreditsResponse(BaseModel):
    message: str
    user: UserResponse


class DeductCreditResponse(BaseModel):
    message: str
    remaining_credits: int


class CreditBalanceResponse(BaseModel):
    user_id: uuid.UUID
    credits: int
