"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class CreateAccountRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class TransactionRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., description="Positive amount, rounded half-up to two decimal places")
    reference: str = Field(..., min_length=1, max_length=255, description="Unique transaction reference")
    description: Optional[str] = Field(None, max_length=255)


class TopUpRequest(TransactionRequest):
    pass


class ChargeRequest(TransactionRequest):
    pass
