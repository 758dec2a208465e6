"""
Pydantic schemas for API requests and responses
"""

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


# Account schemas
class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class CreateUserRequest(BaseModel):
    username: Optional[str] = None
    balance: Any = 0


class BalanceAdjustmentRequest(BaseModel):
    username: str
    balance: Any = Field(..., description="Delta to add; negative to debit")


# Trade schemas
class TradeRequest(BaseModel):
    username: Optional[str] = None
    symbol: Optional[str] = None
    side: Optional[str] = None
    amount: Any = None
    percent: Any = None


class WinSideRequest(BaseModel):
    side: Optional[str] = Field(None, description="long or short")


# Funding schemas
class DepositSubmission(BaseModel):
    currency: Optional[str] = None
    network: Optional[str] = None
    amount: Any = None
    address: Optional[str] = None
    proof_image: Optional[str] = Field(None, description="Reference to an uploaded voucher")


class WithdrawalSubmission(BaseModel):
    currency: Optional[str] = None
    network: Optional[str] = None
    amount: Any = None
    address: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


# Verification schemas
class PrimaryVerificationRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    document_type: Optional[str] = None
    document_number: Optional[str] = None


class AdvancedVerificationRequest(BaseModel):
    document_type: Optional[str] = None
    document_number: Optional[str] = None
    front: Optional[str] = Field(None, description="Front image reference")
    back: Optional[str] = Field(None, description="Back image reference")
    selfie: Optional[str] = Field(None, description="Selfie image reference")


def to_json(record) -> Dict[str, Any]:
    """Flatten a stored record into JSON-friendly values"""
    data = {}
    for key, value in asdict(record).items():
        if isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        data[key] = value
    return data
