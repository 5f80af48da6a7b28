# =========================================================
# FILE: /asmr_studio/schemas/credits.py
# =========================================================

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CreditResult(BaseModel):
    """Ledger outcome. Failures are reported here, never raised."""
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


class DeductResult(CreditResult):
    remaining_credits: Optional[int] = None


class CreditChangeResult(CreditResult):
    new_credits: Optional[int] = None


class BalanceResult(BaseModel):
    credits: int = 0
    error: Optional[str] = None


class CreditMetadata(BaseModel):
    check_in_id: Optional[str] = None
    referral_id: Optional[str] = None
    free_credits_type: Optional[str] = None


class CreditBalance(BaseModel):
    credits: int
    total_credits_spent: int
    total_videos_created: int


class CreditTransactionOut(BaseModel):
    id: str
    transaction_type: str
    amount: int
    description: Optional[str]
    task_id: Optional[str]
    video_id: Optional[str]
    created_at: datetime


class CreditHistory(BaseModel):
    transactions: List[CreditTransactionOut] = Field(default_factory=list)
