# /asmr_studio/api/credits.py
"""Credit balance and history endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.api.deps import get_current_user
from asmr_studio.core.config import Settings, get_settings
from asmr_studio.core.database import get_db
from asmr_studio.models.credit_transaction import CreditTransaction, TransactionType
from asmr_studio.models.user_profile import UserProfile
from asmr_studio.schemas.credits import (
    CreditBalance,
    CreditChangeResult,
    CreditHistory,
    CreditMetadata,
    CreditTransactionOut,
)
from asmr_studio.services.credits_manager import add_credits

logger = logging.getLogger("asmr-studio.credits")

router = APIRouter(prefix="/api/credits", tags=["credits"])

DEMO_CREDITS = 100
MAX_HISTORY = 200


@router.get("/balance", response_model=CreditBalance)
async def get_credit_balance(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = (await db.execute(select(UserProfile).where(UserProfile.id == user["id"]))).scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="User profile not found")
    return CreditBalance(
        credits=profile.credits or 0,
        total_credits_spent=profile.total_credits_spent or 0,
        total_videos_created=profile.total_videos_created or 0,
    )


@router.get("/history", response_model=CreditHistory)
async def get_credit_history(
        limit: int = 50,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    limit = max(1, min(limit, MAX_HISTORY))
    result = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user["id"])
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
    )
    return CreditHistory(transactions=[
        CreditTransactionOut(
            id=t.id,
            transaction_type=t.transaction_type,
            amount=t.amount,
            description=t.description,
            task_id=t.task_id,
            video_id=t.video_id,
            created_at=t.created_at,
        )
        for t in result.scalars().all()
    ])


@router.post("/add-demo-credits", response_model=CreditChangeResult)
async def add_demo_credits(
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    """Top up a test account. Disabled outside TEST_MODE."""
    if not settings.test_mode:
        raise HTTPException(status_code=403, detail="Demo credits are only available in test mode")

    result = await add_credits(
        db,
        user["id"],
        DEMO_CREDITS,
        "Demo credits",
        TransactionType.BONUS,
        CreditMetadata(free_credits_type="demo"),
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    logger.info("Granted %s demo credits to user %s", DEMO_CREDITS, user["id"])
    return result
