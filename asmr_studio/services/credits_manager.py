# FILE: asmr_studio/services/credits_manager.py
"""
Credit ledger.

Every operation is read -> validate -> write balance -> append ledger row.
The balance write is the source of truth; the ledger row is a best-effort
audit entry whose failure is logged and never undoes the balance change.
No locking or row versioning: concurrent calls for one user race.

Operational failures never raise: they come back as results with
``success=False``. Only a caller error (a transaction type ``add_credits``
does not record) raises ``ValueError``.
"""

import logging
from datetime import datetime
from typing import Optional, Type, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.core.errors import (
    AppError,
    InsufficientCredits,
    PersistenceError,
    ProfileNotFound,
    wrap_unexpected,
)
from asmr_studio.models.credit_transaction import CreditTransaction, TransactionType
from asmr_studio.models.user_profile import UserProfile
from asmr_studio.schemas.credits import (
    BalanceResult,
    CreditChangeResult,
    CreditMetadata,
    CreditResult,
    DeductResult,
)

logger = logging.getLogger("asmr-studio.credits")

R = TypeVar("R", bound=CreditResult)


def task_marker(task_id: str) -> str:
    return f"Task: {task_id}"


def describe(description: str, task_id: Optional[str] = None) -> str:
    return f"{description} - {task_marker(task_id)}" if task_id else description


def _failure(result_cls: Type[R], exc: BaseException, operation: str) -> R:
    err = wrap_unexpected(exc)
    if isinstance(exc, AppError):
        logger.warning("%s failed: %s", operation, err.message)
    else:
        logger.exception("Error in %s", operation)
    return result_cls(success=False, error=err.message, error_code=err.code)


async def _load_profile(db: AsyncSession, user_id: str) -> UserProfile:
    try:
        profile = (
            await db.execute(select(UserProfile).where(UserProfile.id == user_id))
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error fetching user profile %s: %s", user_id, exc)
        raise PersistenceError("Failed to fetch user profile") from exc
    if profile is None:
        raise ProfileNotFound("User profile not found")
    return profile


async def _commit(db: AsyncSession, message: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("%s: %s", message, exc)
        raise PersistenceError(message) from exc


async def _log_transaction(db: AsyncSession, entry: CreditTransaction) -> Optional[CreditTransaction]:
    db.add(entry)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        # balance is already committed; the audit row is best-effort
        await db.rollback()
        logger.error("Error logging credit transaction for user %s: %s", entry.user_id, exc)
        return None
    return entry


async def deduct_credits(
    db: AsyncSession,
    user_id: str,
    amount: int,
    description: str,
    task_id: Optional[str] = None,
) -> DeductResult:
    """Spend credits before a generation job is queued."""
    try:
        profile = await _load_profile(db, user_id)
        if profile.credits < amount:
            raise InsufficientCredits("Insufficient credits")

        new_credits = profile.credits - amount
        profile.credits = new_credits
        profile.total_credits_spent = (profile.total_credits_spent or 0) + amount
        profile.total_videos_created = (profile.total_videos_created or 0) + 1
        profile.updated_at = datetime.utcnow()
        await _commit(db, "Failed to update credits")
    except Exception as exc:
        return _failure(DeductResult, exc, "deduct_credits")

    await _log_transaction(db, CreditTransaction(
        user_id=user_id,
        transaction_type=TransactionType.USAGE.value,
        amount=-amount,
        description=describe(description, task_id),
        task_id=task_id,
        created_at=datetime.utcnow(),
    ))

    logger.info("Deducted %s credits from user %s. Remaining: %s", amount, user_id, new_credits)
    return DeductResult(success=True, remaining_credits=new_credits)


async def refund_credits(
    db: AsyncSession,
    user_id: str,
    amount: int,
    description: str,
    task_id: Optional[str] = None,
    video_id: Optional[str] = None,
) -> CreditChangeResult:
    """Give credits back, e.g. for a failed generation."""
    try:
        profile = await _load_profile(db, user_id)
        new_credits = profile.credits + amount
        profile.credits = new_credits
        profile.total_credits_spent = max(0, (profile.total_credits_spent or 0) - amount)
        profile.updated_at = datetime.utcnow()
        await _commit(db, "Failed to refund credits")
    except Exception as exc:
        return _failure(CreditChangeResult, exc, "refund_credits")

    await _log_transaction(db, CreditTransaction(
        user_id=user_id,
        transaction_type=TransactionType.REFUND.value,
        amount=amount,
        description=describe(description, task_id),
        task_id=task_id,
        video_id=video_id or None,
        created_at=datetime.utcnow(),
    ))

    logger.info("Refunded %s credits to user %s. New balance: %s", amount, user_id, new_credits)
    return CreditChangeResult(success=True, new_credits=new_credits)


async def add_credits(
    db: AsyncSession,
    user_id: str,
    amount: int,
    description: str,
    transaction_type: TransactionType = TransactionType.BONUS,
    metadata: Optional[CreditMetadata] = None,
) -> CreditChangeResult:
    """Bonuses, check-in and referral rewards, and purchases."""
    transaction_type = TransactionType(transaction_type)
    if transaction_type not in (TransactionType.BONUS, TransactionType.PURCHASE):
        raise ValueError("add_credits only records bonus or purchase transactions")

    try:
        profile = await _load_profile(db, user_id)
        new_credits = profile.credits + amount
        profile.credits = new_credits
        profile.updated_at = datetime.utcnow()
        await _commit(db, "Failed to add credits")
    except Exception as exc:
        return _failure(CreditChangeResult, exc, "add_credits")

    entry = CreditTransaction(
        user_id=user_id,
        transaction_type=transaction_type.value,
        amount=amount,
        description=description,
        created_at=datetime.utcnow(),
    )
    if metadata is not None:
        if metadata.check_in_id:
            entry.check_in_id = metadata.check_in_id
        if metadata.referral_id:
            entry.referral_id = metadata.referral_id
        if metadata.free_credits_type:
            entry.free_credits_type = metadata.free_credits_type
    await _log_transaction(db, entry)

    logger.info("Added %s credits to user %s. New balance: %s", amount, user_id, new_credits)
    return CreditChangeResult(success=True, new_credits=new_credits)


async def get_user_credits(db: AsyncSession, user_id: str) -> BalanceResult:
    try:
        profile = await _load_profile(db, user_id)
    except Exception as exc:
        err = wrap_unexpected(exc)
        logger.error("Error fetching user credits for %s: %s", user_id, err.message)
        return BalanceResult(credits=0, error="Failed to fetch credits")
    return BalanceResult(credits=profile.credits or 0)


def _usage_for_task(task_id: str):
    # task_id column first; description marker for rows written before it existed
    return or_(
        CreditTransaction.task_id == task_id,
        CreditTransaction.description.contains(task_marker(task_id), autoescape=True),
    )


async def get_task_usage(db: AsyncSession, task_id: str) -> Optional[CreditTransaction]:
    """Most recent usage row charged for a generation task."""
    result = await db.execute(
        select(CreditTransaction)
        .where(
            CreditTransaction.transaction_type == TransactionType.USAGE.value,
            _usage_for_task(task_id),
        )
        .order_by(CreditTransaction.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def record_video_completion(
    db: AsyncSession,
    user_id: str,
    task_id: str,
    video_id: str,
) -> CreditResult:
    """Attach the produced video to the usage row of its task.

    No matching row is not an error: the call succeeds without changes.
    """
    try:
        entry = (
            await db.execute(
                select(CreditTransaction)
                .where(
                    CreditTransaction.user_id == user_id,
                    CreditTransaction.transaction_type == TransactionType.USAGE.value,
                    CreditTransaction.video_id.is_(None),
                    _usage_for_task(task_id),
                )
                .order_by(CreditTransaction.created_at.desc())
                .limit(1)
            )
        ).scalar_one_or_none()

        if entry is None:
            logger.info("No untagged usage transaction for task %s; nothing to update", task_id)
            return CreditResult(success=True)

        entry.video_id = video_id
        entry.description = f"Video generation completed - Task: {task_id}, Video: {video_id}"
        await _commit(db, "Failed to update transaction record")
    except Exception as exc:
        return _failure(CreditResult, exc, "record_video_completion")

    logger.info("Updated credit transaction for task %s with video_id %s", task_id, video_id)
    return CreditResult(success=True)
