import pytest
from sqlalchemy import select

from asmr_studio.core.database import engine
from asmr_studio.models import CreditTransaction, TransactionType, UserProfile
from asmr_studio.schemas.credits import CreditMetadata
from asmr_studio.services import credits_manager as cm


async def _rows(db, user_id):
    result = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at)
    )
    return result.scalars().all()


async def _profile(db, user_id):
    stmt = select(UserProfile).where(UserProfile.id == user_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one()


async def test_deduct_updates_balance_and_logs_usage(db, user):
    result = await cm.deduct_credits(db, user.id, 30, "Video generation", "task-1")

    assert result.success is True
    assert result.remaining_credits == 70

    profile = await _profile(db, user.id)
    assert profile.credits == 70
    assert profile.total_credits_spent == 30
    assert profile.total_videos_created == 1

    rows = await _rows(db, user.id)
    assert len(rows) == 1
    assert rows[0].transaction_type == "usage"
    assert rows[0].amount == -30
    assert rows[0].task_id == "task-1"
    assert rows[0].description == "Video generation - Task: task-1"


async def test_deduct_insufficient_credits_changes_nothing(db, user):
    result = await cm.deduct_credits(db, user.id, 150, "Video generation", "task-2")

    assert result.success is False
    assert result.error == "Insufficient credits"
    assert result.error_code == "insufficient_credits"

    profile = await _profile(db, user.id)
    assert profile.credits == 100
    assert await _rows(db, user.id) == []


async def test_deduct_exact_balance_is_allowed(db, user):
    result = await cm.deduct_credits(db, user.id, 100, "Video generation")
    assert result.success is True
    assert result.remaining_credits == 0


async def test_deduct_unknown_user(db):
    result = await cm.deduct_credits(db, "missing-user", 10, "Video generation")
    assert result.success is False
    assert result.error == "User profile not found"


async def test_refund_restores_balance_and_spent_counter(db, user):
    await cm.deduct_credits(db, user.id, 20, "Video generation", "task-3")
    result = await cm.refund_credits(db, user.id, 20, "Refund for failed generation", "task-3")

    assert result.success is True
    assert result.new_credits == 100

    profile = await _profile(db, user.id)
    assert profile.credits == 100
    assert profile.total_credits_spent == 0

    rows = await _rows(db, user.id)
    assert [r.transaction_type for r in rows] == ["usage", "refund"]
    assert rows[1].amount == 20
    assert rows[1].description == "Refund for failed generation - Task: task-3"


async def test_refund_never_drives_spent_negative(db, user):
    result = await cm.refund_credits(db, user.id, 15, "Goodwill")
    assert result.success is True

    profile = await _profile(db, user.id)
    assert profile.credits == 115
    assert profile.total_credits_spent == 0


async def test_add_credits_with_metadata(db, user):
    result = await cm.add_credits(
        db, user.id, 5, "Daily check-in", TransactionType.BONUS,
        CreditMetadata(check_in_id="chk-1", free_credits_type="daily_checkin"),
    )

    assert result.success is True
    assert result.new_credits == 105

    (row,) = await _rows(db, user.id)
    assert row.transaction_type == "bonus"
    assert row.check_in_id == "chk-1"
    assert row.free_credits_type == "daily_checkin"
    assert row.referral_id is None


async def test_add_credits_rejects_usage_type(db, user):
    with pytest.raises(ValueError):
        await cm.add_credits(db, user.id, 5, "nope", TransactionType.USAGE)


async def test_add_credits_survives_ledger_failure(db, user):
    user_id = user.id
    async with engine.begin() as conn:
        await conn.run_sync(CreditTransaction.__table__.drop)

    result = await cm.add_credits(db, user_id, 50, "Purchase", TransactionType.PURCHASE)

    assert result.success is True
    assert result.new_credits == 150
    balance = await cm.get_user_credits(db, user_id)
    assert balance.credits == 150


async def test_get_user_credits(db, user):
    balance = await cm.get_user_credits(db, user.id)
    assert balance.credits == 100
    assert balance.error is None


async def test_get_user_credits_unknown_user(db):
    balance = await cm.get_user_credits(db, "nobody")
    assert balance.credits == 0
    assert balance.error == "Failed to fetch credits"


async def test_record_video_completion_tags_usage_row(db, user):
    await cm.deduct_credits(db, user.id, 20, "Video generation", "task-4")

    result = await cm.record_video_completion(db, user.id, "task-4", "video-1")
    assert result.success is True

    (row,) = await _rows(db, user.id)
    assert row.video_id == "video-1"
    assert row.description == "Video generation completed - Task: task-4, Video: video-1"


async def test_record_video_completion_matches_legacy_description(db, user):
    db.add(CreditTransaction(
        user_id=user.id,
        transaction_type="usage",
        amount=-20,
        description="Video generation - Task: legacy-task",
    ))
    await db.commit()

    result = await cm.record_video_completion(db, user.id, "legacy-task", "video-2")
    assert result.success is True

    (row,) = await _rows(db, user.id)
    assert row.video_id == "video-2"


async def test_record_video_completion_without_match_is_noop(db, user):
    await cm.deduct_credits(db, user.id, 20, "Video generation", "task-5")

    result = await cm.record_video_completion(db, user.id, "other-task", "video-3")
    assert result.success is True

    (row,) = await _rows(db, user.id)
    assert row.video_id is None


async def test_get_task_usage(db, user):
    await cm.deduct_credits(db, user.id, 20, "Video generation", "task-6")

    usage = await cm.get_task_usage(db, "task-6")
    assert usage is not None
    assert usage.amount == -20
    assert await cm.get_task_usage(db, "unknown") is None


async def test_deduct_survives_ledger_failure(db, user):
    user_id = user.id
    async with engine.begin() as conn:
        await conn.run_sync(CreditTransaction.__table__.drop)

    result = await cm.deduct_credits(db, user_id, 30, "Video generation", "task-7")

    assert result.success is True
    assert result.remaining_credits == 70
    profile = await _profile(db, user_id)
    assert profile.credits == 70
    assert profile.total_credits_spent == 30
