# /asmr_studio/api/videos.py
import hmac
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.api.deps import get_current_user, get_video_processor, http_error
from asmr_studio.core.config import Settings, get_settings
from asmr_studio.core.database import get_db
from asmr_studio.core.errors import AppError, status_for_code, wrap_unexpected
from asmr_studio.models.credit_transaction import CreditTransaction, TransactionType
from asmr_studio.models.video import Video
from asmr_studio.schemas.videos import (
    CompletedVideo,
    GenerationCallback,
    VideoGenerationRequest,
    VideoGenerationResponse,
    VideoMetadata,
    VideoOut,
)
from asmr_studio.services.credits_manager import deduct_credits, get_task_usage, refund_credits
from asmr_studio.services.video_processor import VideoProcessor

logger = logging.getLogger("asmr-studio.videos")

router = APIRouter(prefix="/api/videos", tags=["videos"])


@router.post("/generate", response_model=VideoGenerationResponse)
async def generate_video(
        req: VideoGenerationRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    """Charge credits up front and hand out the task id the generator reports back with."""
    cost = settings.media.video_credit_cost
    task_id = str(uuid.uuid4())

    result = await deduct_credits(db, user["id"], cost, "Video generation", task_id)
    if not result.success:
        raise HTTPException(status_code=status_for_code(result.error_code), detail=result.error)

    logger.info("Queued generation task %s for user %s (prompt: %.60s)", task_id, user["id"], req.prompt)
    return VideoGenerationResponse(
        task_id=task_id,
        status="processing",
        credits_charged=cost,
        remaining_credits=result.remaining_credits,
    )


async def _already_refunded(db: AsyncSession, task_id: str) -> bool:
    row = (await db.execute(
        select(CreditTransaction.id).where(
            CreditTransaction.transaction_type == TransactionType.REFUND.value,
            CreditTransaction.task_id == task_id,
        ).limit(1)
    )).scalar_one_or_none()
    return row is not None


@router.post("/callback")
async def generation_callback(
        body: GenerationCallback,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
        processor: VideoProcessor = Depends(get_video_processor),
        x_callback_token: Optional[str] = Header(default=None),
):
    secret = settings.media.callback_secret
    if secret and not hmac.compare_digest(secret.encode(), (x_callback_token or "").encode()):
        raise HTTPException(status_code=401, detail="Invalid callback token")

    usage = await get_task_usage(db, body.task_id)
    user_id = usage.user_id if usage else None

    if body.status == "failed":
        if usage is None:
            logger.warning("Failed task %s has no usage record; nothing to refund", body.task_id)
            return {"task_id": body.task_id, "status": "failed", "refunded": 0}
        if await _already_refunded(db, body.task_id):
            return {"task_id": body.task_id, "status": "failed", "refunded": 0}

        amount = abs(usage.amount)
        result = await refund_credits(
            db, usage.user_id, amount, f"Refund for failed generation: {body.error or 'unknown error'}", body.task_id
        )
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error)
        return {"task_id": body.task_id, "status": "failed", "refunded": amount}

    if not body.video_url or not body.thumbnail_url:
        raise HTTPException(status_code=400, detail="video_url and thumbnail_url are required on success")

    metadata = VideoMetadata(
        task_id=body.task_id,
        user_id=user_id,
        original_prompt=body.prompt,
        triggers=body.triggers,
        duration=body.duration,
        quality=body.quality,
        aspect_ratio=body.aspect_ratio,
    )
    try:
        completed: CompletedVideo = await processor.complete_video_processing(
            db, body.video_url, body.thumbnail_url, metadata
        )
    except AppError as e:
        logger.error("Processing task %s failed: %s", body.task_id, e.message)
        raise http_error(e)
    except Exception as e:
        logger.exception("Unexpected error processing task %s", body.task_id)
        raise http_error(wrap_unexpected(e))

    return {"task_id": body.task_id, "status": "ready", **completed.dict()}


@router.get("", response_model=List[VideoOut])
async def list_videos(
        limit: int = 50,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Video)
        .where(Video.user_id == user["id"])
        .order_by(Video.created_at.desc())
        .limit(max(1, min(limit, 200)))
    )
    return [
        VideoOut(
            id=v.id,
            task_id=v.task_id,
            title=v.title,
            status=v.status,
            preview_url=v.preview_url,
            thumbnail_url=v.thumbnail_url,
            file_size=v.file_size,
            created_at=v.created_at,
        )
        for v in result.scalars().all()
    ]
