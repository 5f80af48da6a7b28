# FILE: asmr_studio/api/deps.py

import jwt

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.core.config import JWT_SECRET, JWT_ALGORITHM, Settings, get_settings
from asmr_studio.core.database import get_db
from asmr_studio.core.errors import AppError
from asmr_studio.models.user_profile import UserProfile
from asmr_studio.services.payment_client import CreemPaymentClient
from asmr_studio.services.storage_service import R2Storage
from asmr_studio.services.video_processor import VideoProcessor

security = HTTPBearer(auto_error=False)


def http_error(exc: AppError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db),
):
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials.strip(),
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            # hosted auth issues aud="authenticated"; only the signature matters here
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub") or payload.get("user_id")
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    profile = (await db.execute(select(UserProfile).where(UserProfile.id == user_id))).scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")

    return {
        "id": profile.id,
        "email": profile.email,
        "name": profile.full_name,
        "plan_type": profile.plan_type,
    }


def get_payment_client(settings: Settings = Depends(get_settings)) -> CreemPaymentClient:
    try:
        return CreemPaymentClient(settings.payment)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=f"Payments not configured: {e}")


def get_storage(settings: Settings = Depends(get_settings)) -> R2Storage:
    return R2Storage(settings.storage)


def get_video_processor(
        settings: Settings = Depends(get_settings),
        storage: R2Storage = Depends(get_storage),
) -> VideoProcessor:
    return VideoProcessor(storage, settings.media)
