# /asmr_studio/models/user_profile.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, Boolean

from asmr_studio.core.database import Base


class UserProfile(Base):
    """Profile row created at signup by the hosted auth backend."""
    __tablename__ = "user_profiles"

    # Same id as the auth user
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(190), nullable=True, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # Plan: free, basic, pro
    plan_type: Mapped[str] = mapped_column(String(20), default="free")
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    language_preference: Mapped[str] = mapped_column(String(10), default="en")

    # Balance is mutated only through services.credits_manager
    credits: Mapped[int] = mapped_column(Integer, default=0)
    total_credits_spent: Mapped[int] = mapped_column(Integer, default=0)
    total_videos_created: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
