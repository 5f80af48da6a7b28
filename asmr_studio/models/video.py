# /asmr_studio/models/video.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, BigInteger, Text, DateTime, JSON

from asmr_studio.core.database import Base


class Video(Base):
    """Catalog row, one per completed generation task."""
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    # External generation job id
    task_id: Mapped[str] = mapped_column(String(64), index=True)

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    triggers: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    category: Mapped[str] = mapped_column(String(40), default="Object")

    # Status: processing, ready, failed
    status: Mapped[str] = mapped_column(String(20), default="ready")
    credit_cost: Mapped[int] = mapped_column(Integer, default=20)

    duration: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    aspect_ratio: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    preview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    download_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    provider: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    generation_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
