# /asmr_studio/models/order.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, ForeignKey, DateTime, JSON

from asmr_studio.core.database import Base


class Order(Base):
    """Purchase order backed by a hosted Creem checkout."""
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user_profiles.id", ondelete="CASCADE"), index=True)

    product_id: Mapped[str] = mapped_column(String(100))
    product_name: Mapped[str] = mapped_column(String(120))

    # Price in cents
    price: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    credits: Mapped[int] = mapped_column(Integer, default=0)

    # Type: one_time, subscription
    type: Mapped[str] = mapped_column(String(20), default="one_time")

    # Status: pending, processing, completed, cancelled, refunded
    status: Mapped[str] = mapped_column(String(20), default="pending")

    # Gateway side
    checkout_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    payment_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_provider: Mapped[str] = mapped_column(String(40), default="creem")

    # Product snapshot at purchase time
    product_snapshot: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
