# /asmr_studio/models/credit_transaction.py
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, ForeignKey, DateTime

from asmr_studio.core.database import Base


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    BONUS = "bonus"


class CreditTransaction(Base):
    """Append-only audit trail of credit balance changes."""
    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user_profiles.id", ondelete="CASCADE"), index=True)

    # Kind: purchase, usage, refund, bonus
    transaction_type: Mapped[str] = mapped_column(String(20))

    # Negative for usage, positive otherwise (by convention, not enforced)
    amount: Mapped[int] = mapped_column(Integer)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Correlation ids
    task_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    video_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    check_in_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    referral_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    free_credits_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
