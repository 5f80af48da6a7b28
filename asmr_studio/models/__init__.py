from asmr_studio.models.user_profile import UserProfile
from asmr_studio.models.credit_transaction import CreditTransaction, TransactionType
from asmr_studio.models.video import Video
from asmr_studio.models.order import Order

__all__ = [
    "UserProfile", "CreditTransaction", "TransactionType",
    "Video", "Order",
]
