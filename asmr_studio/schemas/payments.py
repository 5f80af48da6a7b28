# =========================================================
# FILE: /asmr_studio/schemas/payments.py
# =========================================================

from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field, validator


class CheckoutCustomer(BaseModel):
    email: str


class CreateCheckoutRequest(BaseModel):
    product_id: str
    request_id: Optional[str] = None
    success_url: Optional[str] = None
    customer: Optional[CheckoutCustomer] = None
    metadata: Optional[Dict[str, Any]] = None
    discount_code: Optional[str] = None
    units: Optional[int] = None
    locale: Optional[str] = None
    plan_type: Optional[str] = None


class CreateCheckoutResponse(BaseModel):
    checkout_id: str
    payment_url: str
    status: str = "pending"


class Product(BaseModel):
    product_id: str
    plan_type: str  # trial | basic | pro
    product_name: str
    price: int  # cents
    currency: str = "USD"
    credits: int
    type: Literal["one_time", "subscription"]
    billing_period: Optional[Literal["monthly", "yearly"]] = None
    popular: bool = False


class CheckoutRequest(BaseModel):
    plan_type: str
    locale: Optional[str] = None
    discount_code: Optional[str] = None

    @validator("plan_type")
    def validate_plan_type(cls, v: str):
        v = (v or "").lower().strip()
        allowed = {"trial", "basic", "pro"}
        if v not in allowed:
            raise ValueError(f"plan_type must be one of {sorted(allowed)}")
        return v


class CheckoutResponse(BaseModel):
    order_id: str
    checkout_id: str
    payment_url: str
    status: str


class CheckoutStatusResponse(BaseModel):
    checkout_id: str
    status: str
    order_status: Optional[str] = None
    credits_added: int = 0


class WebhookBody(BaseModel):
    eventType: str
    object: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[int] = None
