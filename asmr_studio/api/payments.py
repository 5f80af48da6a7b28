# /asmr_studio/api/payments.py
"""Creem checkout, order fulfilment and webhook endpoints."""

import hashlib
import hmac
import json
import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.api.deps import get_current_user, get_payment_client, http_error
from asmr_studio.core.config import PaymentConfig, Settings, get_settings
from asmr_studio.core.database import get_db
from asmr_studio.core.errors import GatewayError
from asmr_studio.models.order import Order
from asmr_studio.models.credit_transaction import TransactionType
from asmr_studio.models.user_profile import UserProfile
from asmr_studio.schemas.payments import (
    CheckoutRequest,
    CheckoutResponse,
    CheckoutStatusResponse,
    Product,
    WebhookBody,
)
from asmr_studio.services.credits_manager import add_credits
from asmr_studio.services.payment_client import CreemPaymentClient

LOG_DIR = os.getenv("LOG_DIR", "logs")
os.makedirs(LOG_DIR, exist_ok=True)
payment_logger = logging.getLogger("asmr-studio.payments.audit")
if not payment_logger.handlers:
    handler = logging.FileHandler(os.path.join(LOG_DIR, "payments.log"))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    payment_logger.setLevel(logging.INFO)
    payment_logger.addHandler(handler)

logger = logging.getLogger("asmr-studio.payments")

router = APIRouter(prefix="/api/payments", tags=["payments"])

SIGNATURE_HEADER = "creem-signature"


# ─────────────────────────────────────────────
# PRODUCT CATALOG
# ─────────────────────────────────────────────

def build_product_catalog(config: PaymentConfig) -> List[Product]:
    """Plans sold through Creem. Product ids differ per payment environment."""
    return [
        Product(
            product_id=config.trial_product_id,
            plan_type="trial",
            product_name="Trial Pack",
            price=790,
            credits=100,
            type="one_time",
        ),
        Product(
            product_id=config.basic_product_id,
            plan_type="basic",
            product_name="Basic Plan",
            price=1990,
            credits=300,
            type="subscription",
            billing_period="monthly",
            popular=True,
        ),
        Product(
            product_id=config.pro_product_id,
            plan_type="pro",
            product_name="Pro Plan",
            price=4990,
            credits=1000,
            type="subscription",
            billing_period="monthly",
        ),
    ]


def find_product(config: PaymentConfig, plan_type: str) -> Optional[Product]:
    for product in build_product_catalog(config):
        if product.plan_type == plan_type:
            return product
    return None


# ─────────────────────────────────────────────
# FULFILMENT
# ─────────────────────────────────────────────

async def fulfil_order(db: AsyncSession, order: Order) -> int:
    """Credit a paid order once. Returns the credits added (0 if already handled)."""
    if order.status != "pending":
        payment_logger.info("Order %s already %s, skipping fulfilment", order.id, order.status)
        return 0

    result = await add_credits(
        db,
        order.user_id,
        order.credits,
        f"Purchase: {order.product_name} - Order: {order.id}",
        TransactionType.PURCHASE,
    )
    if not result.success:
        payment_logger.error("Crediting order %s failed: %s", order.id, result.error)
        raise HTTPException(status_code=500, detail=result.error or "Failed to add credits")

    # a failed ledger insert rolls the session back and expires loaded rows
    await db.refresh(order)
    order.status = "completed"
    order.completed_at = datetime.utcnow()

    plan_type = (order.product_snapshot or {}).get("plan_type")
    if order.type == "subscription" and plan_type:
        profile = await db.get(UserProfile, order.user_id)
        if profile:
            profile.plan_type = plan_type
    await db.commit()

    payment_logger.info(
        "Order %s completed: +%s credits for user %s (balance %s)",
        order.id, order.credits, order.user_id, result.new_credits,
    )
    return order.credits


async def _order_for_event(db: AsyncSession, obj: dict) -> Optional[Order]:
    checkout_id = obj.get("id") or obj.get("checkout_id")
    if checkout_id:
        order = (await db.execute(select(Order).where(Order.checkout_id == checkout_id))).scalar_one_or_none()
        if order:
            return order

    # request_id is our order id
    order_id = obj.get("request_id") or (obj.get("metadata") or {}).get("order_id")
    if order_id:
        return await db.get(Order, order_id)
    return None


def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip())


# ─────────────────────────────────────────────
# ENDPOINTS
# ─────────────────────────────────────────────

@router.get("/products", response_model=List[Product])
async def list_products(settings: Settings = Depends(get_settings)):
    return build_product_catalog(settings.payment)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
        req: CheckoutRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
        client: CreemPaymentClient = Depends(get_payment_client),
):
    product = find_product(settings.payment, req.plan_type)
    if not product or not product.product_id:
        raise HTTPException(status_code=400, detail=f"Product not configured for plan '{req.plan_type}'")

    order = Order(
        user_id=user["id"],
        product_id=product.product_id,
        product_name=product.product_name,
        price=product.price,
        currency=product.currency,
        credits=product.credits,
        type=product.type,
        status="pending",
        product_snapshot=product.dict(),
        created_at=datetime.utcnow(),
    )
    db.add(order)
    await db.commit()

    try:
        checkout = await client.create_checkout_with_options(
            product.product_id,
            request_id=order.id,
            success_url=f"{settings.frontend_url}/payment/success",
            user_email=user.get("email"),
            metadata={"user_id": user["id"], "order_id": order.id, "plan_type": product.plan_type},
            discount_code=req.discount_code,
            locale=req.locale,
            plan_type=product.plan_type,
        )
    except GatewayError as e:
        order.status = "cancelled"
        await db.commit()
        payment_logger.error("Checkout for order %s failed: %s", order.id, e.message)
        raise http_error(e)

    order.checkout_id = checkout.checkout_id
    order.payment_url = checkout.payment_url
    await db.commit()

    payment_logger.info(
        "Checkout %s created for order %s (user %s, plan %s)",
        checkout.checkout_id, order.id, user["id"], product.plan_type,
    )
    return CheckoutResponse(
        order_id=order.id,
        checkout_id=checkout.checkout_id,
        payment_url=checkout.payment_url,
        status=checkout.status,
    )


@router.get("/checkout/{checkout_id}", response_model=CheckoutStatusResponse)
async def get_checkout(
        checkout_id: str,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        client: CreemPaymentClient = Depends(get_payment_client),
):
    order = (await db.execute(
        select(Order).where(Order.checkout_id == checkout_id, Order.user_id == user["id"])
    )).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    try:
        data = await client.get_checkout_status(checkout_id)
    except GatewayError as e:
        raise http_error(e)

    status = str(data.get("status") or "unknown") if isinstance(data, dict) else "unknown"
    credits_added = 0
    if status == "completed":
        credits_added = await fulfil_order(db, order)

    return CheckoutStatusResponse(
        checkout_id=checkout_id,
        status=status,
        order_status=order.status,
        credits_added=credits_added,
    )


@router.post("/webhook")
async def creem_webhook(
        request: Request,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    payload = await request.body()
    secret = settings.payment.webhook_secret
    if secret and not verify_signature(payload, request.headers.get(SIGNATURE_HEADER), secret):
        payment_logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = WebhookBody(**json.loads(payload))
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e}")

    payment_logger.info("Webhook received: %s", event.eventType)

    if event.eventType == "checkout.completed":
        order = await _order_for_event(db, event.object)
        if not order:
            payment_logger.warning("checkout.completed for unknown order: %s", event.object.get("id"))
            return {"received": True, "handled": False}
        await fulfil_order(db, order)

    elif event.eventType == "refund.created":
        checkout = event.object.get("checkout") or event.object
        if isinstance(checkout, str):
            checkout = {"id": checkout}
        order = await _order_for_event(db, checkout)
        if order:
            order.status = "refunded"
            await db.commit()
            payment_logger.info("Order %s marked refunded", order.id)

    elif event.eventType == "subscription.canceled" or event.eventType == "subscription.cancelled":
        payment_logger.info("Subscription cancelled: %s", event.object.get("id"))

    else:
        logger.info("Ignoring webhook event %s", event.eventType)

    return {"received": True}
