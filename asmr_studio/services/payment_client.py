# FILE: asmr_studio/services/payment_client.py
"""Creem checkout API client (httpx)."""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from asmr_studio.core.config import PaymentConfig
from asmr_studio.core.errors import GatewayError
from asmr_studio.schemas.payments import (
    CheckoutCustomer,
    CreateCheckoutRequest,
    CreateCheckoutResponse,
)

logger = logging.getLogger("asmr-studio.payments")

DEFAULT_TIMEOUT_SECONDS = 30
PAYMENT_URL_FIELDS = ("payment_url", "url", "checkout_url")


def build_checkout_payload(request: CreateCheckoutRequest) -> Dict[str, Any]:
    """Only product_id is mandatory; every other field is sent when present."""
    if not request.product_id:
        raise ValueError("product_id is required")

    payload: Dict[str, Any] = {"product_id": request.product_id}

    if request.request_id:
        payload["request_id"] = request.request_id
    if request.success_url:
        payload["success_url"] = request.success_url
    if request.customer and request.customer.email:
        payload["customer"] = {"email": request.customer.email}
    if request.metadata:
        payload["metadata"] = request.metadata
    if request.discount_code:
        payload["discount_code"] = request.discount_code
    if request.units:
        payload["units"] = request.units
    if request.locale:
        payload["locale"] = request.locale
    if request.plan_type:
        payload["plan_type"] = request.plan_type

    return payload


def _error_message(response: httpx.Response) -> str:
    text = response.text
    try:
        data = json.loads(text)
    except ValueError:
        return text or "Unknown error"
    if isinstance(data, dict):
        return data.get("message") or data.get("error") or "Unknown error"
    return text or "Unknown error"


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = _error_message(response)
    logger.error("Creem API error response %s: %s", response.status_code, message)
    raise GatewayError(response.status_code, message)


class CreemPaymentClient:
    def __init__(
        self,
        config: PaymentConfig,
        api_key: Optional[str] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.api_key = api_key or config.api_key
        if not self.api_key:
            raise ValueError("Creem API key is required")

        self.base_url = config.api_base_url
        self.timeout = timeout
        self._transport = transport

        logger.info(
            "CreemPaymentClient initialized: env=%s base_url=%s key=%s...",
            config.environment.value, self.base_url, self.api_key[:10],
        )

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Creem API %s %s failed: %s", method, path, exc)
            raise GatewayError(None, str(exc) or exc.__class__.__name__) from exc

    async def create_checkout(self, request: CreateCheckoutRequest) -> CreateCheckoutResponse:
        payload = build_checkout_payload(request)
        logger.info("Creem checkout request: product_id=%s fields=%s", request.product_id, sorted(payload))

        response = await self._send("POST", "/checkouts", json=payload)
        logger.info("Creem API response status: %s", response.status_code)
        _raise_for_status(response)

        data = response.json()
        checkout_id = data.get("id") if isinstance(data, dict) else None
        if not checkout_id:
            logger.error("Creem checkout response without id: %s", data)
            raise GatewayError(response.status_code, "Checkout response did not include an id")

        payment_url = next((data[f] for f in PAYMENT_URL_FIELDS if data.get(f)), None)
        if not payment_url:
            payment_url = f"{self.config.payment_url.rstrip('/')}/{checkout_id}"
            logger.warning("No payment URL in Creem response, using constructed URL: %s", payment_url)

        return CreateCheckoutResponse(
            checkout_id=str(checkout_id),
            payment_url=payment_url,
            status=data.get("status") or "pending",
        )

    async def create_simple_checkout(
        self,
        product_id: str,
        request_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> CreateCheckoutResponse:
        return await self.create_checkout(CreateCheckoutRequest(
            product_id=product_id,
            request_id=request_id,
            customer=CheckoutCustomer(email=user_email) if user_email else None,
        ))

    async def create_checkout_with_options(
        self,
        product_id: str,
        *,
        request_id: Optional[str] = None,
        success_url: Optional[str] = None,
        user_email: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        discount_code: Optional[str] = None,
        units: Optional[int] = None,
        locale: Optional[str] = None,
        plan_type: Optional[str] = None,
    ) -> CreateCheckoutResponse:
        return await self.create_checkout(CreateCheckoutRequest(
            product_id=product_id,
            request_id=request_id,
            success_url=success_url,
            customer=CheckoutCustomer(email=user_email) if user_email else None,
            metadata=metadata,
            discount_code=discount_code,
            units=units,
            locale=locale,
            plan_type=plan_type,
        ))

    async def get_checkout_status(self, checkout_id: str, success_url: Optional[str] = None) -> Dict[str, Any]:
        """Checkout as reported by Creem; used to verify a payment."""
        params = {"checkout_id": checkout_id}
        if success_url:
            params["success_url"] = success_url

        response = await self._send("GET", "/checkouts", params=params)
        _raise_for_status(response)

        data = response.json()
        logger.info("Checkout %s status: %s", checkout_id, data.get("status") if isinstance(data, dict) else data)
        return data
