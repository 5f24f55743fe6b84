"""
Razorpay payment gateway client.

Direct REST calls via httpx, authenticated with HTTP Basic
(key_id, key_secret). No SDK dependency.

Endpoints used:
  POST /v1/orders              -- create checkout order
  GET  /v1/payments/{id}       -- fetch authoritative payment details
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

import httpx

logger = logging.getLogger("bizdir.gateway")


class RazorpayApiError(Exception):
    """Error reported by (or while talking to) the Razorpay API."""

    def __init__(self, code: str, description: str = "", status_code: Optional[int] = None):
        super().__init__(description or code)
        self.code = code
        self.description = description
        self.status_code = status_code


_ERROR_MESSAGES = {
    "BAD_REQUEST_ERROR": "Invalid payment request. Please try again.",
    "GATEWAY_ERROR": "Payment gateway error. Please try again.",
    "NETWORK_ERROR": "Network error. Please check your connection.",
    "SERVER_ERROR": "Server error. Please try again later.",
}


def describe_gateway_error(error: Exception) -> str:
    """Map a gateway failure to a message that is safe to show the payer."""
    code = getattr(error, "code", None)
    if code:
        return _ERROR_MESSAGES.get(code) or getattr(error, "description", "") or "Payment failed. Please try again."
    return "An unexpected error occurred. Please try again."


def amount_in_paise(amount_in_rupees: float) -> int:
    """Rupees to paise (the gateway's integer unit)."""
    return int(round(amount_in_rupees * 100))


def amount_in_rupees(amount_in_paise: int) -> float:
    return amount_in_paise / 100


def generate_receipt_id(business_id: str, plan_name: str) -> str:
    """Receipt reference for an order: {plan}_{last 6 of business id}_{epoch ms}."""
    timestamp_ms = int(time.time() * 1000)
    return f"{plan_name}_{business_id[-6:]}_{timestamp_ms}"


class PaymentGateway(ABC):
    """What settlement and checkout need from a payment gateway."""

    @abstractmethod
    async def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Create a checkout order.

        Returns the gateway order entity; at minimum {"id", "amount", "currency", "status"}.
        """
        ...

    @abstractmethod
    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """
        Fetch a payment entity by id.

        Returns at minimum {"id", "order_id", "amount", "currency", "status", "method", "created_at"}.
        Raises RazorpayApiError on failure.
        """
        ...


class RazorpayGateway(PaymentGateway):
    """Razorpay REST API v1."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base_url: str = "https://api.razorpay.com",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.key_id or not self.key_secret:
            raise RazorpayApiError("SERVER_ERROR", "Razorpay credentials are not configured")
        return httpx.AsyncClient(
            base_url=self.api_base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as http_client:
                response = await http_client.request(method, path, **kwargs)
        except httpx.HTTPError as transport_error:
            logger.error("[Razorpay] %s %s transport error: %s", method, path, transport_error)
            raise RazorpayApiError("NETWORK_ERROR", str(transport_error)) from transport_error

        if response.status_code >= 400:
            code, description = "SERVER_ERROR", response.text[:200]
            try:
                error_body = response.json().get("error", {})
                code = error_body.get("code") or code
                description = error_body.get("description") or description
            except ValueError:
                pass
            logger.warning(
                "[Razorpay] %s %s failed: status=%s code=%s",
                method, path, response.status_code, code,
            )
            raise RazorpayApiError(code, description, response.status_code)

        return response.json()

    async def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        order = await self._request("POST", "/v1/orders", json={
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt[:40],  # Razorpay max 40 chars
            "notes": notes or {},
            "payment_capture": 1,
        })
        logger.info("[Razorpay] Order created: order_id=%s amount=%s %s", order.get("id"), amount_paise, currency)
        return order

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/payments/{payment_id}")
