"""
Core Pydantic models shared across the payments routes.
"""
from .user import AuthUser
from .billing import (
    Plan,
    BusinessOwner,
    BusinessSubscription,
    PaymentRecord,
    Invoice,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    CreateOrderRequest,
    WebhookAck,
)
from .webhook import (
    RazorpayPaymentEntity,
    RazorpayOrderEntity,
    RazorpayWebhookEvent,
    entity_as_dict,
)

__all__ = [
    # User
    "AuthUser",
    # Billing
    "Plan", "BusinessOwner", "BusinessSubscription", "PaymentRecord", "Invoice",
    "VerifyPaymentRequest", "VerifyPaymentResponse", "CreateOrderRequest", "WebhookAck",
    # Webhooks
    "RazorpayPaymentEntity", "RazorpayOrderEntity", "RazorpayWebhookEvent", "entity_as_dict",
]
