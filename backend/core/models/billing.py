"""
Billing models - plans, business subscriptions, payment records, invoices.
"""
from datetime import datetime, date
from typing import Optional, Dict, Any
from pydantic import BaseModel


class Plan(BaseModel):
    """Listing plan offered to business owners."""
    id: str
    name: str  # 'free', 'premium'
    display_name: Optional[str] = None
    description: Optional[str] = None
    price_monthly: float = 0  # rupees
    price_yearly: float = 0
    trial_days: int = 0
    features: Dict[str, Any] = {}
    is_active: bool = True
    sort_order: int = 0

    class Config:
        from_attributes = True


class BusinessOwner(BaseModel):
    """The slice of a business row settlement needs for ownership checks."""
    owner_id: str
    name: Optional[str] = None


class BusinessSubscription(BaseModel):
    """A business's subscription to a plan."""
    id: str
    business_id: str
    plan_id: str
    status: str  # 'pending', 'trial', 'active', 'cancelled'
    billing_cycle: str = "monthly"  # 'monthly', 'yearly'
    is_trial: bool = False
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    auto_renew: bool = True

    # Joined data
    plan: Optional[Plan] = None
    business: Optional[BusinessOwner] = None

    class Config:
        from_attributes = True


class PaymentRecord(BaseModel):
    """One payment attempt, keyed by the gateway order id."""
    id: str
    subscription_id: str
    gateway: str = "razorpay"
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    amount: float = 0
    currency: str = "INR"
    status: str  # 'pending', 'completed', 'failed'
    payment_method: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    gateway_response: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class Invoice(BaseModel):
    """Invoice issued for a settled payment."""
    id: str
    subscription_id: str
    payment_id: Optional[str] = None
    invoice_number: str
    amount: float
    tax_amount: float = 0
    total_amount: float
    currency: str = "INR"
    billing_period_start: date
    billing_period_end: date
    status: str  # 'paid'
    paid_at: Optional[datetime] = None
    due_date: date

    class Config:
        from_attributes = True


# ─────────────────────────────────────────────────────────────────────────────
# REQUEST / RESPONSE BODIES
# ─────────────────────────────────────────────────────────────────────────────

class VerifyPaymentRequest(BaseModel):
    """Checkout confirmation posted by the client after the hosted checkout closes.

    Fields are optional here so the endpoint can answer with its own
    'missing fields' error instead of a schema validation error.
    """
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    signature: Optional[str] = None
    subscription_id: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str
    subscription_status: str
    expires_at: datetime


class CreateOrderRequest(BaseModel):
    """Start a subscription checkout for a business."""
    business_id: Optional[str] = None
    plan_id: Optional[str] = None
    billing_cycle: str = "monthly"


class WebhookAck(BaseModel):
    success: bool = True
    message: str
