"""
Razorpay webhook envelope models.

Only the fields settlement reads are declared; everything else the
gateway sends is kept (extra='allow') so the raw entity can be stored
as the payment's gateway_response.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel


class RazorpayPaymentEntity(BaseModel):
    id: str
    order_id: Optional[str] = None
    amount: Optional[int] = None  # paise
    currency: Optional[str] = None
    status: Optional[str] = None  # 'created', 'authorized', 'captured', 'refunded', 'failed'
    method: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    created_at: Optional[int] = None  # epoch seconds

    class Config:
        extra = "allow"


class RazorpayOrderEntity(BaseModel):
    id: str
    amount: Optional[int] = None
    amount_paid: Optional[int] = None
    currency: Optional[str] = None
    receipt: Optional[str] = None
    status: Optional[str] = None  # 'created', 'attempted', 'paid'

    class Config:
        extra = "allow"


class RazorpayPaymentWrapper(BaseModel):
    entity: Optional[RazorpayPaymentEntity] = None


class RazorpayOrderWrapper(BaseModel):
    entity: Optional[RazorpayOrderEntity] = None


class RazorpayWebhookPayload(BaseModel):
    payment: Optional[RazorpayPaymentWrapper] = None
    order: Optional[RazorpayOrderWrapper] = None


class RazorpayWebhookEvent(BaseModel):
    """Top-level webhook delivery: {event, payload: {payment?, order?}}."""
    event: str
    entity: Optional[str] = None
    account_id: Optional[str] = None
    contains: list = []
    payload: RazorpayWebhookPayload = RazorpayWebhookPayload()
    created_at: Optional[int] = None

    class Config:
        extra = "allow"

    @property
    def payment_entity(self) -> Optional[RazorpayPaymentEntity]:
        if self.payload.payment is None:
            return None
        return self.payload.payment.entity

    @property
    def order_entity(self) -> Optional[RazorpayOrderEntity]:
        if self.payload.order is None:
            return None
        return self.payload.order.entity


def entity_as_dict(entity: BaseModel) -> Dict[str, Any]:
    """Full entity including undeclared gateway fields."""
    return entity.model_dump(exclude_unset=True)
