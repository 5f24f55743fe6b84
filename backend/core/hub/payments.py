"""
Payment settlement routes.

Routes:
- POST /payments/verify - client confirms a completed checkout (authenticated)
- POST /payments/webhook - Razorpay event delivery (signed, no user session)
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from core.auth import get_optional_user
from core.hub.deps import get_settlement_service
from core.models import AuthUser, VerifyPaymentRequest, VerifyPaymentResponse, WebhookAck
from core.payments.errors import PaymentError
from core.payments.service import PaymentSettlementService

logger = logging.getLogger("bizdir.payments")

router = APIRouter()


@router.post("/payments/verify")
async def verify_payment(
    body: VerifyPaymentRequest,
    user: Optional[AuthUser] = Depends(get_optional_user),
    service: PaymentSettlementService = Depends(get_settlement_service),
) -> VerifyPaymentResponse:
    """Verify a checkout confirmation and activate the subscription it paid for."""
    try:
        return await service.verify_client_payment(body, user)
    except PaymentError:
        raise
    except Exception as e:
        logger.error("[Verify] Error verifying payment: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e) or "Internal server error"})


@router.post("/payments/webhook")
async def receive_razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    x_razorpay_event_id: Optional[str] = Header(None),
    service: PaymentSettlementService = Depends(get_settlement_service),
) -> WebhookAck:
    """
    Receive a Razorpay webhook.

    The body is read raw: the signature covers the exact bytes sent.
    Non-2xx responses make Razorpay redeliver.
    """
    raw_body = await request.body()
    try:
        return service.handle_webhook(raw_body, x_razorpay_signature, x_razorpay_event_id)
    except PaymentError:
        raise
    except Exception as e:
        logger.error("[Webhook] Processing failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e) or "Webhook processing failed"})
