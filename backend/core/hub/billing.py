"""
Billing routes: plan catalogue and checkout.

Routes:
- /plans - List active plans (public)
- /payments/create-order - Start a subscription checkout (business owner)
- /businesses/{business_id}/subscription - Current subscription (business owner)
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.auth import get_optional_user, require_user
from core.hub.deps import get_checkout_service
from core.models import AuthUser, CreateOrderRequest, Plan
from core.payments.checkout import CheckoutService
from core.payments.errors import PaymentError

logger = logging.getLogger("bizdir.checkout")

router = APIRouter()


def _server_error(tag: str, error: Exception) -> JSONResponse:
    logger.error("[%s] Unexpected error: %s", tag, error)
    return JSONResponse(status_code=500, content={"error": str(error) or "Internal server error"})


@router.get("/plans")
async def list_plans(checkout: CheckoutService = Depends(get_checkout_service)) -> List[Plan]:
    """List available plans (public)."""
    try:
        return checkout.list_plans()
    except Exception as e:
        return _server_error("Plans", e)


@router.post("/payments/create-order")
async def create_order(
    body: CreateOrderRequest,
    user: Optional[AuthUser] = Depends(get_optional_user),
    checkout: CheckoutService = Depends(get_checkout_service),
) -> dict:
    """Create a free/trial subscription, or a gateway order for a paid plan."""
    try:
        return await checkout.create_order(body, user)
    except PaymentError:
        raise
    except Exception as e:
        return _server_error("Checkout", e)


@router.get("/businesses/{business_id}/subscription")
async def get_business_subscription(
    business_id: str,
    user: AuthUser = Depends(require_user),
    checkout: CheckoutService = Depends(get_checkout_service),
) -> dict:
    """Current trial/active subscription of a business the caller owns."""
    try:
        return {"subscription": checkout.get_current_subscription(business_id, user)}
    except PaymentError:
        raise
    except Exception as e:
        return _server_error("Subscription", e)
