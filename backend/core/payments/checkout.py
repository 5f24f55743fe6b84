"""
Checkout initiation.

Creates the pending subscription and payment rows that settlement later
moves to a terminal state. Free plans and first trials skip the gateway.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from core.cache import PLANS_POOL, cached
from core.models import AuthUser, CreateOrderRequest, Plan
from core.payments.errors import (
    ForbiddenError,
    InvalidRequestError,
    MissingFieldsError,
    NotAuthenticatedError,
    NotFoundError,
    PaymentError,
    SettlementFailedError,
)
from core.payments.gateway import PaymentGateway, amount_in_paise, describe_gateway_error, generate_receipt_id
from core.payments.settlement import utcnow
from core.payments.store import SettlementStore

logger = logging.getLogger("bizdir.checkout")

BILLING_CYCLES = ("monthly", "yearly")


class CheckoutService:
    """Starts subscriptions: free, trial, or paid via a gateway order."""

    def __init__(
        self,
        store: SettlementStore,
        gateway: PaymentGateway,
        key_id: str,
        currency: str = "INR",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.gateway = gateway
        self.key_id = key_id
        self.currency = currency
        self.clock = clock

    def list_plans(self) -> List[Plan]:
        """Active plans, cheapest first (by sort_order). Cached."""
        return cached(
            PLANS_POOL,
            "active_plans",
            lambda: [Plan.model_validate(p) for p in self.store.list_active_plans()],
        )

    def get_current_subscription(self, business_id: str, user: AuthUser) -> Optional[Dict[str, Any]]:
        if self.store.get_owned_business(business_id, user.id) is None:
            raise ForbiddenError("Business not found or unauthorized")
        return self.store.get_live_subscription(business_id)

    async def create_order(self, request: CreateOrderRequest, user: Optional[AuthUser]) -> Dict[str, Any]:
        business_id = request.business_id
        plan_id = request.plan_id
        billing_cycle = request.billing_cycle or "monthly"

        if not business_id or not plan_id:
            raise MissingFieldsError("Missing required fields")
        if billing_cycle not in BILLING_CYCLES:
            raise InvalidRequestError(f"Invalid billing cycle: {billing_cycle}")
        if user is None:
            raise NotAuthenticatedError("Unauthorized")

        business = self.store.get_owned_business(business_id, user.id)
        if business is None:
            raise ForbiddenError("Business not found or unauthorized")

        plan_row = self.store.get_active_plan(plan_id)
        if plan_row is None:
            raise NotFoundError("Plan not found")
        plan = Plan.model_validate(plan_row)

        if self.store.get_live_subscription(business_id) is not None:
            raise InvalidRequestError("Business already has an active subscription")

        trial_eligible = plan.trial_days > 0 and not self.store.has_trial_history(business_id, plan_id)

        if plan.name == "free" or trial_eligible:
            return self._start_without_payment(business_id, plan, billing_cycle, trial_eligible)

        return await self._start_paid_checkout(business, plan, billing_cycle)

    def _start_without_payment(self, business_id: str, plan: Plan, billing_cycle: str, trial: bool) -> Dict[str, Any]:
        now = self.clock()
        fields = {
            "business_id": business_id,
            "plan_id": plan.id,
            "status": "active" if plan.name == "free" else "trial",
            "billing_cycle": billing_cycle,
            "is_trial": trial,
            "trial_start_date": now.isoformat() if trial else None,
            "trial_end_date": (now + timedelta(days=plan.trial_days)).isoformat() if trial else None,
            "auto_renew": True,
        }
        try:
            subscription = self.store.insert_subscription(fields)
        except Exception as insert_error:
            logger.error("[Checkout] Failed to create %s subscription for %s: %s", fields["status"], business_id, insert_error)
            raise SettlementFailedError("Failed to create subscription")

        logger.info("[Checkout] %s subscription %s created for business %s", fields["status"], subscription.get("id"), business_id)
        return {
            "success": True,
            "subscription": subscription,
            "trial": trial,
            "message": f"{plan.trial_days}-day trial started successfully!" if trial else "Free plan activated successfully!",
        }

    async def _start_paid_checkout(self, business: Dict[str, Any], plan: Plan, billing_cycle: str) -> Dict[str, Any]:
        business_id = business["id"]
        amount = plan.price_yearly if billing_cycle == "yearly" else plan.price_monthly
        amount_paise = amount_in_paise(amount)
        if amount_paise <= 0:
            raise InvalidRequestError(f"Plan {plan.name} has no {billing_cycle} price")

        try:
            order = await self.gateway.create_order(
                amount_paise=amount_paise,
                currency=self.currency,
                receipt=generate_receipt_id(business_id, plan.name),
                notes={
                    "business_id": business_id,
                    "plan_id": plan.id,
                    "billing_cycle": billing_cycle,
                    "business_name": business.get("name") or "",
                },
            )
        except Exception as gateway_error:
            logger.error("[Checkout] Gateway order creation failed for %s: %s", business_id, gateway_error)
            raise PaymentError(f"Failed to create payment order: {describe_gateway_error(gateway_error)}", 500)

        try:
            subscription = self.store.insert_subscription({
                "business_id": business_id,
                "plan_id": plan.id,
                "status": "pending",
                "billing_cycle": billing_cycle,
                "is_trial": False,
                "auto_renew": True,
            })
        except Exception as insert_error:
            logger.error("[Checkout] Failed to create pending subscription for %s: %s", business_id, insert_error)
            raise SettlementFailedError("Failed to create subscription")

        try:
            payment = self.store.insert_payment({
                "subscription_id": subscription["id"],
                "gateway": "razorpay",
                "gateway_order_id": order["id"],
                "amount": amount,
                "currency": self.currency,
                "status": "pending",
            })
        except Exception as insert_error:
            logger.error("[Checkout] Failed to create payment record for order %s: %s", order["id"], insert_error)
            raise SettlementFailedError("Failed to create payment record")

        logger.info(
            "[Checkout] Order %s for subscription %s (%s paise %s)",
            order["id"], subscription["id"], amount_paise, self.currency,
        )
        return {
            "success": True,
            "order_id": order["id"],
            "amount": amount_paise,
            "currency": self.currency,
            "key_id": self.key_id,
            "business_name": business.get("name"),
            "plan_name": plan.display_name or plan.name,
            "subscription_id": subscription["id"],
            "payment_id": payment["id"],
        }
