"""
Payment settlement: the two entry points that move a payment attempt to
a terminal state and update the subscription it pays for.

verify_client_payment()  called by the client right after hosted checkout
handle_webhook()         called by Razorpay, possibly before, after, or
                         instead of the client call

Both compute the subscription window with compute_settlement(), write
through a SettlementSaga, and are safe to repeat for the same order.
"""
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from core.models import (
    AuthUser,
    BusinessSubscription,
    RazorpayPaymentEntity,
    RazorpayWebhookEvent,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
    entity_as_dict,
)
from core.payments.errors import (
    ForbiddenError,
    GatewayError,
    InvalidRequestError,
    InvalidSignatureError,
    MissingFieldsError,
    NotAuthenticatedError,
    NotFoundError,
    SettlementFailedError,
)
from core.payments.gateway import PaymentGateway, describe_gateway_error
from core.payments.settlement import (
    EXPIRY_POLICIES,
    FIXED_30_DAYS,
    PLAN_AWARE,
    SettlementSaga,
    build_invoice,
    compute_settlement,
    epoch_to_iso,
    issue_invoice,
    utcnow,
    window_for_policy,
)
from core.payments.signature import verify_payment_signature, verify_webhook_signature
from core.payments.store import PAYMENT_SETTLEMENT_FIELDS, SettlementStore

logger = logging.getLogger("bizdir.payments")


@dataclass
class SettlementConfig:
    """Secrets and policies the settlement handlers are built with."""
    key_secret: str
    webhook_secret: str
    currency: str = "INR"
    webhook_expiry_policy: str = FIXED_30_DAYS

    def __post_init__(self):
        if self.webhook_expiry_policy not in EXPIRY_POLICIES:
            raise ValueError(
                f"Unknown webhook_expiry_policy {self.webhook_expiry_policy!r}; "
                f"expected one of {', '.join(EXPIRY_POLICIES)}"
            )

    @classmethod
    def from_settings(cls, settings) -> "SettlementConfig":
        return cls(
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
            currency=settings.payment_currency,
            webhook_expiry_policy=settings.webhook_expiry_policy,
        )


def _payment_snapshot(payment_row: Dict[str, Any]) -> Dict[str, Any]:
    """The columns a settlement overwrites, as they were before it."""
    return {field: payment_row.get(field) for field in PAYMENT_SETTLEMENT_FIELDS}


class PaymentSettlementService:
    """Settles Razorpay payments into business subscriptions."""

    def __init__(
        self,
        store: SettlementStore,
        gateway: PaymentGateway,
        config: SettlementConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.gateway = gateway
        self.config = config
        self.clock = clock

    # ─────────────────────────────────────────────────────────────────────
    # CLIENT-INITIATED VERIFICATION
    # ─────────────────────────────────────────────────────────────────────

    async def verify_client_payment(
        self,
        request: VerifyPaymentRequest,
        user: Optional[AuthUser],
    ) -> VerifyPaymentResponse:
        payment_id = request.payment_id
        order_id = request.order_id
        subscription_id = request.subscription_id

        if not (payment_id and order_id and request.signature and subscription_id):
            raise MissingFieldsError("Missing required fields")

        if user is None:
            raise NotAuthenticatedError("Unauthorized")

        if not verify_payment_signature(order_id, payment_id, request.signature, self.config.key_secret):
            self._record_signature_failure(order_id)
            raise InvalidSignatureError("Payment verification failed")

        # Amount and status come from the gateway, never from the client.
        try:
            gateway_payment = await self.gateway.fetch_payment(payment_id)
        except Exception as gateway_error:
            logger.warning("[Verify] Gateway lookup failed for payment %s: %s", payment_id, gateway_error)
            raise GatewayError(describe_gateway_error(gateway_error))

        subscription = self._load_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")

        if subscription.business is None or subscription.business.owner_id != user.id:
            logger.warning(
                "[Verify] User %s tried to settle subscription %s they do not own",
                user.id, subscription_id,
            )
            raise ForbiddenError("Unauthorized")

        now = self.clock()
        plan_yearly_price = subscription.plan.price_yearly if subscription.plan else 0
        window = compute_settlement(subscription.billing_cycle, plan_yearly_price, now)

        try:
            previous = self.store.get_payment_by_order_id(order_id)
        except Exception as lookup_error:
            logger.error("[Verify] Failed to load payment for order %s: %s", order_id, lookup_error)
            raise SettlementFailedError("Failed to update payment")
        if previous is None:
            logger.error("[Verify] No payment record for order %s", order_id)
            raise SettlementFailedError("Failed to update payment")

        completed_fields = {
            "gateway_payment_id": payment_id,
            "status": "completed",
            "payment_method": gateway_payment.get("method") or "upi",
            "paid_at": epoch_to_iso(gateway_payment.get("created_at"), now),
            "gateway_response": gateway_payment,
        }

        with SettlementSaga(f"verify:{order_id}") as saga:
            try:
                updated = saga.run(
                    lambda: self.store.update_payment_by_order_id(order_id, completed_fields),
                    compensate=lambda: self._undo_payment(order_id, previous, payment_id, "completed", subscription_id),
                    label="complete_payment",
                )
            except Exception as payment_error:
                logger.error("[Verify] Failed to update payment for order %s: %s", order_id, payment_error)
                raise SettlementFailedError("Failed to update payment")
            if not updated:
                raise SettlementFailedError("Failed to update payment")
            payment_record = updated[0]
            logger.info("[Verify] Payment %s completed (order %s)", payment_record.get("id"), order_id)

            try:
                activated = saga.run(
                    lambda: self.store.update_subscription(subscription_id, window.as_subscription_fields()),
                    label="activate_subscription",
                )
            except Exception as subscription_error:
                logger.error("[Verify] Failed to activate subscription %s: %s", subscription_id, subscription_error)
                raise SettlementFailedError("Failed to activate subscription")
            if not activated:
                raise SettlementFailedError("Failed to activate subscription")

        issue_invoice(
            self.store.insert_invoice,
            build_invoice(subscription_id, payment_record["id"], gateway_payment, window, self.config.currency),
        )

        logger.info(
            "[Verify] Subscription %s active until %s",
            subscription_id, window.expires_at.isoformat(),
        )
        return VerifyPaymentResponse(
            message="Payment verified and subscription activated!",
            subscription_status="active",
            expires_at=window.expires_at,
        )

    def _undo_payment(
        self,
        order_id: str,
        previous: Dict[str, Any],
        settled_payment_id: str,
        settled_status: str,
        subscription_id: Optional[str] = None,
    ) -> None:
        """
        Compensation for a payment write.

        The verify endpoint and the webhook can settle the same order
        concurrently. If the subscription is already active, the other
        request finished the settlement and the payment row is left as is.
        Otherwise the snapshot is restored only while the row still holds
        this request's write.
        """
        if subscription_id is not None:
            subscription = self.store.get_subscription(subscription_id)
            if subscription is not None and subscription.get("status") == "active":
                logger.info("[Saga] Subscription %s already active; keeping payment for order %s", subscription_id, order_id)
                return

        restored = self.store.restore_payment(order_id, _payment_snapshot(previous), settled_payment_id, settled_status)
        if not restored:
            logger.warning("[Saga] Payment for order %s was rewritten by another request; not restored", order_id)

    def _record_signature_failure(self, order_id: str) -> None:
        """Fail closed: the order's payment row records the bad confirmation."""
        try:
            self.store.update_payment_by_order_id(order_id, {
                "status": "failed",
                "failure_reason": "Invalid signature",
                "failed_at": self.clock().isoformat(),
            })
        except Exception as update_error:
            logger.error("[Verify] Could not mark order %s failed after bad signature: %s", order_id, update_error)
        logger.warning("[Verify] Invalid payment signature for order %s", order_id)

    def _load_subscription(self, subscription_id: str) -> Optional[BusinessSubscription]:
        try:
            row = self.store.get_subscription(subscription_id)
        except Exception as lookup_error:
            logger.error("[Verify] Subscription lookup failed for %s: %s", subscription_id, lookup_error)
            return None
        if row is None:
            return None
        return BusinessSubscription.model_validate(row)

    # ─────────────────────────────────────────────────────────────────────
    # GATEWAY WEBHOOK
    # ─────────────────────────────────────────────────────────────────────

    def handle_webhook(self, raw_body: bytes, signature: Optional[str], event_id: Optional[str] = None) -> WebhookAck:
        """
        Process one webhook delivery.

        Anything this system does not act on is still acknowledged, so the
        gateway stops redelivering it. Errors raised from here make the
        gateway retry, which the event ledger makes safe.
        """
        if not signature:
            raise InvalidRequestError("Missing webhook signature")

        if not verify_webhook_signature(raw_body, signature, self.config.webhook_secret):
            logger.warning("[Webhook] Signature verification FAILED")
            raise InvalidSignatureError("Invalid webhook signature")

        try:
            event = RazorpayWebhookEvent.model_validate(json.loads(raw_body))
        except ValueError as parse_error:
            logger.error("[Webhook] Unparseable event body: %s", parse_error)
            raise InvalidRequestError("Invalid webhook payload")

        event_key = event_id or hashlib.sha256(raw_body).hexdigest()
        logger.info("[Webhook] Event received: %s (event_id=%s)", event.event, event_key)

        if event.event == "payment.captured":
            self._settle_captured(event, event_key)
        elif event.event == "payment.failed":
            self._settle_failed(event, event_key)
        elif event.event == "order.paid":
            order = event.order_entity
            if order is None:
                raise InvalidRequestError("No order data")
            logger.info("[Webhook] Order paid: %s", order.id)
        else:
            logger.info("[Webhook] Unhandled event %s (ignoring)", event.event)

        return WebhookAck(message="Webhook processed successfully")

    def _require_payment_entity(self, event: RazorpayWebhookEvent) -> RazorpayPaymentEntity:
        payment = event.payment_entity
        if payment is None:
            raise InvalidRequestError("No payment data")
        return payment

    def _already_processed(self, event_key: str, event_type: str) -> bool:
        if self.store.has_processed_event(event_key):
            logger.info("[Webhook] %s %s already processed (skipping)", event_type, event_key)
            return True
        return False

    def _mark_processed(self, event_key: str, event_type: str, order_id: Optional[str]) -> None:
        try:
            self.store.record_processed_event(event_key, event_type, order_id)
        except Exception as ledger_error:
            # Settlement already happened; a redelivery re-applies the same state.
            logger.warning("[Webhook] Could not record event %s in ledger: %s", event_key, ledger_error)

    def _settle_captured(self, event: RazorpayWebhookEvent, event_key: str) -> None:
        payment = self._require_payment_entity(event)
        if self._already_processed(event_key, event.event):
            return

        previous = self.store.get_payment_by_order_id(payment.order_id) if payment.order_id else None
        if previous is None:
            logger.warning("[Webhook] payment.captured for unknown order %s (payment %s)", payment.order_id, payment.id)
            return

        subscription_id = previous["subscription_id"]
        subscription_row = self.store.get_subscription(subscription_id)

        if (
            previous.get("status") == "completed"
            and previous.get("gateway_payment_id") == payment.id
            and subscription_row is not None
            and subscription_row.get("status") == "active"
        ):
            logger.info("[Webhook] Order %s already settled by payment %s", payment.order_id, payment.id)
            self._mark_processed(event_key, event.event, payment.order_id)
            return

        now = self.clock()
        window = self._webhook_window(subscription_row, now)

        with SettlementSaga(f"webhook:{event_key}") as saga:
            saga.run(
                lambda: self.store.update_payment_by_order_id(payment.order_id, {
                    "gateway_payment_id": payment.id,
                    "status": "completed",
                    "payment_method": payment.method,
                    "paid_at": epoch_to_iso(payment.created_at, now),
                    "gateway_response": entity_as_dict(payment),
                }),
                compensate=lambda: self._undo_payment(payment.order_id, previous, payment.id, "completed", subscription_id),
                label="complete_payment",
            )
            activated = saga.run(
                lambda: self.store.update_subscription(subscription_id, window.as_subscription_fields()),
                label="activate_subscription",
            )
            if not activated:
                logger.error("[Webhook] Order %s points at missing subscription %s", payment.order_id, subscription_id)
                raise SettlementFailedError("Failed to activate subscription")

        self._mark_processed(event_key, event.event, payment.order_id)
        logger.info(
            "[Webhook] Payment %s captured; subscription %s active until %s",
            payment.id, subscription_id, window.expires_at.isoformat(),
        )

    def _webhook_window(self, subscription_row: Optional[Dict[str, Any]], now: datetime):
        policy = self.config.webhook_expiry_policy
        if policy == PLAN_AWARE and subscription_row is not None:
            plan = subscription_row.get("plan") or {}
            return window_for_policy(policy, now, subscription_row.get("billing_cycle"), plan.get("price_yearly"))
        return window_for_policy(FIXED_30_DAYS, now)

    def _settle_failed(self, event: RazorpayWebhookEvent, event_key: str) -> None:
        payment = self._require_payment_entity(event)
        if self._already_processed(event_key, event.event):
            return

        previous = self.store.get_payment_by_order_id(payment.order_id) if payment.order_id else None
        if previous is None:
            logger.warning("[Webhook] payment.failed for unknown order %s (payment %s)", payment.order_id, payment.id)
            return

        subscription_id = previous["subscription_id"]
        now = self.clock()
        failure_reason = payment.error_description or payment.error_code

        with SettlementSaga(f"webhook:{event_key}") as saga:
            saga.run(
                lambda: self.store.update_payment_by_order_id(payment.order_id, {
                    "gateway_payment_id": payment.id,
                    "status": "failed",
                    "failure_reason": failure_reason,
                    "failed_at": epoch_to_iso(payment.created_at, now),
                    "gateway_response": entity_as_dict(payment),
                }),
                compensate=lambda: self._undo_payment(payment.order_id, previous, payment.id, "failed"),
                label="fail_payment",
            )
            cancelled = saga.run(
                lambda: self.store.update_subscription(subscription_id, {
                    "status": "cancelled",
                    "cancelled_at": now.isoformat(),
                }),
                label="cancel_subscription",
            )
            if not cancelled:
                logger.error("[Webhook] Order %s points at missing subscription %s", payment.order_id, subscription_id)
                raise SettlementFailedError("Failed to cancel subscription")

        self._mark_processed(event_key, event.event, payment.order_id)
        logger.info("[Webhook] Payment %s failed (%s); subscription %s cancelled", payment.id, failure_reason, subscription_id)
