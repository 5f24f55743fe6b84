"""
Settlement building blocks shared by the verification endpoint and the webhook.

- compute_settlement(): the one subscription-window rule
- window_for_policy(): how the webhook path applies that rule
- SettlementSaga: ordered writes with compensation on failure
- build_invoice() / issue_invoice(): best-effort invoice bookkeeping
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger("bizdir.settlement")

MONTHLY_PERIOD = timedelta(days=30)
YEARLY_PERIOD = timedelta(days=365)

# Webhook expiry policies
FIXED_30_DAYS = "fixed_30_days"  # webhook deliveries always grant 30 days
PLAN_AWARE = "plan_aware"        # same plan-aware rule as the verification endpoint
EXPIRY_POLICIES = (FIXED_30_DAYS, PLAN_AWARE)


@dataclass(frozen=True)
class SettlementWindow:
    started_at: datetime
    expires_at: datetime

    def as_subscription_fields(self) -> Dict[str, Any]:
        return {
            "status": "active",
            "started_at": self.started_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


def compute_settlement(billing_cycle: Optional[str], plan_yearly_price: Optional[float], now: datetime) -> SettlementWindow:
    """
    Subscription window for a settled payment.

    365 days only when the cycle is yearly AND the plan has a positive
    yearly price; every other combination (including a zero-priced
    yearly tier) gets 30 days.
    """
    yearly = billing_cycle == "yearly" and (plan_yearly_price or 0) > 0
    period = YEARLY_PERIOD if yearly else MONTHLY_PERIOD
    return SettlementWindow(started_at=now, expires_at=now + period)


def window_for_policy(
    policy: str,
    now: datetime,
    billing_cycle: Optional[str] = None,
    plan_yearly_price: Optional[float] = None,
) -> SettlementWindow:
    """Window the webhook path grants under the configured policy."""
    if policy == PLAN_AWARE:
        return compute_settlement(billing_cycle, plan_yearly_price, now)
    return compute_settlement("monthly", 0, now)


def epoch_to_iso(epoch_seconds: Optional[int], fallback: datetime) -> str:
    """Gateway epoch seconds as ISO8601 UTC, or the fallback when absent."""
    if epoch_seconds is None:
        return fallback.isoformat()
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# SAGA
# ─────────────────────────────────────────────────────────────────────────────

class SettlementSaga:
    """
    Runs settlement writes in order, remembering how to undo each one.

    Used as a context manager: if the block raises, registered
    compensations run newest-first and the raised exception propagates.

        with SettlementSaga("verify:order_123") as saga:
            saga.run(complete_payment, compensate=restore_payment)
            saga.run(activate_subscription)
    """

    def __init__(self, name: str):
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], Any]]] = []

    def run(self, action: Callable[[], Any], compensate: Optional[Callable[[], Any]] = None, label: str = ""):
        result = action()
        if compensate is not None:
            self._compensations.append((label or getattr(action, "__name__", "step"), compensate))
        return result

    def compensate(self) -> None:
        while self._compensations:
            label, undo = self._compensations.pop()
            try:
                undo()
                logger.warning("[Saga] %s: compensated step '%s'", self.name, label)
            except Exception as undo_error:
                logger.error(
                    "[Saga] %s: compensation for '%s' failed: %s. MANUAL RECONCILIATION REQUIRED.",
                    self.name, label, undo_error,
                )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.compensate()
        return False


# ─────────────────────────────────────────────────────────────────────────────
# INVOICES
# ─────────────────────────────────────────────────────────────────────────────

def generate_invoice_number(now: datetime) -> str:
    return f"INV-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def build_invoice(
    subscription_id: str,
    payment_record_id: str,
    gateway_payment: Dict[str, Any],
    window: SettlementWindow,
    default_currency: str = "INR",
) -> Dict[str, Any]:
    """Invoice row for a completed payment. Amounts are in rupees."""
    amount = (gateway_payment.get("amount") or 0) / 100
    return {
        "subscription_id": subscription_id,
        "payment_id": payment_record_id,  # our payment row, not the gateway id
        "invoice_number": generate_invoice_number(window.started_at),
        "amount": amount,
        "tax_amount": 0,
        "total_amount": amount,
        "currency": gateway_payment.get("currency") or default_currency,
        "billing_period_start": window.started_at.date().isoformat(),
        "billing_period_end": window.expires_at.date().isoformat(),
        "status": "paid",
        "paid_at": window.started_at.isoformat(),
        "due_date": window.expires_at.date().isoformat(),
    }


def issue_invoice(insert: Callable[[Dict[str, Any]], Dict[str, Any]], invoice: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Insert an invoice; failures are logged and never reach the caller."""
    try:
        return insert(invoice)
    except Exception as invoice_error:
        logger.error(
            "[Invoice] Failed to create invoice for subscription %s: %s",
            invoice.get("subscription_id"), invoice_error,
        )
        return None
