"""
Supabase table access for checkout and settlement.

Tables:
- payments               one row per checkout attempt, keyed by gateway_order_id
- business_subscriptions joined to plans (plan) and businesses (business)
- invoices               append-only bookkeeping
- webhook_events         ledger of processed gateway event ids
- plans, businesses      read-only here

Every method is a single-table statement. Errors from PostgREST
(postgrest.APIError) propagate to the caller.
"""
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from supabase import Client

SUBSCRIPTION_WITH_PLAN = "*, plan:plans(*), business:businesses(owner_id, name)"

LIVE_SUBSCRIPTION_STATUSES = ["trial", "active"]

# Columns a settlement may overwrite on a payment row; restored on compensation.
PAYMENT_SETTLEMENT_FIELDS = (
    "status",
    "gateway_payment_id",
    "payment_method",
    "failure_reason",
    "paid_at",
    "failed_at",
    "gateway_response",
)


def _first(rows: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    return rows[0] if rows else None


class SettlementStore:
    """Row-level reads and writes against the payments schema."""

    def __init__(self, db: Client):
        self.db = db

    # ─────────────────────────────────────────────────────────────────────
    # PAYMENTS
    # ─────────────────────────────────────────────────────────────────────

    def get_payment_by_order_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("payments").select("*").eq(
            "gateway_order_id", order_id
        ).limit(1).execute()
        return _first(result.data)

    def update_payment_by_order_id(self, order_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Unconditional set; re-applying the same fields is a no-op in effect."""
        result = self.db.table("payments").update(fields).eq("gateway_order_id", order_id).execute()
        return result.data or []

    def restore_payment(
        self,
        order_id: str,
        snapshot: Dict[str, Any],
        settled_payment_id: str,
        settled_status: str,
    ) -> List[Dict[str, Any]]:
        """
        Put back a payment snapshot, but only while the row still holds the
        settlement being undone. A row another request has since rewritten
        matches nothing and is left alone.
        """
        result = self.db.table("payments").update(snapshot).eq(
            "gateway_order_id", order_id
        ).eq("gateway_payment_id", settled_payment_id).eq("status", settled_status).execute()
        return result.data or []

    def insert_payment(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db.table("payments").insert(fields).execute()
        return result.data[0]

    # ─────────────────────────────────────────────────────────────────────
    # SUBSCRIPTIONS & PLANS
    # ─────────────────────────────────────────────────────────────────────

    def get_subscription(self, subscription_id: str) -> Optional[Dict[str, Any]]:
        """Subscription joined with its plan and owning business."""
        result = self.db.table("business_subscriptions").select(SUBSCRIPTION_WITH_PLAN).eq(
            "id", subscription_id
        ).limit(1).execute()
        return _first(result.data)

    def update_subscription(self, subscription_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = self.db.table("business_subscriptions").update(fields).eq("id", subscription_id).execute()
        return result.data or []

    def insert_subscription(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db.table("business_subscriptions").insert(fields).execute()
        return result.data[0]

    def get_live_subscription(self, business_id: str) -> Optional[Dict[str, Any]]:
        """Newest trial/active subscription of a business, with plan."""
        result = self.db.table("business_subscriptions").select(SUBSCRIPTION_WITH_PLAN).eq(
            "business_id", business_id
        ).in_("status", LIVE_SUBSCRIPTION_STATUSES).order("created_at", desc=True).limit(1).execute()
        return _first(result.data)

    def has_trial_history(self, business_id: str, plan_id: str) -> bool:
        result = self.db.table("business_subscriptions").select("id").eq(
            "business_id", business_id
        ).eq("plan_id", plan_id).eq("is_trial", True).limit(1).execute()
        return bool(result.data)

    def get_active_plan(self, plan_id: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("plans").select("*").eq("id", plan_id).eq("is_active", True).limit(1).execute()
        return _first(result.data)

    def list_active_plans(self) -> List[Dict[str, Any]]:
        result = self.db.table("plans").select("*").eq("is_active", True).order("sort_order").execute()
        return result.data or []

    def get_owned_business(self, business_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("businesses").select("id, owner_id, name").eq(
            "id", business_id
        ).eq("owner_id", owner_id).limit(1).execute()
        return _first(result.data)

    # ─────────────────────────────────────────────────────────────────────
    # INVOICES
    # ─────────────────────────────────────────────────────────────────────

    def insert_invoice(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db.table("invoices").insert(fields).execute()
        return result.data[0]

    # ─────────────────────────────────────────────────────────────────────
    # WEBHOOK EVENT LEDGER
    # ─────────────────────────────────────────────────────────────────────

    def has_processed_event(self, event_id: str) -> bool:
        result = self.db.table("webhook_events").select("event_id").eq("event_id", event_id).limit(1).execute()
        return bool(result.data)

    def record_processed_event(self, event_id: str, event_type: str, order_id: Optional[str] = None) -> None:
        self.db.table("webhook_events").insert({
            "event_id": event_id,
            "event_type": event_type,
            "order_id": order_id,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }).execute()
