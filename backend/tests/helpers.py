"""
Test doubles: an in-memory Supabase table builder and a fake Razorpay gateway.

FakeSupabase mimics the slice of the supabase-py builder the store uses
(select/insert/update, eq/in_/order/limit, and 'alias:table(cols)' embeds
resolved through '<alias>_id').
"""
import copy
import hashlib
import hmac
import json
import re
from datetime import datetime, timezone
from types import SimpleNamespace

from core.payments.gateway import PaymentGateway, RazorpayApiError


NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
KEY_SECRET = "rzp_key_secret_test"
WEBHOOK_SECRET = "rzp_webhook_secret_test"

_EMBED = re.compile(r"(\w+):(\w+)\(([^)]*)\)")


# ===========================================================================
# Fake Supabase
# ===========================================================================

class FakeAPIError(Exception):
    """Stands in for postgrest.APIError."""


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.values = None
        self.filters = []
        self._order = None
        self._limit = None

    def select(self, columns="*", count=None):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, values):
        self.op = "insert"
        self.values = values
        return self

    def update(self, values):
        self.op = "update"
        self.values = values
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matching(self):
        return [row for row in self.db.tables.setdefault(self.table, []) if all(f(row) for f in self.filters)]

    def _project(self, row):
        embeds = _EMBED.findall(self.columns)
        plain = [c.strip() for c in _EMBED.sub("", self.columns).split(",") if c.strip()]
        if "*" in plain:
            projected = copy.deepcopy(row)
        else:
            projected = {c: copy.deepcopy(row.get(c)) for c in plain}
        for alias, table, cols in embeds:
            target = next((r for r in self.db.tables.get(table, []) if r.get("id") == row.get(f"{alias}_id")), None)
            if target is not None and cols.strip() != "*":
                target = {c.strip(): target.get(c.strip()) for c in cols.split(",")}
            projected[alias] = copy.deepcopy(target)
        return projected

    def execute(self):
        self.db.calls.append((self.op, self.table))
        if (self.op, self.table) in self.db.failures:
            raise FakeAPIError(f"{self.op} on {self.table} failed")

        if self.op == "insert":
            rows = self.values if isinstance(self.values, list) else [self.values]
            inserted = []
            for values in rows:
                row = dict(values)
                row.setdefault("id", self.db.next_id(self.table))
                row.setdefault("created_at", self.db.next_timestamp())
                self.db.tables.setdefault(self.table, []).append(row)
                inserted.append(copy.deepcopy(row))
            self.db.mutations.append(("insert", self.table, copy.deepcopy(self.values)))
            return FakeResponse(inserted)

        if self.op == "update":
            updated = []
            for row in self._matching():
                row.update(copy.deepcopy(self.values))
                updated.append(copy.deepcopy(row))
            self.db.mutations.append(("update", self.table, copy.deepcopy(self.values)))
            return FakeResponse(updated)

        rows = self._matching()
        if self._order:
            column, desc = self._order
            # NULLs last ascending, first descending (Postgres defaults)
            rows = sorted(rows, key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self._limit is not None:
            rows = rows[:self._limit]
        return FakeResponse([self._project(r) for r in rows])


class FakeAuth:
    def __init__(self):
        self.users = {}

    def get_user(self, token):
        if token not in self.users:
            raise FakeAPIError("invalid JWT")
        return SimpleNamespace(user=self.users[token])


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.mutations = []
        self.failures = set()
        self.auth = FakeAuth()
        self._seq = 0

    def table(self, name):
        return FakeQuery(self, name)

    def next_id(self, table):
        self._seq += 1
        return f"{table}_{self._seq}"

    def next_timestamp(self):
        self._seq += 1
        return f"2026-01-01T00:00:{self._seq:02d}+00:00"

    def row(self, table, row_id):
        return next(r for r in self.tables[table] if r["id"] == row_id)

    def rows(self, table):
        return self.tables.get(table, [])


# ===========================================================================
# Fake gateway
# ===========================================================================

class FakeGateway(PaymentGateway):
    def __init__(self):
        self.payments = {}
        self.orders = []
        self.fail_create_with = None

    async def create_order(self, amount_paise, currency, receipt, notes=None):
        if self.fail_create_with is not None:
            raise self.fail_create_with
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.orders.append(order)
        return order

    async def fetch_payment(self, payment_id):
        if payment_id not in self.payments:
            raise RazorpayApiError("BAD_REQUEST_ERROR", "The id provided does not exist", 400)
        return dict(self.payments[payment_id])


# ===========================================================================
# Helpers
# ===========================================================================

def sign(payload, secret):
    if isinstance(payload, str):
        payload = payload.encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def checkout_signature(order_id, payment_id, secret=KEY_SECRET):
    return sign(f"{order_id}|{payment_id}", secret)


def webhook_body(event, payment=None, order=None):
    payload = {}
    if payment is not None:
        payload["payment"] = {"entity": payment}
    if order is not None:
        payload["order"] = {"entity": order}
    return json.dumps({
        "entity": "event",
        "account_id": "acc_test",
        "event": event,
        "contains": list(payload),
        "payload": payload,
        "created_at": 1768478400,
    }).encode()


