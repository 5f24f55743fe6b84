"""
Shared fixtures for the payments test-suite.
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from core.cache import AUTH_POOL, PLANS_POOL, cache_invalidate
from core.payments.checkout import CheckoutService
from core.payments.service import PaymentSettlementService, SettlementConfig
from core.payments.store import SettlementStore
from tests.helpers import KEY_SECRET, NOW, WEBHOOK_SECRET, FakeGateway, FakeSupabase

# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture(autouse=True)
def clear_caches():
    cache_invalidate(AUTH_POOL)
    cache_invalidate(PLANS_POOL)
    yield
    cache_invalidate(AUTH_POOL)
    cache_invalidate(PLANS_POOL)


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.tables = {
        "plans": [
            {"id": "plan_free", "name": "free", "display_name": "Free", "price_monthly": 0,
             "price_yearly": 0, "trial_days": 0, "is_active": True, "sort_order": 0},
            {"id": "plan_premium", "name": "premium", "display_name": "Premium", "price_monthly": 299,
             "price_yearly": 2999, "trial_days": 0, "is_active": True, "sort_order": 1},
            {"id": "plan_promo", "name": "promo", "display_name": "Promo Yearly", "price_monthly": 99,
             "price_yearly": 0, "trial_days": 0, "is_active": True, "sort_order": 2},
            {"id": "plan_trial", "name": "premium_trial", "display_name": "Premium (trial)", "price_monthly": 299,
             "price_yearly": 2999, "trial_days": 14, "is_active": True, "sort_order": 3},
            {"id": "plan_retired", "name": "legacy", "display_name": "Legacy", "price_monthly": 199,
             "price_yearly": 1999, "trial_days": 0, "is_active": False, "sort_order": 9},
        ],
        "businesses": [
            {"id": "biz_1", "owner_id": "u1", "name": "Chai Corner"},
            {"id": "biz_2", "owner_id": "u2", "name": "Dosa Den"},
        ],
        "business_subscriptions": [
            {"id": "sub_1", "business_id": "biz_1", "plan_id": "plan_premium", "status": "pending",
             "billing_cycle": "monthly", "is_trial": False, "started_at": None, "expires_at": None,
             "cancelled_at": None, "auto_renew": True, "created_at": "2026-01-15T11:00:00+00:00"},
            {"id": "sub_yearly", "business_id": "biz_1", "plan_id": "plan_premium", "status": "pending",
             "billing_cycle": "yearly", "is_trial": False, "started_at": None, "expires_at": None,
             "cancelled_at": None, "auto_renew": True, "created_at": "2026-01-15T11:00:01+00:00"},
            {"id": "sub_promo", "business_id": "biz_1", "plan_id": "plan_promo", "status": "pending",
             "billing_cycle": "yearly", "is_trial": False, "started_at": None, "expires_at": None,
             "cancelled_at": None, "auto_renew": True, "created_at": "2026-01-15T11:00:02+00:00"},
        ],
        "payments": [
            {"id": "payrec_1", "subscription_id": "sub_1", "gateway": "razorpay", "gateway_order_id": "ord_1",
             "gateway_payment_id": None, "amount": 299, "currency": "INR", "status": "pending",
             "payment_method": None, "failure_reason": None, "paid_at": None, "failed_at": None,
             "gateway_response": None},
            {"id": "payrec_yearly", "subscription_id": "sub_yearly", "gateway": "razorpay",
             "gateway_order_id": "ord_yearly", "gateway_payment_id": None, "amount": 2999, "currency": "INR",
             "status": "pending", "payment_method": None, "failure_reason": None, "paid_at": None,
             "failed_at": None, "gateway_response": None},
            {"id": "payrec_promo", "subscription_id": "sub_promo", "gateway": "razorpay",
             "gateway_order_id": "ord_promo", "gateway_payment_id": None, "amount": 0, "currency": "INR",
             "status": "pending", "payment_method": None, "failure_reason": None, "paid_at": None,
             "failed_at": None, "gateway_response": None},
        ],
        "invoices": [],
        "webhook_events": [],
    }
    fake.auth.users = {
        "token-u1": SimpleNamespace(id="u1", email="owner@chaicorner.in", role="authenticated"),
        "token-u2": SimpleNamespace(id="u2", email="owner@dosaden.in", role="authenticated"),
    }
    return fake


@pytest.fixture
def gateway():
    fake = FakeGateway()
    fake.payments = {
        "pay_1": {"id": "pay_1", "entity": "payment", "order_id": "ord_1", "amount": 29900,
                  "currency": "INR", "status": "captured", "method": "upi", "created_at": 1768478000},
        "pay_yearly": {"id": "pay_yearly", "entity": "payment", "order_id": "ord_yearly", "amount": 299900,
                       "currency": "INR", "status": "captured", "method": "card", "created_at": 1768478000},
        "pay_promo": {"id": "pay_promo", "entity": "payment", "order_id": "ord_promo", "amount": 100,
                      "currency": "INR", "status": "captured", "created_at": 1768478000},
    }
    return fake


@pytest.fixture
def store(db):
    return SettlementStore(db)


@pytest.fixture
def config():
    return SettlementConfig(key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def service(store, gateway, config):
    return PaymentSettlementService(store, gateway, config, clock=lambda: NOW)


@pytest.fixture
def checkout(store, gateway):
    return CheckoutService(store, gateway, key_id="rzp_test_key", clock=lambda: NOW)


@pytest.fixture
def client(db, service, checkout, monkeypatch):
    from main import app
    from core.hub.deps import get_checkout_service, get_settlement_service

    monkeypatch.setattr("core.auth.get_supabase", lambda: db)
    app.dependency_overrides[get_settlement_service] = lambda: service
    app.dependency_overrides[get_checkout_service] = lambda: checkout
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_u1():
    return {"Authorization": "Bearer token-u1"}


@pytest.fixture
def auth_u2():
    return {"Authorization": "Bearer token-u2"}
