"""
Dependency providers for the payment routes.

Handlers receive fully built services; nothing downstream reads
settings or global clients. Tests swap these via app.dependency_overrides.
"""
from functools import lru_cache

from config import settings
from core.database import get_supabase_admin
from core.payments.checkout import CheckoutService
from core.payments.gateway import PaymentGateway, RazorpayGateway
from core.payments.service import PaymentSettlementService, SettlementConfig
from core.payments.store import SettlementStore


@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_base_url=settings.razorpay_api_url,
        timeout_seconds=settings.razorpay_timeout_seconds,
    )


def get_settlement_store() -> SettlementStore:
    return SettlementStore(get_supabase_admin())


def get_settlement_service() -> PaymentSettlementService:
    return PaymentSettlementService(
        store=get_settlement_store(),
        gateway=get_payment_gateway(),
        config=SettlementConfig.from_settings(settings),
    )


def get_checkout_service() -> CheckoutService:
    return CheckoutService(
        store=get_settlement_store(),
        gateway=get_payment_gateway(),
        key_id=settings.razorpay_key_id,
        currency=settings.payment_currency,
    )
