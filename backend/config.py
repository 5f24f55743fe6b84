"""
Application configuration from environment variables.
"""
from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings

# .env is in the project root (parent of backend/)
ENV_FILE = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key for client
    supabase_service_key: str = ""  # service key for server-side settlement

    # Razorpay
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""  # signs checkout confirmations
    razorpay_webhook_secret: str = ""  # signs webhook deliveries, distinct from the key secret
    razorpay_api_url: str = "https://api.razorpay.com"
    razorpay_timeout_seconds: float = 15.0

    # Payments
    payment_currency: str = "INR"
    webhook_expiry_policy: str = "fixed_30_days"  # or 'plan_aware'

    # App settings
    app_url: str = "http://localhost:8000"
    debug: bool = True

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
