"""
Supabase database clients.

The anon client is only used to resolve end-user access tokens; all
payment and subscription writes go through the service-role client,
since webhook deliveries carry no user session for RLS to act on.
"""
from functools import lru_cache
from supabase import create_client, Client
from config import settings


@lru_cache()
def get_supabase() -> Client:
    """Get Supabase client with anon key (respects RLS, used for auth lookups)."""
    return create_client(settings.supabase_url, settings.supabase_key)


@lru_cache()
def get_supabase_admin() -> Client:
    """Get Supabase client with service key (bypasses RLS)."""
    return create_client(settings.supabase_url, settings.supabase_service_key)
