"""
Supabase session authentication for API routes.

Provides:
- extract_bearer_token(): Authorization header -> access token
- resolve_user(): access token -> AuthUser (cached)
- get_optional_user(): FastAPI dependency, None when unauthenticated
- require_user(): FastAPI dependency, 401 when unauthenticated

Payment routes take the optional form so they can report input errors
before authentication errors.
"""
import hashlib
import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException

from core.cache import AUTH_POOL, cached
from core.database import get_supabase
from core.models.user import AuthUser

logger = logging.getLogger("bizdir.auth")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from 'Bearer <token>', or None for anything else."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _fetch_user(token: str, client) -> Optional[AuthUser]:
    try:
        response = client.auth.get_user(token)
    except Exception as auth_error:
        logger.info("[Auth] Access token rejected: %s", auth_error)
        return None

    supabase_user = getattr(response, "user", None)
    if supabase_user is None:
        return None

    return AuthUser(
        id=str(supabase_user.id),
        email=getattr(supabase_user, "email", None),
        role=getattr(supabase_user, "role", None),
    )


def resolve_user(token: str, client=None) -> Optional[AuthUser]:
    """
    Resolve a Supabase access token to its user.
    Returns None if the token is rejected.
    """
    # Never key the cache on the raw token
    cache_key = f"token:{hashlib.sha256(token.encode()).hexdigest()}"
    return cached(AUTH_POOL, cache_key, lambda: _fetch_user(token, client or get_supabase()))


def get_optional_user(authorization: Optional[str] = Header(None)) -> Optional[AuthUser]:
    token = extract_bearer_token(authorization)
    if token is None:
        return None
    return resolve_user(token)


def require_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
