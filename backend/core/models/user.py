"""
User-related models.
"""
from typing import Optional
from pydantic import BaseModel


class AuthUser(BaseModel):
    """Authenticated user resolved from a Supabase access token."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
