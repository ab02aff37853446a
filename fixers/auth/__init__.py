"""Authentication module."""

from fixers.auth.dependencies import get_current_user, require_admin, require_agent
from fixers.auth.jwt import create_access_token, verify_token

__all__ = [
    "create_access_token",
    "verify_token",
    "get_current_user",
    "require_admin",
    "require_agent",
]
