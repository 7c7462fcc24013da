"""Caller identity resolution from bearer tokens."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from .db.supabase import get_supabase_client
from .errors import AuthError

logger = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    def user_id_for_token(self, token: str) -> str: ...


def bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Unauthorized")
    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise AuthError("Unauthorized")
    return token


class SupabaseIdentityResolver:
    """Validate access tokens against Supabase auth."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    def user_id_for_token(self, token: str) -> str:
        client = self._client or get_supabase_client()
        if client is None:
            raise AuthError("Unauthorized")
        try:
            response = client.auth.get_user(token)
        except Exception as exc:
            logger.info(f"Rejected access token: {exc}")
            raise AuthError("Unauthorized") from exc
        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise AuthError("Unauthorized")
        return str(user.id)
