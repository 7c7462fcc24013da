"""Notification sink writing to the in-app ``notifications`` table."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..db.supabase import get_supabase_client
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

ROUTE_OPTIMIZATION = "route_optimization"
UPGRADE_TEASER = "upgrade_teaser"
ROUTE_CHANGE_REQUEST = "route_change_request"


class NotificationSink(Protocol):
    def notify(self, user_id: str, title: str, message: str, kind: str) -> None: ...


class SupabaseNotificationSink:
    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    def notify(self, user_id: str, title: str, message: str, kind: str) -> None:
        client = self._client or get_supabase_client()
        if client is None:
            raise PersistenceError("Supabase is not configured (missing URL or key).")
        client.table("notifications").insert(
            {"user_id": user_id, "title": title, "message": message, "type": kind}
        ).execute()
        logger.info(f"Queued {kind} notification for user {user_id}")
