"""Data access for contractors, jobs and platform bookings."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Protocol, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import PersistenceError
from ..models.domain import Contractor, InternalJob, JobRecord, PlatformBooking, WorkingHours

logger = logging.getLogger(__name__)

ACTIVE_JOB_STATUSES = ("scheduled", "in_progress")
ACTIVE_BOOKING_STATUSES = ("confirmed", "scheduled", "in_progress")

_JOB_COLUMNS = (
    "id, contractor_id, scheduled_date, scheduled_time, time_flexibility, route_optimization_locked, "
    "duration_minutes, title, original_scheduled_date, original_scheduled_time, original_time_slot, "
    "clients!inner(address, name, user_id)"
)


class JobRepository(Protocol):
    """Read/write contract the engine needs from the job store."""

    def get_contractor(self, contractor_id: str) -> Contractor | None: ...

    def find_eligible_contractor(self, contractor_id: str, tiers: Sequence[str]) -> Contractor | None: ...

    def list_eligible_contractors(self, tiers: Sequence[str]) -> list[Contractor]: ...

    def list_jobs(self, contractor_id: str, dates: Sequence[date]) -> list[InternalJob]: ...

    def list_day_bookings(self, contractor_id: str, day: date) -> list[JobRecord]: ...

    def get_job(self, job_id: str) -> InternalJob | None: ...

    def update_job_schedule(self, job_id: str, fields: dict) -> None: ...


def format_address(raw: Any) -> Optional[str]:
    """Join the structured client address into a provider-resolvable string."""
    if not raw:
        return None
    if isinstance(raw, str):
        return raw.strip() or None
    if isinstance(raw, dict):
        parts = [raw.get(key) for key in ("street", "city", "state", "postcode")]
        joined = ", ".join(str(part).strip() for part in parts if part and str(part).strip())
        return joined or None
    return None


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _contractor_from_row(row: dict) -> Contractor:
    return Contractor(
        id=str(row["id"]),
        user_id=str(row.get("user_id") or ""),
        subscription_tier=row.get("subscription_tier"),
        is_active=bool(row.get("is_active", True)),
        working_hours=WorkingHours.from_mapping(
            row.get("working_hours"),
            start=settings.default_day_start,
            end=settings.default_day_end,
        ),
    )


def _job_from_row(row: dict) -> InternalJob:
    client = row.get("clients") or {}
    flexibility = row.get("time_flexibility") or "flexible"
    if flexibility not in {"flexible", "time_restricted", "locked"}:
        flexibility = "flexible"
    return InternalJob(
        id=str(row["id"]),
        contractor_id=str(row.get("contractor_id") or ""),
        scheduled_date=_parse_date(row["scheduled_date"]),
        scheduled_time=row.get("scheduled_time"),
        duration_minutes=row.get("duration_minutes"),
        time_flexibility=flexibility,
        locked=bool(row.get("route_optimization_locked")),
        address=format_address(client.get("address")),
        title=row.get("title") or "Job",
        client_name=client.get("name") or "Unknown",
        client_user_id=client.get("user_id"),
        original_scheduled_date=_parse_date(row.get("original_scheduled_date")),
        original_scheduled_time=row.get("original_scheduled_time"),
        original_time_slot=row.get("original_time_slot"),
    )


class SupabaseJobRepository:
    """Job store backed by the Supabase ``contractors``/``jobs``/``bookings`` tables."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise PersistenceError("Supabase is not configured (missing URL or key).")
        return client

    def get_contractor(self, contractor_id: str) -> Contractor | None:
        response = (
            self.client.table("contractors")
            .select("id, user_id, subscription_tier, is_active, working_hours")
            .eq("id", contractor_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return _contractor_from_row(rows[0]) if rows else None

    def find_eligible_contractor(self, contractor_id: str, tiers: Sequence[str]) -> Contractor | None:
        response = (
            self.client.table("contractors")
            .select("id, user_id, subscription_tier, is_active, working_hours")
            .eq("id", contractor_id)
            .in_("subscription_tier", list(tiers))
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return _contractor_from_row(rows[0]) if rows else None

    def list_eligible_contractors(self, tiers: Sequence[str]) -> list[Contractor]:
        response = (
            self.client.table("contractors")
            .select("id, user_id, subscription_tier, is_active, working_hours")
            .in_("subscription_tier", list(tiers))
            .eq("is_active", True)
            .execute()
        )
        return [_contractor_from_row(row) for row in (response.data or [])]

    def list_jobs(self, contractor_id: str, dates: Sequence[date]) -> list[InternalJob]:
        response = (
            self.client.table("jobs")
            .select(_JOB_COLUMNS)
            .eq("contractor_id", contractor_id)
            .in_("scheduled_date", [day.isoformat() for day in dates])
            .in_("status", list(ACTIVE_JOB_STATUSES))
            .order("scheduled_time")
            .execute()
        )
        jobs: list[InternalJob] = []
        for row in response.data or []:
            try:
                jobs.append(_job_from_row(row))
            except (KeyError, ValueError, TypeError) as exc:
                logger.warning(f"Skipping invalid job row {row.get('id')}: {exc}")
        return jobs

    def get_job(self, job_id: str) -> InternalJob | None:
        response = self.client.table("jobs").select(_JOB_COLUMNS).eq("id", job_id).limit(1).execute()
        rows = response.data or []
        return _job_from_row(rows[0]) if rows else None

    def list_day_bookings(self, contractor_id: str, day: date) -> list[JobRecord]:
        """Everything occupying the contractor's time on ``day``: own jobs and platform bookings."""
        records: list[JobRecord] = list(self.list_jobs(contractor_id, [day]))
        response = (
            self.client.table("bookings")
            .select("id, scheduled_date, scheduled_time, duration_minutes")
            .eq("contractor_id", contractor_id)
            .eq("scheduled_date", day.isoformat())
            .in_("status", list(ACTIVE_BOOKING_STATUSES))
            .execute()
        )
        for row in response.data or []:
            records.append(
                PlatformBooking(
                    id=str(row["id"]),
                    scheduled_date=_parse_date(row["scheduled_date"]),
                    scheduled_time=row.get("scheduled_time"),
                    duration_minutes=row.get("duration_minutes"),
                )
            )
        return records

    def update_job_schedule(self, job_id: str, fields: dict) -> None:
        try:
            self.client.table("jobs").update(fields).eq("id", job_id).execute()
        except Exception as exc:
            raise PersistenceError(f"Failed to update job {job_id}: {exc}") from exc
