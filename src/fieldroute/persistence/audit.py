"""Audit persistence for optimization runs, slot suggestions and approval decisions.

Run and suggestion rows are append-only. Approval outcomes are recorded as
separate decision rows instead of updating the run.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Protocol, Sequence

from ..db.supabase import get_supabase_client
from ..errors import PersistenceError
from ..models.domain import ApprovalDecision, OptimizationRun, SuggestedChange

logger = logging.getLogger(__name__)

RUNS_TABLE = "route_optimizations"
SUGGESTIONS_TABLE = "route_optimization_suggestions"
DECISIONS_TABLE = "route_optimization_decisions"


class AuditStore(Protocol):
    def insert_run(self, run: OptimizationRun) -> str: ...

    def insert_suggestions(self, suggestions: Sequence[SuggestedChange]) -> None: ...

    def get_run(self, run_id: str) -> OptimizationRun | None: ...

    def list_runs(self, contractor_id: str, status: str) -> list[OptimizationRun]: ...

    def list_suggestions(self, run_id: str) -> list[SuggestedChange]: ...

    def insert_decision(self, decision: ApprovalDecision) -> None: ...

    def list_decisions(self, run_id: str) -> list[ApprovalDecision]: ...


def _as_date(value: Any) -> date:
    return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def run_from_row(row: dict) -> OptimizationRun:
    return OptimizationRun(
        id=str(row["id"]),
        contractor_id=str(row["contractor_id"]),
        date=_as_date(row["optimization_date"]),
        tier=int(row["level"]),
        minutes_saved=int(row["time_saved_minutes"]),
        status=row["status"],
        created_at=_as_datetime(row["created_at"]),
    )


def suggestion_from_row(row: dict) -> SuggestedChange:
    return SuggestedChange(
        run_id=str(row["route_optimization_id"]),
        job_id=str(row["job_id"]),
        current_day=_as_date(row["current_date_val"]),
        current_slot=row["current_time_slot"],
        suggested_day=_as_date(row["suggested_date"]),
        suggested_slot=row["suggested_time_slot"],
        requires_approval=bool(row.get("requires_customer_approval", True)),
    )


class SupabaseAuditStore:
    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise PersistenceError("Supabase is not configured (missing URL or key).")
        return client

    def insert_run(self, run: OptimizationRun) -> str:
        response = (
            self.client.table(RUNS_TABLE)
            .insert(
                {
                    "contractor_id": run.contractor_id,
                    "optimization_date": run.date.isoformat(),
                    "level": run.tier,
                    "time_saved_minutes": run.minutes_saved,
                    "status": run.status,
                    "created_at": run.created_at.isoformat(),
                }
            )
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise PersistenceError(f"Insert into {RUNS_TABLE} returned no row")
        return str(rows[0]["id"])

    def insert_suggestions(self, suggestions: Sequence[SuggestedChange]) -> None:
        if not suggestions:
            return
        self.client.table(SUGGESTIONS_TABLE).insert(
            [
                {
                    "route_optimization_id": suggestion.run_id,
                    "job_id": suggestion.job_id,
                    "current_date_val": suggestion.current_day.isoformat(),
                    "current_time_slot": suggestion.current_slot,
                    "suggested_date": suggestion.suggested_day.isoformat(),
                    "suggested_time_slot": suggestion.suggested_slot,
                    "requires_customer_approval": suggestion.requires_approval,
                }
                for suggestion in suggestions
            ]
        ).execute()

    def get_run(self, run_id: str) -> OptimizationRun | None:
        response = self.client.table(RUNS_TABLE).select("*").eq("id", run_id).limit(1).execute()
        rows = response.data or []
        return run_from_row(rows[0]) if rows else None

    def list_runs(self, contractor_id: str, status: str) -> list[OptimizationRun]:
        response = (
            self.client.table(RUNS_TABLE)
            .select("*")
            .eq("contractor_id", contractor_id)
            .eq("status", status)
            .order("created_at", desc=True)
            .execute()
        )
        return [run_from_row(row) for row in (response.data or [])]

    def list_suggestions(self, run_id: str) -> list[SuggestedChange]:
        response = self.client.table(SUGGESTIONS_TABLE).select("*").eq("route_optimization_id", run_id).execute()
        return [suggestion_from_row(row) for row in (response.data or [])]

    def insert_decision(self, decision: ApprovalDecision) -> None:
        self.client.table(DECISIONS_TABLE).insert(
            {
                "route_optimization_id": decision.run_id,
                "contractor_id": decision.contractor_id,
                "decision": decision.decision,
                "decided_by": decision.decided_by,
                "decided_at": decision.decided_at.isoformat(),
            }
        ).execute()

    def list_decisions(self, run_id: str) -> list[ApprovalDecision]:
        response = (
            self.client.table(DECISIONS_TABLE)
            .select("*")
            .eq("route_optimization_id", run_id)
            .order("decided_at")
            .execute()
        )
        return [
            ApprovalDecision(
                run_id=str(row["route_optimization_id"]),
                contractor_id=str(row["contractor_id"]),
                decision=row["decision"],
                decided_by=str(row.get("decided_by") or ""),
                decided_at=_as_datetime(row["decided_at"]),
            )
            for row in (response.data or [])
        ]
