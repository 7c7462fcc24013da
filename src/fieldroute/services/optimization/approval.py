"""Approval workflow for restricted-slot proposals."""

from __future__ import annotations

import logging
from typing import Any

from ...data.jobs_repository import JobRepository
from ...errors import ApprovalError, OwnershipError, PersistenceError
from ...models.domain import (
    ApprovalDecision,
    Contractor,
    DecisionKind,
    OptimizationRun,
    SuggestedChange,
    WorkingHours,
)
from ...persistence.audit import AuditStore
from ...persistence.notifications import ROUTE_CHANGE_REQUEST, NotificationSink
from ..scheduling.timeutils import minutes_to_time
from .base import ScheduleChange
from .context import RunOptions
from .staging import ChangeSet

logger = logging.getLogger(__name__)

TERMINAL_DECISIONS: frozenset[str] = frozenset({"accepted", "declined"})

SLOT_LABELS = {"morning": "Morning", "afternoon": "Afternoon"}


def suggestion_to_dict(suggestion: SuggestedChange) -> dict[str, Any]:
    return {
        "jobId": suggestion.job_id,
        "currentDate": suggestion.current_day.isoformat(),
        "currentSlot": suggestion.current_slot,
        "suggestedDate": suggestion.suggested_day.isoformat(),
        "suggestedSlot": suggestion.suggested_slot,
        "requiresApproval": suggestion.requires_approval,
    }


class ApprovalService:
    """Resolve pending proposals. Decisions are appended, never overwritten."""

    def __init__(
        self,
        jobs: JobRepository,
        audit: AuditStore,
        notifier: NotificationSink,
        options: RunOptions | None = None,
    ) -> None:
        self.jobs = jobs
        self.audit = audit
        self.notifier = notifier
        self.options = options or RunOptions()

    def _owned_contractor(self, user_id: str, contractor_id: str) -> Contractor:
        contractor = self.jobs.get_contractor(contractor_id)
        if contractor is None or contractor.user_id != user_id:
            raise OwnershipError("Forbidden")
        return contractor

    def _is_open(self, run: OptimizationRun) -> bool:
        return not any(d.decision in TERMINAL_DECISIONS for d in self.audit.list_decisions(run.id))

    def _open_run(self, user_id: str, run_id: str) -> tuple[OptimizationRun, Contractor]:
        run = self.audit.get_run(run_id)
        if run is None:
            raise ApprovalError(f"Optimization '{run_id}' not found")
        contractor = self._owned_contractor(user_id, run.contractor_id)
        if run.status != "pending_approval":
            raise ApprovalError(f"Optimization '{run_id}' does not await approval")
        if not self._is_open(run):
            raise ApprovalError(f"Optimization '{run_id}' has already been decided")
        return run, contractor

    def _record(self, run: OptimizationRun, decision: DecisionKind, user_id: str) -> None:
        self.audit.insert_decision(
            ApprovalDecision(
                run_id=run.id,
                contractor_id=run.contractor_id,
                decision=decision,
                decided_by=user_id,
            )
        )
        logger.info(f"Optimization {run.id}: recorded decision '{decision}'")

    def list_pending(self, user_id: str, contractor_id: str) -> list[dict[str, Any]]:
        self._owned_contractor(user_id, contractor_id)
        pending: list[dict[str, Any]] = []
        for run in self.audit.list_runs(contractor_id, "pending_approval"):
            if not self._is_open(run):
                continue
            pending.append(
                {
                    "id": run.id,
                    "date": run.date.isoformat(),
                    "level": run.tier,
                    "timeSaved": run.minutes_saved,
                    "createdAt": run.created_at.isoformat(),
                    "suggestions": [suggestion_to_dict(s) for s in self.audit.list_suggestions(run.id)],
                }
            )
        return pending

    def accept(self, user_id: str, run_id: str) -> dict[str, Any]:
        """Move each suggested job into its new slot through one staged commit."""
        run, contractor = self._open_run(user_id, run_id)
        suggestions = self.audit.list_suggestions(run_id)
        fallback = WorkingHours.default(self.options.default_day_start, self.options.default_day_end)

        changeset = ChangeSet()
        jobs = {}
        for suggestion in suggestions:
            job = self.jobs.get_job(suggestion.job_id)
            if job is None:
                raise ApprovalError(f"Job '{suggestion.job_id}' no longer exists")
            jobs[job.id] = job
            schedule = (
                contractor.working_hours.for_date(suggestion.suggested_day)
                or fallback.days["monday"]
            )
            anchor = schedule.start_minutes if suggestion.suggested_slot == "morning" else schedule.midpoint_minutes
            changeset.stage(
                ScheduleChange(
                    job_id=job.id,
                    tier=run.tier,
                    original_date=job.scheduled_date,
                    original_time=job.scheduled_time,
                    new_date=suggestion.suggested_day,
                    new_time=minutes_to_time(anchor),
                    extra_fields={"original_time_slot": suggestion.current_slot},
                )
            )

        report = changeset.commit(self.jobs, jobs)
        if not report.ok:
            raise PersistenceError("Failed to apply schedule changes")
        self._record(run, "accepted", user_id)
        return {"runId": run.id, "status": "accepted", "applied": len(report.applied)}

    def decline(self, user_id: str, run_id: str) -> dict[str, Any]:
        run, _ = self._open_run(user_id, run_id)
        self._record(run, "declined", user_id)
        return {"runId": run.id, "status": "declined"}

    def request_customer_approval(self, user_id: str, run_id: str) -> dict[str, Any]:
        run, _ = self._open_run(user_id, run_id)
        notified = 0
        for suggestion in self.audit.list_suggestions(run_id):
            if not suggestion.requires_approval:
                continue
            job = self.jobs.get_job(suggestion.job_id)
            if job is None or not job.client_user_id:
                logger.info(f"Optimization {run_id}: no customer account for job {suggestion.job_id}")
                continue
            self.notifier.notify(
                job.client_user_id,
                "📅 Schedule Change Request",
                f"Your contractor has requested to move your booking from "
                f"{SLOT_LABELS[suggestion.current_slot]} to {SLOT_LABELS[suggestion.suggested_slot]} "
                f"on {suggestion.suggested_day.strftime('%A, %d %b')}. Please review in your portal.",
                ROUTE_CHANGE_REQUEST,
            )
            notified += 1
        self._record(run, "awaiting_customer", user_id)
        return {"runId": run.id, "status": "awaiting_customer", "notified": notified}
