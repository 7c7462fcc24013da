"""Stage every schedule mutation of a run, then commit them as one batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol

from ...models.domain import InternalJob
from .base import ScheduleChange

logger = logging.getLogger(__name__)


class ScheduleWriter(Protocol):
    def update_job_schedule(self, job_id: str, fields: dict) -> None: ...


@dataclass(slots=True)
class CommitReport:
    applied: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    rolled_back: list[str] = field(default_factory=list)
    rollback_failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partially_applied(self) -> bool:
        return bool(self.rollback_failed)


class ChangeSet:
    """One staged change per job.

    A later change for the same job replaces the target date/time but keeps
    the first-seen original, so the audit fields always point at the schedule
    the run started from.
    """

    def __init__(self) -> None:
        self._changes: dict[str, ScheduleChange] = {}

    def stage(self, change: ScheduleChange) -> None:
        existing = self._changes.get(change.job_id)
        if existing is None:
            self._changes[change.job_id] = change
            return
        self._changes[change.job_id] = ScheduleChange(
            job_id=change.job_id,
            tier=change.tier,
            original_date=existing.original_date,
            original_time=existing.original_time,
            new_date=change.new_date,
            new_time=change.new_time,
            extra_fields={**existing.extra_fields, **change.extra_fields},
        )

    def stage_all(self, changes: list[ScheduleChange]) -> None:
        for change in changes:
            self.stage(change)

    def pending(self) -> list[ScheduleChange]:
        return [change for change in self._changes.values() if not change.is_noop]

    def __len__(self) -> int:
        return len(self.pending())

    def commit(self, writer: ScheduleWriter, jobs: Mapping[str, InternalJob]) -> CommitReport:
        """Write staged changes in order; on the first failure restore what was written."""
        report = CommitReport()
        for change in self.pending():
            fields = {
                "scheduled_date": change.new_date.isoformat(),
                "scheduled_time": change.new_time,
                "original_scheduled_date": change.original_date.isoformat(),
                "original_scheduled_time": change.original_time,
                **change.extra_fields,
            }
            try:
                writer.update_job_schedule(change.job_id, fields)
            except Exception as exc:
                logger.error(f"Failed to update schedule for job {change.job_id}: {exc}")
                report.failed.append(change.job_id)
                break
            report.applied.append(change.job_id)

        if report.failed:
            self._rollback(writer, jobs, report)
        return report

    def _rollback(self, writer: ScheduleWriter, jobs: Mapping[str, InternalJob], report: CommitReport) -> None:
        for job_id in reversed(report.applied):
            job = jobs.get(job_id)
            if job is None:
                report.rollback_failed.append(job_id)
                continue
            try:
                writer.update_job_schedule(job_id, job.schedule_snapshot())
            except Exception as exc:
                logger.error(f"Rollback failed for job {job_id}: {exc}")
                report.rollback_failed.append(job_id)
                continue
            report.rolled_back.append(job_id)
        logger.warning(
            f"Commit aborted after {len(report.applied)} writes: "
            f"{len(report.rolled_back)} restored, {len(report.rollback_failed)} left partially applied"
        )
