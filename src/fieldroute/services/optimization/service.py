"""Route optimization orchestration service."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Optional, Sequence

from ...data.jobs_repository import JobRepository
from ...errors import EligibilityError, OwnershipError, PersistenceError
from ...models.domain import Contractor, InternalJob, OptimizationRun, SuggestedChange
from ...persistence.audit import AuditStore
from ...persistence.notifications import ROUTE_OPTIMIZATION, UPGRADE_TEASER, NotificationSink
from ..routing.distance_oracle import DistanceOracle
from ..routing.models import DistanceCache, Location, route_travel_minutes
from ..routing.sequencer import sequence_route
from .base import TierResult, current_order
from .context import RunOptions, build_context, build_stops
from .selector import evaluate_tiers
from .staging import ChangeSet

logger = logging.getLogger(__name__)


def _result_status(result: TierResult, dry_run: bool) -> str:
    if dry_run:
        return "potential"
    return "pending_approval" if result.requires_approval else "applied"


def drop_restaged_savings(results: list[TierResult]) -> list[TierResult]:
    """Remove tier-1 work on flexible stops that a tier-2 layout replaces.

    Tier 2 restages every flexible stop in the window, measured against the
    current layout, so the tier-1 reorder of those stops never takes effect.
    """
    restaged = {change.job_id for result in results if result.tier == 2 for change in result.changes}
    if not restaged:
        return results

    kept: list[TierResult] = []
    for result in results:
        if result.tier == 1:
            result.minutes_saved -= result.flexible_minutes
            result.flexible_minutes = 0
            result.changes = [change for change in result.changes if change.job_id not in restaged]
            if not result.changes and result.minutes_saved <= 0:
                continue
        kept.append(result)
    return kept


class RouteOptimizationService:
    """Runs the tiered optimization for one contractor or for every eligible one.

    A dry run evaluates and reports without writing anything. An applied run
    commits tier 1/2 changes as one batch and records tier 3 as a proposal.
    """

    def __init__(
        self,
        jobs: JobRepository,
        audit: AuditStore,
        notifier: NotificationSink,
        oracle: DistanceOracle,
        options: RunOptions | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.jobs = jobs
        self.audit = audit
        self.notifier = notifier
        self.oracle = oracle
        self.options = options or RunOptions()
        self._today = today

    def window(self) -> list[date]:
        start = self._today()
        return [start + timedelta(days=offset) for offset in range(self.options.lookahead_days)]

    # ------------------------------------------------------------------ caller

    def authorize(self, user_id: str, contractor_id: str) -> Contractor:
        contractor = self.jobs.get_contractor(contractor_id)
        if contractor is None or contractor.user_id != user_id:
            raise OwnershipError("Forbidden")
        eligible = self.jobs.find_eligible_contractor(contractor_id, self.options.eligible_tiers)
        if eligible is None:
            raise EligibilityError("Route optimization is not available for this contractor")
        return eligible

    def run_for_caller(self, user_id: str, contractor_id: str, *, preview: bool = False) -> dict[str, Any]:
        contractor = self.authorize(user_id, contractor_id)
        result = self.run_for_contractor(contractor, dry_run=preview)
        if result is None:
            return {"level": 0, "timeSaved": 0, "status": "no_optimization", "details": []}
        return result

    # --------------------------------------------------------------- single run

    def run_for_contractor(self, contractor: Contractor, *, dry_run: bool) -> Optional[dict[str, Any]]:
        dates = self.window()
        jobs = self.jobs.list_jobs(contractor.id, dates)
        if len(jobs) < 2:
            logger.info(f"Contractor {contractor.id}: {len(jobs)} jobs in window, nothing to optimize")
            return None

        stops = build_stops(jobs, contractor.working_hours, self.options)
        if len(stops) < 2:
            logger.info(f"Contractor {contractor.id}: fewer than two routable jobs")
            return None

        context = build_context(contractor, stops, dates, self.oracle, self.options)
        results = drop_restaged_savings(
            evaluate_tiers(context, self.options.strategy_version, self.options.thresholds)
        )
        if not results:
            return None

        unresolved = sum(result.unresolved_edges for result in results)
        if unresolved:
            logger.warning(
                f"Contractor {contractor.id}: {unresolved} legs had no travel time and were scored as zero"
            )

        changeset = ChangeSet()
        for result in results:
            changeset.stage_all(result.changes)

        jobs_by_id = {job.id: job for job in jobs}
        if not dry_run:
            self._apply(contractor, results, changeset, jobs_by_id)

        summary = {
            "level": max(result.tier for result in results),
            "timeSaved": sum(result.minutes_saved for result in results),
            "status": "potential" if dry_run else (
                "pending_approval" if any(r.requires_approval for r in results) else "applied"
            ),
            "details": [
                {
                    "level": result.tier,
                    "timeSaved": result.minutes_saved,
                    "status": _result_status(result, dry_run),
                    "date": result.day.isoformat(),
                    "unresolvedEdges": result.unresolved_edges,
                }
                for result in results
            ],
        }
        if dry_run:
            summary["proposedChanges"] = self._proposed_changes(results, changeset, jobs_by_id)
        return summary

    def _apply(
        self,
        contractor: Contractor,
        results: Sequence[TierResult],
        changeset: ChangeSet,
        jobs_by_id: dict[str, InternalJob],
    ) -> None:
        report = changeset.commit(self.jobs, jobs_by_id)
        if not report.ok:
            logger.error(
                f"Contractor {contractor.id}: schedule commit failed "
                f"(applied={report.applied}, failed={report.failed}, rollback_failed={report.rollback_failed})"
            )
            if report.partially_applied:
                logger.critical(f"Contractor {contractor.id}: jobs left partially applied: {report.rollback_failed}")
            raise PersistenceError("Failed to apply schedule changes")

        for result in results:
            if result.requires_approval:
                self._propose(contractor, result)
            elif result.records_run:
                self.audit.insert_run(
                    OptimizationRun(
                        contractor_id=contractor.id,
                        date=result.day,
                        tier=result.tier,
                        minutes_saved=result.minutes_saved,
                        status="applied",
                    )
                )
        logger.info(f"Contractor {contractor.id}: applied {len(report.applied)} schedule changes")

    def _propose(self, contractor: Contractor, result: TierResult) -> None:
        run_id = self.audit.insert_run(
            OptimizationRun(
                contractor_id=contractor.id,
                date=result.day,
                tier=result.tier,
                minutes_saved=result.minutes_saved,
                status="pending_approval",
            )
        )
        self.audit.insert_suggestions(
            [
                SuggestedChange(
                    run_id=run_id,
                    job_id=s.job_id,
                    current_day=s.current_day,
                    current_slot=s.current_slot,
                    suggested_day=s.suggested_day,
                    suggested_slot=s.suggested_slot,
                    requires_approval=s.requires_approval,
                )
                for s in result.suggestions
            ]
        )
        self.notifier.notify(
            contractor.user_id,
            "🗺️ Route Optimization Available",
            f"A route optimization could save you {result.minutes_saved} minutes on "
            f"{result.day.isoformat()}. Review the suggested changes.",
            ROUTE_OPTIMIZATION,
        )

    @staticmethod
    def _proposed_changes(
        results: Sequence[TierResult],
        changeset: ChangeSet,
        jobs_by_id: dict[str, InternalJob],
    ) -> list[dict[str, Any]]:
        proposed: list[dict[str, Any]] = []
        for change in changeset.pending():
            job = jobs_by_id.get(change.job_id)
            proposed.append(
                {
                    "jobId": change.job_id,
                    "level": change.tier,
                    "title": job.title if job else "Job",
                    "clientName": job.client_name if job else "Unknown",
                    "date": change.original_date.isoformat(),
                    "currentTime": change.original_time,
                    "newDate": change.new_date.isoformat(),
                    "newTime": change.new_time,
                    "requiresApproval": False,
                }
            )
        for result in results:
            for suggestion in result.suggestions:
                job = jobs_by_id.get(suggestion.job_id)
                proposed.append(
                    {
                        "jobId": suggestion.job_id,
                        "level": result.tier,
                        "title": job.title if job else "Job",
                        "clientName": job.client_name if job else "Unknown",
                        "date": suggestion.current_day.isoformat(),
                        "currentSlot": suggestion.current_slot,
                        "newDate": suggestion.suggested_day.isoformat(),
                        "suggestedSlot": suggestion.suggested_slot,
                        "requiresApproval": True,
                    }
                )
        return proposed

    # -------------------------------------------------------------------- batch

    def run_batch(self) -> list[dict[str, Any]]:
        """Dry-run every eligible contractor and notify those with savings.

        A failure for one contractor is logged and reported; the batch moves on.
        """
        results: list[dict[str, Any]] = []
        contractors = self.jobs.list_eligible_contractors(self.options.eligible_tiers)
        logger.info(f"Batch optimization over {len(contractors)} contractors")

        for contractor in contractors:
            try:
                result = self.run_for_contractor(contractor, dry_run=True)
                if result and result["timeSaved"] > 0:
                    self.notifier.notify(
                        contractor.user_id,
                        "🗺️ Route Optimization Available",
                        f"Optimizing your routes could save {result['timeSaved']} minutes over the next "
                        f"{self.options.lookahead_days} days. Open Jobs → Run Optimization to apply.",
                        ROUTE_OPTIMIZATION,
                    )
                results.append({"contractorId": contractor.id, "result": result})
            except Exception as exc:
                logger.exception(f"Batch optimization failed for contractor {contractor.id}")
                results.append({"contractorId": contractor.id, "error": str(exc)})

        for contractor in self.jobs.list_eligible_contractors(self.options.teaser_tiers):
            try:
                self.send_teaser(contractor)
            except Exception:
                logger.exception(f"Upgrade teaser failed for contractor {contractor.id}")

        return results

    def send_teaser(self, contractor: Contractor) -> Optional[int]:
        """Estimate today's saving from plain resequencing; notify above the teaser threshold."""
        today = self._today()
        jobs = self.jobs.list_jobs(contractor.id, [today])
        stops = build_stops(jobs, contractor.working_hours, self.options)
        if len(stops) < 2:
            return None

        cache = DistanceCache()
        self.oracle.resolve([Location(id=s.id, address=s.address_key) for s in stops], cache=cache)
        ids = [stop.id for stop in current_order(stops)]
        optimized = sequence_route(ids, cache, local_search=self.options.local_search)
        if cache.missing_edges(optimized):
            logger.info(f"Contractor {contractor.id}: teaser skipped, resequenced route has unknown legs")
            return 0
        saving = route_travel_minutes(ids, cache) - route_travel_minutes(optimized, cache)

        if saving > self.options.teaser_threshold:
            self.notifier.notify(
                contractor.user_id,
                "💡 Route Optimization Available",
                f"Route Optimization could save you {saving} minutes today! "
                "Upgrade to Pro to enable automatic scheduling.",
                UPGRADE_TEASER,
            )
        return saving
