"""Tier 1: reorder each day's independent stop groups.

Order changes inside a half-day do not alter what the customer was promised,
so results apply without approval.
"""

from __future__ import annotations

import logging

from ...models.domain import Stop
from ..scheduling.timeutils import minutes_to_time
from .base import (
    DayPlan,
    OptimizationContext,
    OptimizationTier,
    ScheduleChange,
    TierResult,
    best_schedule,
)

logger = logging.getLogger(__name__)


def _groups(plan: DayPlan) -> list[tuple[str, list[Stop], int]]:
    movable = [stop for stop in plan.stops if stop.movable]
    return [
        ("flexible", [s for s in movable if s.flexibility == "flexible"], plan.schedule.start_minutes),
        (
            "restricted-morning",
            [s for s in movable if s.flexibility == "time_restricted" and s.slot == "morning"],
            plan.schedule.start_minutes,
        ),
        (
            "restricted-afternoon",
            [s for s in movable if s.flexibility == "time_restricted" and s.slot == "afternoon"],
            plan.schedule.midpoint_minutes,
        ),
    ]


class IntraDayReorder(OptimizationTier):
    tier = 1

    def evaluate(self, context: OptimizationContext) -> list[TierResult]:
        results: list[TierResult] = []
        for plan in context.days:
            result = self._evaluate_day(plan, context)
            if result is not None:
                results.append(result)
        return results

    def _evaluate_day(self, plan: DayPlan, context: OptimizationContext) -> TierResult | None:
        result = TierResult(tier=self.tier, day=plan.day, minutes_saved=0)
        by_id = {stop.id: stop for stop in plan.stops}

        for label, stops, anchor in _groups(plan):
            if not stops:
                continue
            if len(stops) == 1:
                stop = stops[0]
                result.changes.append(self._change(stop, minutes_to_time(anchor)))
                continue

            schedule, saved = best_schedule(stops, context.cache, anchor, local_search=context.local_search)
            result.unresolved_edges += schedule.unknown_legs
            if saved <= self.threshold_minutes:
                continue
            logger.debug(f"{plan.day} {label}: reorder saves {saved} min")
            result.minutes_saved += saved
            if label == "flexible":
                result.flexible_minutes += saved
            for scheduled in schedule.stops:
                result.changes.append(self._change(by_id[scheduled.stop_id], scheduled.start_time))

        result.changes = [change for change in result.changes if not change.is_noop]
        if not result.changes and result.minutes_saved <= 0:
            return None
        return result

    def _change(self, stop: Stop, new_time: str) -> ScheduleChange:
        original_time = minutes_to_time(stop.current_time) if stop.current_time is not None else None
        return ScheduleChange(
            job_id=stop.id,
            tier=self.tier,
            original_date=stop.day,
            original_time=original_time,
            new_date=stop.day,
            new_time=new_time,
        )
