"""Tier 2: rebalance flexible stops across the days of the run window."""

from __future__ import annotations

import logging

from ...models.domain import Stop
from ..routing.models import route_travel_minutes
from ..routing.sequencer import sequence_route
from ..scheduling.builder import build_schedule
from ..scheduling.timeutils import minutes_to_time
from .base import (
    DayPlan,
    OptimizationContext,
    OptimizationTier,
    ScheduleChange,
    TierResult,
    current_order,
    durations_for,
)

logger = logging.getLogger(__name__)

MIN_FLEXIBLE_STOPS = 3


class CrossDayRebalance(OptimizationTier):
    """Sequence every flexible stop globally, then cut the sequence back onto
    the days in proportion to each day's original stop count."""

    tier = 2

    def evaluate(self, context: OptimizationContext) -> list[TierResult]:
        if not context.days:
            return []

        per_day: list[tuple[DayPlan, list[Stop]]] = []
        for plan in context.days:
            flexible = [s for s in plan.stops if s.movable and s.flexibility == "flexible"]
            per_day.append((plan, current_order(flexible)))

        all_flexible = [stop for _, stops in per_day for stop in stops]
        if len(all_flexible) < MIN_FLEXIBLE_STOPS:
            return []
        if sum(1 for _, stops in per_day if stops) < 2:
            return []

        cache = context.cache
        current_total = sum(route_travel_minutes([s.id for s in stops], cache) for _, stops in per_day)

        global_order = sequence_route([s.id for s in all_flexible], cache, local_search=context.local_search)
        distributed: list[tuple[DayPlan, list[str]]] = []
        cursor = 0
        for plan, stops in per_day:
            distributed.append((plan, global_order[cursor : cursor + len(stops)]))
            cursor += len(stops)

        if any(cache.missing_edges(ids) for _, ids in distributed):
            logger.debug("Cross-day rebalance: proposed days contain unknown legs, keeping current layout")
            return []

        new_total = sum(route_travel_minutes(ids, cache) for _, ids in distributed)
        saved = current_total - new_total
        unresolved = sum(cache.missing_edges([s.id for s in stops]) for _, stops in per_day)
        logger.debug(f"Cross-day rebalance: current={current_total} new={new_total} saved={saved}")

        if saved <= self.threshold_minutes:
            return []

        by_id = {stop.id: stop for stop in all_flexible}
        durations = durations_for(all_flexible)
        result = TierResult(
            tier=self.tier,
            day=context.days[0].day,
            minutes_saved=saved,
            unresolved_edges=unresolved,
        )
        for plan, ids in distributed:
            schedule = build_schedule(ids, durations, cache, plan.schedule.start_minutes)
            for scheduled in schedule.stops:
                stop = by_id[scheduled.stop_id]
                result.changes.append(
                    ScheduleChange(
                        job_id=stop.id,
                        tier=self.tier,
                        original_date=stop.day,
                        original_time=minutes_to_time(stop.current_time) if stop.current_time is not None else None,
                        new_date=plan.day,
                        new_time=scheduled.start_time,
                    )
                )
        return [result]
