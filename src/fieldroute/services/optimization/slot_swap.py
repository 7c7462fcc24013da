"""Tier 3: propose moving time-restricted stops between half-day slots.

A slot move breaks the half-day window promised to the customer, so this
tier only ever produces proposals.
"""

from __future__ import annotations

import logging

from ...models.domain import HalfDaySlot, SuggestedChange
from ..routing.models import route_travel_minutes
from ..routing.sequencer import sequence_route
from .base import DayPlan, OptimizationContext, OptimizationTier, TierResult, current_order

logger = logging.getLogger(__name__)


class RestrictedSlotSwap(OptimizationTier):
    tier = 3

    def evaluate(self, context: OptimizationContext) -> list[TierResult]:
        results: list[TierResult] = []
        for plan in context.days:
            result = self._evaluate_day(plan, context)
            if result is not None:
                results.append(result)
        return results

    def _evaluate_day(self, plan: DayPlan, context: OptimizationContext) -> TierResult | None:
        restricted = [s for s in plan.stops if s.movable and s.flexibility == "time_restricted"]
        morning = current_order([s for s in restricted if s.slot == "morning"])
        afternoon = current_order([s for s in restricted if s.slot == "afternoon"])
        if not morning or not afternoon:
            return None

        cache = context.cache
        morning_ids = [s.id for s in morning]
        afternoon_ids = [s.id for s in afternoon]
        current_total = route_travel_minutes(morning_ids, cache) + route_travel_minutes(afternoon_ids, cache)

        optimized = sequence_route(morning_ids + afternoon_ids, cache, local_search=context.local_search)
        new_morning = optimized[: len(morning_ids)]
        new_afternoon = optimized[len(morning_ids) :]
        if cache.missing_edges(new_morning) or cache.missing_edges(new_afternoon):
            logger.debug(f"{plan.day}: slot swap proposal has unknown legs, keeping current slots")
            return None

        new_total = route_travel_minutes(new_morning, cache) + route_travel_minutes(new_afternoon, cache)
        saved = current_total - new_total

        if saved <= self.threshold_minutes:
            logger.debug(f"{plan.day}: slot swap saves {saved} min, below threshold {self.threshold_minutes}")
            return None

        by_id = {stop.id: stop for stop in restricted}
        suggestions: list[SuggestedChange] = []
        targets: list[tuple[list[str], HalfDaySlot]] = [(new_morning, "morning"), (new_afternoon, "afternoon")]
        for ids, slot in targets:
            for job_id in ids:
                stop = by_id[job_id]
                if stop.slot == slot:
                    continue
                suggestions.append(
                    SuggestedChange(
                        run_id=None,
                        job_id=job_id,
                        current_day=plan.day,
                        current_slot=stop.slot,
                        suggested_day=plan.day,
                        suggested_slot=slot,
                        requires_approval=True,
                    )
                )

        if not suggestions:
            # The saving comes from reordering within slots, which tier 1 covers.
            return None

        return TierResult(
            tier=self.tier,
            day=plan.day,
            minutes_saved=saved,
            suggestions=suggestions,
            unresolved_edges=cache.missing_edges(morning_ids) + cache.missing_edges(afternoon_ids),
            requires_approval=True,
        )
