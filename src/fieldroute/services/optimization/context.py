"""Turn job records into per-run stops and day plans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from ...config import Settings
from ...models.domain import Contractor, InternalJob, Stop, WorkingHours
from ..routing.distance_oracle import DistanceOracle
from ..routing.models import DistanceCache, Location
from ..scheduling.timeutils import time_to_minutes
from .base import DayPlan, OptimizationContext
from .cross_day import MIN_FLEXIBLE_STOPS
from .selector import TierThresholds

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RunOptions:
    lookahead_days: int = 3
    default_duration: int = 60
    default_day_start: str = "07:00"
    default_day_end: str = "17:00"
    thresholds: TierThresholds = TierThresholds()
    teaser_threshold: int = 15
    eligible_tiers: tuple[str, ...] = ("starter", "pro")
    teaser_tiers: tuple[str, ...] = ("starter",)
    local_search: bool = True
    strategy_version: str = "v1"

    @classmethod
    def from_settings(cls, settings: Settings) -> "RunOptions":
        return cls(
            lookahead_days=settings.lookahead_days,
            default_duration=settings.default_job_duration_minutes,
            default_day_start=settings.default_day_start,
            default_day_end=settings.default_day_end,
            thresholds=TierThresholds(
                intra_day=settings.intra_day_threshold_minutes,
                cross_day=settings.cross_day_threshold_minutes,
                slot_swap=settings.slot_swap_threshold_minutes,
            ),
            teaser_threshold=settings.teaser_threshold_minutes,
            eligible_tiers=settings.eligible_subscription_tiers,
            teaser_tiers=settings.teaser_subscription_tiers,
            local_search=settings.local_search_enabled,
            strategy_version=settings.strategy_version,
        )


def _current_minutes(job: InternalJob) -> int | None:
    if not job.scheduled_time:
        return None
    try:
        return time_to_minutes(job.scheduled_time)
    except ValueError:
        logger.warning(f"Job {job.id} has unparseable time '{job.scheduled_time}', treating as untimed")
        return None


def build_stops(
    jobs: Sequence[InternalJob],
    working_hours: WorkingHours,
    options: RunOptions,
) -> list[Stop]:
    """Derive stops from jobs; jobs without a resolvable address are left out."""
    fallback = WorkingHours.default(options.default_day_start, options.default_day_end)
    stops: list[Stop] = []
    for job in jobs:
        if not job.address:
            continue
        schedule = working_hours.for_date(job.scheduled_date) or fallback.days["monday"]
        current = _current_minutes(job)
        slot = "afternoon" if current is not None and current >= schedule.midpoint_minutes else "morning"
        stops.append(
            Stop(
                id=job.id,
                day=job.scheduled_date,
                current_time=current,
                duration_minutes=job.duration_minutes or options.default_duration,
                flexibility=job.time_flexibility,
                locked_for_optimization=job.locked,
                address_key=job.address,
                slot=slot,
            )
        )
    return stops


def build_day_plans(stops: Sequence[Stop], working_hours: WorkingHours, dates: Sequence[date]) -> list[DayPlan]:
    plans: list[DayPlan] = []
    for day in dates:
        schedule = working_hours.for_date(day)
        if schedule is None:
            logger.info(f"Skipping {day}: not a working day")
            continue
        day_stops = [stop for stop in stops if stop.day == day]
        if day_stops:
            plans.append(DayPlan(day=day, schedule=schedule, stops=day_stops))
    return plans


def _locations(stops: Sequence[Stop]) -> list[Location]:
    return [Location(id=stop.id, address=stop.address_key) for stop in stops]


def build_context(
    contractor: Contractor,
    stops: Sequence[Stop],
    dates: Sequence[date],
    oracle: DistanceOracle,
    options: RunOptions,
) -> OptimizationContext:
    """Resolve the travel times every tier will need into one run cache."""
    cache = DistanceCache()
    plans = build_day_plans(stops, contractor.working_hours, dates)

    for plan in plans:
        if len(plan.stops) >= 2:
            oracle.resolve(_locations(plan.stops), cache=cache)

    flexible = [s for plan in plans for s in plan.stops if s.movable and s.flexibility == "flexible"]
    if len(flexible) >= MIN_FLEXIBLE_STOPS:
        oracle.resolve(_locations(flexible), cache=cache)

    return OptimizationContext(
        contractor=contractor,
        days=plans,
        cache=cache,
        local_search=options.local_search,
    )
