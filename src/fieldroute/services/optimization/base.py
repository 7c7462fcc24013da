"""Base classes for optimization tier implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from ...models.domain import Contractor, DaySchedule, Stop, SuggestedChange
from ..routing.models import DistanceCache
from ..routing.sequencer import sequence_route
from ..scheduling.builder import Schedule, build_schedule


@dataclass(slots=True)
class DayPlan:
    """Stops on one working day of the run window."""

    day: date
    schedule: DaySchedule
    stops: list[Stop]


@dataclass(slots=True)
class OptimizationContext:
    contractor: Contractor
    days: list[DayPlan]
    cache: DistanceCache
    local_search: bool = True


@dataclass(slots=True)
class ScheduleChange:
    """A staged mutation of one job's date/time."""

    job_id: str
    tier: int
    original_date: date
    original_time: Optional[str]
    new_date: date
    new_time: Optional[str]
    extra_fields: dict = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.new_date == self.original_date and self.new_time == self.original_time


@dataclass(slots=True)
class TierResult:
    tier: int
    day: date
    minutes_saved: int
    changes: list[ScheduleChange] = field(default_factory=list)
    suggestions: list[SuggestedChange] = field(default_factory=list)
    unresolved_edges: int = 0
    requires_approval: bool = False
    # Part of minutes_saved that came from reordering flexible stops.
    flexible_minutes: int = 0

    @property
    def records_run(self) -> bool:
        """True when the result is worth an audit row (positive saving)."""
        return self.minutes_saved > 0


def current_order(stops: Sequence[Stop]) -> list[Stop]:
    """Stops in their present visit order: by time, untimed last, then id."""
    return sorted(
        stops,
        key=lambda stop: (stop.current_time is None, stop.current_time or 0, stop.id),
    )


def durations_for(stops: Sequence[Stop]) -> dict[str, int]:
    return {stop.id: stop.duration_minutes for stop in stops}


def best_schedule(
    stops: Sequence[Stop],
    cache: DistanceCache,
    window_start: int,
    *,
    local_search: bool = True,
) -> tuple[Schedule, int]:
    """Return the better of the sequenced and the current layout, and the minutes saved.

    The sequenced layout only wins when every leg of it has a known travel
    time and its span is strictly shorter, so the saving is never negative
    and never rests on an unknown leg scored as zero.
    """
    ordered = current_order(stops)
    ids = [stop.id for stop in ordered]
    durations = durations_for(ordered)
    current = build_schedule(ids, durations, cache, window_start)
    proposed = build_schedule(sequence_route(ids, cache, local_search=local_search), durations, cache, window_start)
    if proposed.unknown_legs == 0 and proposed.span < current.span:
        return proposed, current.span - proposed.span
    return current, 0


class OptimizationTier(ABC):
    """Contract for tier implementations; evaluation never touches storage."""

    tier: int = 0

    def __init__(self, threshold_minutes: int = 0) -> None:
        self.threshold_minutes = threshold_minutes

    @abstractmethod
    def evaluate(self, context: OptimizationContext) -> list[TierResult]:
        raise NotImplementedError
