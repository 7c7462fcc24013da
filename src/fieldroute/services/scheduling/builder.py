"""Sequential start-time computation for an ordered route."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from ..routing.models import DistanceCache
from .timeutils import ceil_to_5, minutes_to_time


@dataclass(slots=True)
class ScheduledStop:
    stop_id: str
    start: int
    end: int
    travel_from_prev: int

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)


@dataclass(slots=True)
class Schedule:
    window_start: int
    stops: list[ScheduledStop] = field(default_factory=list)
    unknown_legs: int = 0

    @property
    def span(self) -> int:
        """Minutes from the window start to the end of the last stop."""
        if not self.stops:
            return 0
        return self.stops[-1].end - self.window_start

    def times(self) -> dict[str, str]:
        return {stop.stop_id: stop.start_time for stop in self.stops}


def build_schedule(
    order: Sequence[str],
    durations: Mapping[str, int],
    cache: DistanceCache,
    window_start: int,
) -> Schedule:
    """Lay ``order`` out back to back from ``window_start``.

    ``start[i] = end[i-1] + ceil_to_5(travel)``. Unknown travel counts as
    zero; such legs are tallied in ``unknown_legs`` so callers can report them.
    """
    schedule = Schedule(window_start=window_start)
    current = window_start
    previous: str | None = None

    for stop_id in order:
        travel = 0
        if previous is not None:
            minutes = cache.get(previous, stop_id)
            if minutes is None:
                schedule.unknown_legs += 1
            else:
                travel = ceil_to_5(minutes)
        start = current + travel
        end = start + durations[stop_id]
        schedule.stops.append(ScheduledStop(stop_id=stop_id, start=start, end=end, travel_from_prev=travel))
        current = end
        previous = stop_id

    return schedule
