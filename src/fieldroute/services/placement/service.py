"""Conflict-aware placement of a single manually scheduled job."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from ...config import settings
from ...data.jobs_repository import JobRepository
from ...errors import PlacementError
from ...models.domain import JobRecord
from ..scheduling.timeutils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OccupiedSlot:
    id: str
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    def overlaps(self, start: int, end: int) -> bool:
        return start < self.end and end > self.start


@dataclass(slots=True)
class PlacementResult:
    shifted: bool
    time: str
    requested_time: str
    message: str


def occupied_slots(
    records: Sequence[JobRecord],
    *,
    exclude_id: str | None = None,
    default_duration: int = 60,
) -> list[OccupiedSlot]:
    """Intervals taken by ``records``; untimed records and the job being placed are skipped."""
    slots: list[OccupiedSlot] = []
    for record in records:
        if record.id == exclude_id or not record.scheduled_time:
            continue
        slots.append(
            OccupiedSlot(
                id=record.id,
                start=time_to_minutes(record.scheduled_time),
                duration=record.duration_minutes or default_duration,
            )
        )
    return sorted(slots, key=lambda slot: slot.start)


def place_job(
    desired_time: str,
    duration: int,
    occupied: Sequence[OccupiedSlot],
    *,
    day_end: int,
    increment: int = 15,
) -> PlacementResult:
    """Accept ``desired_time`` if free, else search forward in ``increment`` steps.

    The search stops at the first start whose interval is free and still ends
    by ``day_end``. When none exists a PlacementError is raised rather than
    booking past closing time.
    """
    if duration < 1:
        raise ValueError("duration must be at least one minute")
    if increment < 1:
        raise ValueError("increment must be at least one minute")

    desired_start = time_to_minutes(desired_time)
    requested = minutes_to_time(desired_start)

    def is_free(start: int) -> bool:
        return not any(slot.overlaps(start, start + duration) for slot in occupied)

    if is_free(desired_start):
        return PlacementResult(shifted=False, time=requested, requested_time=requested, message="")

    candidate = desired_start + increment
    while candidate + duration <= day_end:
        if is_free(candidate):
            new_time = minutes_to_time(candidate)
            return PlacementResult(
                shifted=True,
                time=new_time,
                requested_time=requested,
                message=f"Scheduling conflict detected, job moved from {requested} to {new_time}.",
            )
        candidate += increment

    raise PlacementError(
        f"No free {duration}-minute slot after {requested} before {minutes_to_time(day_end)}."
    )


def place_on_day(
    repository: JobRepository,
    contractor_id: str,
    day: date,
    desired_time: str,
    duration: int,
    *,
    job_id: str | None = None,
) -> PlacementResult:
    """Place a job against everything already booked for the contractor on ``day``."""
    contractor = repository.get_contractor(contractor_id)
    schedule = contractor.working_hours.for_date(day) if contractor else None
    day_end = schedule.end_minutes if schedule else time_to_minutes(settings.placement_fallback_day_end)

    records = repository.list_day_bookings(contractor_id, day)
    occupied = occupied_slots(
        records,
        exclude_id=job_id,
        default_duration=settings.default_job_duration_minutes,
    )
    result = place_job(
        desired_time,
        duration,
        occupied,
        day_end=day_end,
        increment=settings.placement_increment_minutes,
    )
    if result.shifted:
        logger.info(f"Placement for contractor {contractor_id} on {day} shifted {result.requested_time} -> {result.time}")
    return result
