"""Domain models for contractors, job records, stops and audit rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Literal, Mapping, Optional, Union

from ..services.scheduling.timeutils import time_to_minutes

FlexibilityClass = Literal["flexible", "time_restricted", "locked"]
HalfDaySlot = Literal["morning", "afternoon"]
RunStatus = Literal["applied", "pending_approval", "potential"]
DecisionKind = Literal["accepted", "declined", "awaiting_customer"]

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(slots=True, frozen=True)
class DaySchedule:
    """Working hours for a single weekday."""

    enabled: bool
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    @property
    def midpoint_minutes(self) -> int:
        return (self.start_minutes + self.end_minutes) // 2


@dataclass(slots=True)
class WorkingHours:
    """Per-weekday working hours keyed by lowercase weekday name."""

    days: dict[str, DaySchedule]

    @classmethod
    def default(cls, start: str = "07:00", end: str = "17:00") -> "WorkingHours":
        weekday = DaySchedule(enabled=True, start=start, end=end)
        weekend = DaySchedule(enabled=False, start="08:00", end="14:00")
        return cls(
            days={
                name: (weekend if name in {"saturday", "sunday"} else weekday)
                for name in WEEKDAY_NAMES
            }
        )

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, object]], start: str = "07:00", end: str = "17:00") -> "WorkingHours":
        """Build from the JSON stored on the contractor row, filling gaps with defaults."""
        hours = cls.default(start=start, end=end)
        if not raw:
            return hours
        for name in WEEKDAY_NAMES:
            entry = raw.get(name)
            if not isinstance(entry, Mapping):
                continue
            fallback = hours.days[name]
            hours.days[name] = DaySchedule(
                enabled=bool(entry.get("enabled", fallback.enabled)),
                start=str(entry.get("start") or fallback.start),
                end=str(entry.get("end") or fallback.end),
            )
        return hours

    def for_date(self, day: date) -> DaySchedule | None:
        """Return the schedule for ``day`` or None when it is not a working day."""
        schedule = self.days.get(WEEKDAY_NAMES[day.weekday()])
        if schedule is None or not schedule.enabled:
            return None
        return schedule


@dataclass(slots=True)
class Contractor:
    id: str
    user_id: str
    subscription_tier: Optional[str]
    is_active: bool
    working_hours: WorkingHours


@dataclass(slots=True)
class InternalJob:
    """A job owned by the contractor; the only record kind the optimizer may move."""

    id: str
    contractor_id: str
    scheduled_date: date
    scheduled_time: Optional[str]
    duration_minutes: Optional[int]
    time_flexibility: FlexibilityClass
    locked: bool
    address: Optional[str]
    title: str = "Job"
    client_name: str = "Unknown"
    client_user_id: Optional[str] = None
    original_scheduled_date: Optional[date] = None
    original_scheduled_time: Optional[str] = None
    original_time_slot: Optional[str] = None
    origin: Literal["internal"] = "internal"

    def schedule_snapshot(self) -> dict:
        """Row fields needed to restore this job's schedule after a failed commit."""
        return {
            "scheduled_date": self.scheduled_date.isoformat(),
            "scheduled_time": self.scheduled_time,
            "original_scheduled_date": (
                self.original_scheduled_date.isoformat() if self.original_scheduled_date else None
            ),
            "original_scheduled_time": self.original_scheduled_time,
            "original_time_slot": self.original_time_slot,
        }


@dataclass(slots=True)
class PlatformBooking:
    """A booking taken through the public platform; it only occupies time."""

    id: str
    scheduled_date: date
    scheduled_time: Optional[str]
    duration_minutes: Optional[int]
    origin: Literal["external"] = "external"


JobRecord = Union[InternalJob, PlatformBooking]


@dataclass(slots=True)
class Stop:
    """Per-run view of a job used by the sequencer and schedule builder."""

    id: str
    day: date
    current_time: Optional[int]
    duration_minutes: int
    flexibility: FlexibilityClass
    locked_for_optimization: bool
    address_key: str
    slot: HalfDaySlot

    @property
    def movable(self) -> bool:
        return not self.locked_for_optimization and self.flexibility != "locked"


@dataclass(slots=True)
class OptimizationRun:
    contractor_id: str
    date: date
    tier: int
    minutes_saved: int
    status: RunStatus
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[str] = None


@dataclass(slots=True)
class SuggestedChange:
    run_id: Optional[str]
    job_id: str
    current_day: date
    current_slot: HalfDaySlot
    suggested_day: date
    suggested_slot: HalfDaySlot
    requires_approval: bool = True


@dataclass(slots=True)
class ApprovalDecision:
    run_id: str
    contractor_id: str
    decision: DecisionKind
    decided_by: str
    decided_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
