from dataclasses import replace
from datetime import date
from typing import Optional

import pytest

from fieldroute.errors import AuthError
from fieldroute.models.domain import Contractor, InternalJob, PlatformBooking, WorkingHours
from fieldroute.services.routing.models import DistanceCache, DistanceEdge

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)


def make_job(
    job_id: str,
    time: Optional[str],
    address: Optional[str],
    *,
    day: date = MONDAY,
    flexibility: str = "flexible",
    locked: bool = False,
    duration: Optional[int] = 60,
    contractor_id: str = "c1",
    client_user_id: Optional[str] = None,
) -> InternalJob:
    return InternalJob(
        id=job_id,
        contractor_id=contractor_id,
        scheduled_date=day,
        scheduled_time=time,
        duration_minutes=duration,
        time_flexibility=flexibility,
        locked=locked,
        address=address,
        title=f"Job {job_id}",
        client_name=f"Client {job_id}",
        client_user_id=client_user_id,
    )


def make_contractor(contractor_id: str = "c1", user_id: str = "u1", tier: str = "pro") -> Contractor:
    return Contractor(
        id=contractor_id,
        user_id=user_id,
        subscription_tier=tier,
        is_active=True,
        working_hours=WorkingHours.default(),
    )


class FakeJobRepository:
    def __init__(self, contractors=(), jobs=(), bookings=()):
        self.contractors = {contractor.id: contractor for contractor in contractors}
        self.jobs = {job.id: job for job in jobs}
        self.bookings = list(bookings)
        self.writes: list[tuple[str, dict]] = []
        self.fail_on: set[str] = set()
        self.fail_list_for: set[str] = set()

    def get_contractor(self, contractor_id):
        return self.contractors.get(contractor_id)

    def find_eligible_contractor(self, contractor_id, tiers):
        contractor = self.contractors.get(contractor_id)
        if contractor and contractor.is_active and contractor.subscription_tier in tiers:
            return contractor
        return None

    def list_eligible_contractors(self, tiers):
        return [c for c in self.contractors.values() if c.is_active and c.subscription_tier in tiers]

    def list_jobs(self, contractor_id, dates):
        if contractor_id in self.fail_list_for:
            raise RuntimeError("job store unavailable")
        jobs = [
            replace(job)
            for job in self.jobs.values()
            if job.contractor_id == contractor_id and job.scheduled_date in dates
        ]
        return sorted(jobs, key=lambda job: (job.scheduled_date, job.scheduled_time or ""))

    def list_day_bookings(self, contractor_id, day):
        return self.list_jobs(contractor_id, [day]) + [b for b in self.bookings if b.scheduled_date == day]

    def get_job(self, job_id):
        job = self.jobs.get(job_id)
        return replace(job) if job else None

    def update_job_schedule(self, job_id, fields):
        if job_id in self.fail_on:
            raise RuntimeError(f"write rejected for {job_id}")
        self.writes.append((job_id, dict(fields)))
        job = self.jobs[job_id]
        changes = {}
        if "scheduled_date" in fields:
            changes["scheduled_date"] = date.fromisoformat(fields["scheduled_date"])
        if "scheduled_time" in fields:
            changes["scheduled_time"] = fields["scheduled_time"]
        if "original_scheduled_date" in fields:
            value = fields["original_scheduled_date"]
            changes["original_scheduled_date"] = date.fromisoformat(value) if value else None
        if "original_scheduled_time" in fields:
            changes["original_scheduled_time"] = fields["original_scheduled_time"]
        if "original_time_slot" in fields:
            changes["original_time_slot"] = fields["original_time_slot"]
        self.jobs[job_id] = replace(job, **changes)


class FakeAuditStore:
    def __init__(self):
        self.runs = {}
        self.suggestions = []
        self.decisions = []

    def insert_run(self, run):
        run_id = f"run-{len(self.runs) + 1}"
        self.runs[run_id] = replace(run, id=run_id)
        return run_id

    def insert_suggestions(self, suggestions):
        self.suggestions.extend(suggestions)

    def get_run(self, run_id):
        return self.runs.get(run_id)

    def list_runs(self, contractor_id, status):
        return [r for r in self.runs.values() if r.contractor_id == contractor_id and r.status == status]

    def list_suggestions(self, run_id):
        return [s for s in self.suggestions if s.run_id == run_id]

    def insert_decision(self, decision):
        self.decisions.append(decision)

    def list_decisions(self, run_id):
        return [d for d in self.decisions if d.run_id == run_id]


class FakeNotificationSink:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, title, message, kind):
        self.sent.append({"user_id": user_id, "title": title, "message": message, "kind": kind})


class FakeIdentityResolver:
    def __init__(self, tokens=None):
        self.tokens = tokens or {"token-u1": "u1"}

    def user_id_for_token(self, token):
        if token not in self.tokens:
            raise AuthError("Unauthorized")
        return self.tokens[token]


class LineOracle:
    """Travel time is the distance between addresses placed on a number line."""

    def __init__(self, positions, unknown=()):
        self.positions = positions
        self.unknown = set(unknown)
        self.calls = 0

    def resolve(self, origins, destinations=None, cache=None):
        self.calls += 1
        cache = cache if cache is not None else DistanceCache()
        destinations = list(destinations if destinations is not None else origins)
        for origin in origins:
            for destination in destinations:
                if origin.id == destination.id or (origin.id, destination.id) in self.unknown:
                    continue
                minutes = abs(self.positions[origin.address] - self.positions[destination.address])
                cache.add(DistanceEdge(origin.id, destination.id, minutes))
        return cache

    def check_health(self):
        return True


@pytest.fixture
def audit():
    return FakeAuditStore()


@pytest.fixture
def notifier():
    return FakeNotificationSink()


@pytest.fixture
def identity():
    return FakeIdentityResolver()


def external_booking(booking_id: str, time: str, duration: int, day: date = MONDAY) -> PlatformBooking:
    return PlatformBooking(id=booking_id, scheduled_date=day, scheduled_time=time, duration_minutes=duration)
