import pytest

from conftest import MONDAY, FakeJobRepository, external_booking, make_contractor, make_job
from fieldroute.errors import PlacementError
from fieldroute.services.placement.service import OccupiedSlot, occupied_slots, place_job, place_on_day
from fieldroute.services.scheduling.timeutils import time_to_minutes

DAY_END = time_to_minutes("17:00")


def test_free_time_is_accepted_unchanged():
    result = place_job("09:00", 60, [OccupiedSlot("x", 600, 30)], day_end=DAY_END)

    assert not result.shifted
    assert result.time == "09:00"
    assert result.message == ""


def test_conflict_shifts_to_next_free_increment():
    result = place_job("09:00", 60, [OccupiedSlot("x", time_to_minutes("09:30"), 60)], day_end=DAY_END)

    assert result.shifted
    assert result.time == "10:30"
    assert result.requested_time == "09:00"
    assert "09:00" in result.message and "10:30" in result.message


def test_touching_intervals_do_not_conflict():
    result = place_job("10:00", 30, [OccupiedSlot("x", 540, 60)], day_end=DAY_END)

    assert result.time == "10:00"


def test_no_slot_before_day_end_raises():
    with pytest.raises(PlacementError):
        place_job("15:00", 90, [OccupiedSlot("x", time_to_minutes("15:00"), 90)], day_end=DAY_END)


def test_invalid_duration_is_rejected():
    with pytest.raises(ValueError):
        place_job("09:00", 0, [], day_end=DAY_END)


def test_occupied_slots_skip_the_job_being_moved_and_untimed_records():
    records = [make_job("J1", "09:00", "a"), make_job("J2", None, "b"), make_job("J3", "11:00", "c", duration=None)]

    slots = occupied_slots(records, exclude_id="J1", default_duration=45)

    assert slots == [OccupiedSlot("J3", 660, 45)]


def test_place_on_day_considers_platform_bookings():
    repo = FakeJobRepository(
        [make_contractor()],
        [make_job("J1", "09:00", "a")],
        [external_booking("b1", "10:00", 60)],
    )

    result = place_on_day(repo, "c1", MONDAY, "09:30", 60)

    assert result.time == "11:00"
