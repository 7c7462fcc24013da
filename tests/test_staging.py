from conftest import MONDAY, TUESDAY, FakeJobRepository, make_job
from fieldroute.services.optimization.base import ScheduleChange
from fieldroute.services.optimization.staging import ChangeSet


def _change(job_id, tier, original, new, *, new_date=MONDAY, original_date=MONDAY):
    return ScheduleChange(
        job_id=job_id,
        tier=tier,
        original_date=original_date,
        original_time=original,
        new_date=new_date,
        new_time=new,
    )


def test_later_change_keeps_first_original():
    changes = ChangeSet()
    changes.stage(_change("J1", 1, "09:00", "08:10"))
    changes.stage(_change("J1", 2, "08:10", "07:00", new_date=TUESDAY))

    [merged] = changes.pending()

    assert merged.original_time == "09:00"
    assert merged.original_date == MONDAY
    assert (merged.new_date, merged.new_time) == (TUESDAY, "07:00")


def test_noop_changes_are_not_written():
    changes = ChangeSet()
    changes.stage(_change("J1", 2, "07:00", "07:00"))

    assert len(changes) == 0


def test_commit_writes_new_schedule_and_originals():
    repo = FakeJobRepository(jobs=[make_job("J1", "09:00", "a")])
    changes = ChangeSet()
    changes.stage(_change("J1", 1, "09:00", "08:10"))

    report = changes.commit(repo, {"J1": repo.get_job("J1")})

    assert report.ok
    assert repo.jobs["J1"].scheduled_time == "08:10"
    assert repo.jobs["J1"].original_scheduled_time == "09:00"


def test_failed_commit_rolls_back_earlier_writes():
    jobs = [make_job("J1", "07:00", "a"), make_job("J2", "08:00", "b"), make_job("J3", "09:00", "c")]
    repo = FakeJobRepository(jobs=jobs)
    repo.fail_on = {"J2"}
    snapshot = {job.id: repo.get_job(job.id) for job in jobs}
    changes = ChangeSet()
    changes.stage_all(
        [
            _change("J1", 1, "07:00", "10:00"),
            _change("J2", 1, "08:00", "11:00"),
            _change("J3", 1, "09:00", "12:00"),
        ]
    )

    report = changes.commit(repo, snapshot)

    assert not report.ok
    assert report.failed == ["J2"]
    assert report.rolled_back == ["J1"]
    assert not report.partially_applied
    assert repo.jobs["J1"].scheduled_time == "07:00"
    assert repo.jobs["J1"].original_scheduled_time is None
    assert repo.jobs["J3"].scheduled_time == "09:00"
