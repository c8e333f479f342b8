from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from slotwise.core.config import settings
from slotwise.core.context import get_request_id
from slotwise.services.job_runner import JobRunResult
from slotwise.worker import scheduler_main


class _FakeSession:
    closed = False

    def close(self):
        self.closed = True


def test_register_jobs_uses_weekly_cron(monkeypatch) -> None:
    monkeypatch.setattr(settings, "weekly_job_day", 6)
    monkeypatch.setattr(settings, "weekly_job_hour", 18)
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler_main.register_jobs(scheduler)

    job = scheduler.get_job("weekly_schedule_job")
    assert job is not None
    assert isinstance(job.trigger, CronTrigger)
    assert "hour='18'" in str(job.trigger)


def test_weekly_job_runs_with_request_id_and_closes_session(monkeypatch) -> None:
    session = _FakeSession()
    seen = {}

    def fake_run(db, *, now, optimizer):
        seen["db"] = db
        seen["request_id"] = get_request_id()
        return JobRunResult(users_processed=2, schedules_written=1, skipped_existing=1)

    monkeypatch.setattr(scheduler_main, "SessionLocal", lambda: session)
    monkeypatch.setattr(scheduler_main, "run_weekly_schedule_for_all_users", fake_run)
    monkeypatch.setattr(scheduler_main, "get_optimizer", lambda: None)

    scheduler_main.run_weekly_schedule_job()

    assert seen["db"] is session
    assert seen["request_id"].startswith("job-weekly-")
    assert get_request_id() is None
    assert session.closed is True
