"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import threading
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler

from slotwise.core.clock import get_now
from slotwise.core.config import settings
from slotwise.core.context import bind_request_id
from slotwise.core.logging import configure_logging
from slotwise.db.session import SessionLocal
from slotwise.services.job_runner import run_weekly_schedule_for_all_users
from slotwise.services.llm_optimizer import get_optimizer


logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running weekly schedule job once on startup")
            run_weekly_schedule_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    day_of_week = str(settings.weekly_job_day)
    scheduler.add_job(
        run_weekly_schedule_job,
        trigger="cron",
        day_of_week=day_of_week,
        hour=settings.weekly_job_hour,
        minute=settings.weekly_job_minute,
        id="weekly_schedule_job",
        replace_existing=True,
    )
    logger.info(
        "Registered weekly schedule job (day=%s, time=%02d:%02d %s)",
        day_of_week,
        settings.weekly_job_hour,
        settings.weekly_job_minute,
        settings.scheduler_timezone,
    )


def run_weekly_schedule_job() -> None:
    session = SessionLocal()
    try:
        with bind_request_id(f"job-weekly-{uuid4().hex[:8]}"):
            result = run_weekly_schedule_for_all_users(session, now=get_now(), optimizer=get_optimizer())
        logger.info(
            "Weekly schedule job complete: users=%s, written=%s, skipped=%s, failed=%s",
            result.users_processed,
            result.schedules_written,
            result.skipped_existing,
            result.failed,
        )
    except Exception:  # pragma: no cover
        logger.exception("Weekly schedule job failed")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
