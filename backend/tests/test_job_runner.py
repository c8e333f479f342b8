from __future__ import annotations

from datetime import date, datetime, time
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.learned_preference import LearnedPreference
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.db.models.work_schedule import UserVacation, UserWorkSchedule
from slotwise.scheduling.optimizer import NullOptimizer
from slotwise.services.errors import NotFoundError
from slotwise.services.job_runner import (
    run_weekly_schedule_for_all_users,
    run_weekly_schedule_for_user,
    upcoming_week_start,
)

FRIDAY_EVENING = datetime(2025, 3, 7, 18, 0)


def _session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    ScheduledTask.__table__.create(bind=engine)
    UserWorkSchedule.__table__.create(bind=engine)
    UserVacation.__table__.create(bind=engine)
    LearnedPreference.__table__.create(bind=engine)
    AgentActionLog.__table__.create(bind=engine)
    return TestingSession


def _seed_user(db_session):
    session = db_session()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        session.commit()
        return user_id
    finally:
        session.close()


def _seed_task(db_session, **kwargs):
    session = db_session()
    try:
        task = Task(**kwargs)
        session.add(task)
        session.commit()
        return task
    finally:
        session.close()


def test_upcoming_week_start():
    assert upcoming_week_start(FRIDAY_EVENING) == date(2025, 3, 10)
    assert upcoming_week_start(datetime(2025, 3, 10, 0, 0)) == date(2025, 3, 17)


def test_weekly_schedule_job_runner_dedup():
    Session = _session()
    user_id = _seed_user(Session)
    _seed_task(
        Session,
        user_id=user_id,
        name="Gym",
        duration_min=45,
        frequency=3,
        preferred_time_start=time(6),
        preferred_time_end=time(9),
    )
    idle_user = _seed_user(Session)
    _seed_task(Session, user_id=idle_user, name="Old habit", duration_min=30, is_active=False)

    session = Session()
    first = run_weekly_schedule_for_all_users(session, now=FRIDAY_EVENING, optimizer=NullOptimizer())
    assert first.users_processed == 1
    assert first.schedules_written == 1
    second = run_weekly_schedule_for_all_users(session, now=FRIDAY_EVENING, optimizer=NullOptimizer())
    assert second.schedules_written == 0
    assert second.skipped_existing == 1
    created = run_weekly_schedule_for_user(session, user_id, now=FRIDAY_EVENING, force=True)
    assert created is True

    rows = session.query(ScheduledTask).order_by(ScheduledTask.start_time).all()
    assert [row.scheduled_date for row in rows] == [date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 14)]
    assert all(time(6) <= row.start_time.time() and row.end_time.time() <= time(9) for row in rows)

    logs = session.query(AgentActionLog).filter(AgentActionLog.action_type == "schedule_generated").all()
    assert len(logs) == 2
    assert all(log.week_of == date(2025, 3, 10) for log in logs)
    assert sorted(log.action_payload["scheduled"] for log in logs) == [0, 3]
    session.close()


def test_empty_week_is_recorded_once():
    Session = _session()
    user_id = _seed_user(Session)
    _seed_task(
        Session,
        user_id=user_id,
        name="Standup",
        duration_min=15,
        scheduling_mode="fixed",
        fixed_days=[],
    )

    session = Session()
    assert run_weekly_schedule_for_user(session, user_id, now=FRIDAY_EVENING) is True
    assert run_weekly_schedule_for_user(session, user_id, now=FRIDAY_EVENING) is False
    (log,) = session.query(AgentActionLog).all()
    assert log.reason == "Nothing to schedule"
    assert session.query(ScheduledTask).count() == 0
    session.close()


def test_explicit_week_and_unknown_user():
    Session = _session()
    user_id = _seed_user(Session)
    _seed_task(Session, user_id=user_id, name="Reading", duration_min=30)

    session = Session()
    assert run_weekly_schedule_for_user(session, user_id, now=FRIDAY_EVENING, week_start=date(2025, 3, 19)) is True
    (row,) = session.query(ScheduledTask).all()
    assert row.scheduled_date == date(2025, 3, 17)

    with pytest.raises(NotFoundError):
        run_weekly_schedule_for_user(session, uuid4(), now=FRIDAY_EVENING)
    session.close()
