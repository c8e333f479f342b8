from __future__ import annotations

from datetime import date, datetime
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotwise.db.deps import get_db
from slotwise.db.models.schedule_conflict import ScheduleConflict
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.main import app


@pytest.fixture()
def client():
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

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    ScheduledTask.__table__.create(bind=engine)
    ScheduleConflict.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 3, 10, hour, minute)


def _seed_day(session_factory):
    """Deep work 09:00-10:00, Emails 14:00-14:30 and Call 15:00-15:30 on one Monday."""
    session = session_factory()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        session.flush()
        ids = {}
        for name, start, end in (
            ("Deep work", _at(9), _at(10)),
            ("Emails", _at(14), _at(14, 30)),
            ("Call", _at(15), _at(15, 30)),
        ):
            task = Task(user_id=user_id, name=name, duration_min=int((end - start).total_seconds() // 60))
            session.add(task)
            session.flush()
            row = ScheduledTask(
                task_id=task.id,
                assigned_to_user_id=user_id,
                scheduled_date=start.date(),
                start_time=start,
                end_time=end,
            )
            session.add(row)
            session.flush()
            ids[name] = row.id
        session.commit()
        return user_id, ids
    finally:
        session.close()


def _move(test_client, scheduled_task_id, user_id, start, end, confirmed=False):
    return test_client.post(
        f"/scheduled-tasks/{scheduled_task_id}/move",
        json={
            "user_id": str(user_id),
            "new_start": start.isoformat(),
            "new_end": end.isoformat(),
            "confirmed": confirmed,
            "reason": "Clashed with a meeting",
        },
    )


def test_move_is_previewed_until_confirmed(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)

    preview = _move(test_client, ids["Deep work"], user_id, _at(14, 20), _at(15, 20))

    assert preview.status_code == 200
    data = preview.json()
    assert data["applied"] is False
    assert data["requires_confirmation"] is True
    assert data["message"] == "Moving this task will affect 2 other task(s). Do you want to proceed?"
    emails, call = data["conflicts"]
    assert emails["type"] == "shortened"
    assert emails["resolution"] == {"start": "2025-03-10T14:00:00", "end": "2025-03-10T14:20:00"}
    assert call["type"] == "displaced"
    assert call["resolution"] is None
    assert call["description"] == "Call overlaps too much and needs to be rescheduled"

    session = session_factory()
    assert session.get(ScheduledTask, ids["Deep work"]).start_time == _at(9)
    assert session.query(ScheduleConflict).count() == 0
    session.close()


def test_confirmed_move_updates_rows_and_writes_audit(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)

    resp = _move(test_client, ids["Deep work"], user_id, _at(14, 20), _at(15, 20), confirmed=True)

    assert resp.status_code == 200
    data = resp.json()
    assert data["applied"] is True
    assert data["requires_confirmation"] is False
    assert data["conflicts_resolved"] == 2
    moved = data["scheduled_task"]
    assert moved["start_time"] == "2025-03-10T14:20:00"
    assert moved["original_start_time"] == "2025-03-10T09:00:00"
    assert moved["was_manually_moved"] is True

    session = session_factory()
    emails = session.get(ScheduledTask, ids["Emails"])
    assert (emails.start_time, emails.end_time) == (_at(14), _at(14, 20))
    assert emails.was_shortened is True
    assert emails.original_duration_min == 30
    call = session.get(ScheduledTask, ids["Call"])
    assert (call.start_time, call.end_time) == (_at(15), _at(15, 30))

    records = session.query(ScheduleConflict).all()
    assert sorted(record.resolution for record in records) == ["displaced", "moved", "shortened"]
    assert all(record.week_of == date(2025, 3, 10) for record in records)
    assert all(record.original_start == _at(9) for record in records)
    session.close()

    history = test_client.get(f"/scheduled-tasks/{ids['Deep work']}/conflicts", params={"user_id": str(user_id)})
    assert history.status_code == 200
    assert len(history.json()) == 3

    (shortened,) = test_client.get(
        f"/scheduled-tasks/{ids['Emails']}/conflicts", params={"user_id": str(user_id)}
    ).json()
    assert shortened["resolution"] == "shortened"
    assert shortened["affected_scheduled_task_id"] == str(ids["Emails"])
    assert shortened["affected_new_end"] == "2025-03-10T14:20:00"


def test_second_move_keeps_first_original_times(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)

    first = _move(test_client, ids["Deep work"], user_id, _at(11), _at(12))
    assert first.json()["applied"] is True
    assert first.json()["message"] == "Moved."

    second = _move(test_client, ids["Deep work"], user_id, _at(17), _at(18))
    moved = second.json()["scheduled_task"]
    assert moved["start_time"] == "2025-03-10T17:00:00"
    assert moved["original_start_time"] == "2025-03-10T09:00:00"
    assert moved["original_end_time"] == "2025-03-10T10:00:00"

    session = session_factory()
    records = session.query(ScheduleConflict).all()
    assert [record.resolution for record in records] == ["moved", "moved"]
    assert sorted(record.original_start for record in records) == [_at(9), _at(11)]
    session.close()


def test_skipped_siblings_do_not_conflict(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)

    skip = test_client.patch(
        f"/scheduled-tasks/{ids['Call']}",
        json={"user_id": str(user_id), "status": "skipped"},
    )
    assert skip.status_code == 200
    assert skip.json()["status"] == "skipped"

    resp = _move(test_client, ids["Deep work"], user_id, _at(15), _at(16))
    assert resp.json()["applied"] is True
    assert resp.json()["conflicts"] == []

    listing = test_client.get("/scheduled-tasks", params={"user_id": str(user_id), "from": "2025-03-10", "to": "2025-03-10"})
    assert [row["task_name"] for row in listing.json()] == ["Emails", "Deep work"]


def test_move_errors(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)

    assert _move(test_client, uuid4(), user_id, _at(11), _at(12)).status_code == 404
    assert _move(test_client, ids["Emails"], uuid4(), _at(11), _at(12)).status_code == 403
    assert _move(test_client, ids["Emails"], user_id, _at(12), _at(11)).status_code == 422
    assert (
        test_client.get(f"/scheduled-tasks/{ids['Emails']}/conflicts", params={"user_id": str(uuid4())}).status_code
        == 403
    )


def test_completed_siblings_still_conflict(client):
    test_client, session_factory = client
    user_id, ids = _seed_day(session_factory)
    test_client.patch(f"/scheduled-tasks/{ids['Call']}", json={"user_id": str(user_id), "status": "completed"})

    resp = _move(test_client, ids["Deep work"], user_id, _at(15), _at(16))

    (call,) = resp.json()["conflicts"]
    assert call["type"] == "displaced"
    assert resp.json()["applied"] is False
