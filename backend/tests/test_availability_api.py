from __future__ import annotations

from datetime import date, datetime
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotwise.core.clock import get_now
from slotwise.db.deps import get_db
from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.learned_preference import LearnedPreference
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.db.models.work_schedule import UserVacation, UserWorkSchedule
from slotwise.main import app
from slotwise.services.blocked_times import get_blocked_times


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
    UserWorkSchedule.__table__.create(bind=engine)
    UserVacation.__table__.create(bind=engine)
    LearnedPreference.__table__.create(bind=engine)
    AgentActionLog.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: datetime(2025, 3, 9, 20, 0)
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def test_work_schedule_template_then_saved_days(client):
    test_client, session_factory = client
    user_id = uuid4()

    template = test_client.get("/user/work-schedule", params={"user_id": str(user_id)}).json()
    assert template["configured"] is False
    assert [day["is_working"] for day in template["days"]] == [True] * 5 + [False] * 2

    resp = test_client.put(
        "/user/work-schedule",
        json={
            "user_id": str(user_id),
            "days": [
                {
                    "day_of_week": "Monday",
                    "start_time": "09:00",
                    "end_time": "17:00",
                    "location": "office",
                    "commute_to_min": 30,
                    "commute_from_min": 30,
                },
                {"day_of_week": "friday", "is_working": False, "start_time": "09:00", "end_time": "12:00"},
            ],
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["configured"] is True
    monday, friday = data["days"][0], data["days"][4]
    assert (monday["location"], monday["commute_to_min"]) == ("office", 30)
    assert (friday["is_working"], friday["start_time"]) == (False, None)

    session = session_factory()
    blocks = get_blocked_times(session, user_id, date(2025, 3, 10), date(2025, 3, 14))
    assert [block.kind.value for block in blocks] == ["work", "commute", "commute"]
    session.close()


def test_work_schedule_rejects_inverted_hours(client):
    test_client, _ = client
    resp = test_client.put(
        "/user/work-schedule",
        json={"user_id": str(uuid4()), "days": [{"day_of_week": "monday", "start_time": "17:00", "end_time": "09:00"}]},
    )
    assert resp.status_code == 422


def test_vacations_crud(client):
    test_client, session_factory = client
    user_id = uuid4()

    created = test_client.post(
        "/user/vacations",
        json={"user_id": str(user_id), "start_date": "2025-03-12", "end_date": "2025-03-14", "note": "Lisbon"},
    )
    assert created.status_code == 201
    test_client.post(
        "/user/vacations",
        json={"user_id": str(user_id), "start_date": "2025-01-02", "end_date": "2025-01-03"},
    )

    upcoming = test_client.get("/user/vacations", params={"user_id": str(user_id), "today": "2025-03-01"}).json()
    assert [row["note"] for row in upcoming] == ["Lisbon"]
    everything = test_client.get(
        "/user/vacations",
        params={"user_id": str(user_id), "include_past": True},
    ).json()
    assert len(everything) == 2

    session = session_factory()
    blocks = get_blocked_times(session, user_id, date(2025, 3, 10), date(2025, 3, 16))
    assert [block.start.date() for block in blocks] == [date(2025, 3, 12), date(2025, 3, 13), date(2025, 3, 14)]
    session.close()

    vacation_id = created.json()["id"]
    assert test_client.delete(f"/user/vacations/{vacation_id}", params={"user_id": str(uuid4())}).status_code == 403
    assert test_client.delete(f"/user/vacations/{vacation_id}", params={"user_id": str(user_id)}).status_code == 204
    assert test_client.delete(f"/user/vacations/{vacation_id}", params={"user_id": str(user_id)}).status_code == 404


def test_vacation_range_validation(client):
    test_client, _ = client
    resp = test_client.post(
        "/user/vacations",
        json={"user_id": str(uuid4()), "start_date": "2025-03-14", "end_date": "2025-03-12"},
    )
    assert resp.status_code == 422


def test_settings_window_country_and_family(client):
    test_client, _ = client
    user_id = uuid4()
    assert test_client.get("/user/settings", params={"user_id": str(user_id)}).status_code == 404

    family_id = uuid4()
    resp = test_client.put(
        "/user/settings",
        json={
            "user_id": str(user_id),
            "country": "gb",
            "available_time_start": 7,
            "available_time_end": 21,
            "family_id": str(family_id),
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert (data["country"], data["available_time_start"], data["available_time_end"]) == ("UK", 7, 21)
    assert data["family_id"] == str(family_id)

    # family_id omitted: left unchanged.
    resp = test_client.put("/user/settings", json={"user_id": str(user_id), "country": "US"})
    assert resp.json()["family_id"] == str(family_id)
    resp = test_client.put("/user/settings", json={"user_id": str(user_id), "family_id": None})
    assert resp.json()["family_id"] is None

    assert test_client.put("/user/settings", json={"user_id": str(user_id), "available_time_end": 6}).status_code == 422
    assert test_client.put("/user/settings", json={"user_id": str(user_id), "country": "XX"}).status_code == 422

    week = test_client.get(
        "/schedule/available-time",
        params={"user_id": str(user_id), "week_start": "2025-03-10"},
    ).json()
    assert week["days"][0]["slots"] == [{"start": "07:00", "end": "21:00", "minutes": 840}]


def test_holidays_use_user_country(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.put("/user/settings", json={"user_id": str(user_id), "country": "US"})

    resp = test_client.get(
        "/user/holidays",
        params={"start": "2025-11-01", "end": "2025-11-30", "user_id": str(user_id)},
    )
    assert [holiday["name"] for holiday in resp.json()] == ["Veterans Day", "Thanksgiving"]

    uk = test_client.get("/user/holidays", params={"start": "2022-12-24", "end": "2022-12-31", "country": "UK"}).json()
    assert [(h["name"], h["date"], h["observed"]) for h in uk] == [
        ("Boxing Day", "2022-12-26", "2022-12-26"),
        ("Christmas Day", "2022-12-25", "2022-12-27"),
    ]

    bad = test_client.get("/user/holidays", params={"start": "2025-02-01", "end": "2025-01-01"})
    assert bad.status_code == 422


def test_preferences_are_validated_and_deactivated(client):
    test_client, _ = client
    user_id = uuid4()

    created = test_client.post(
        "/user/preferences",
        json={
            "user_id": str(user_id),
            "kind": "time_window",
            "value": {"category": "goal", "start": "07:00", "end": "09:00"},
            "confidence": 0.8,
        },
    )
    assert created.status_code == 201
    assert created.json()["value"] == {"category": "goal", "task_name": None, "start": "07:00:00", "end": "09:00:00"}

    invalid = test_client.post(
        "/user/preferences",
        json={"user_id": str(user_id), "kind": "time_window", "value": {"start": "09:00", "end": "07:00"}},
    )
    assert invalid.status_code == 422

    preference_id = created.json()["id"]
    assert test_client.delete(f"/user/preferences/{preference_id}", params={"user_id": str(user_id)}).status_code == 204
    (listed,) = test_client.get("/user/preferences", params={"user_id": str(user_id)}).json()
    assert listed["is_active"] is False


def test_learned_window_shapes_generation(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post(
        "/user/preferences",
        json={"user_id": str(user_id), "kind": "time_window", "value": {"task_name": "Reading", "start": "20:00", "end": "21:30"}},
    )
    task = test_client.post("/tasks", json={"user_id": str(user_id), "name": "Reading", "duration_min": 30})
    assert task.status_code == 201

    resp = test_client.post("/schedule/generate", json={"user_id": str(user_id), "week_start": "2025-03-10"})
    (placement,) = resp.json()["placements"]
    assert placement["start_time"] == "20:00"
