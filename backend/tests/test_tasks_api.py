from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotwise.core.config import settings
from slotwise.db.deps import get_db
from slotwise.db.models.agent_action_log import AgentActionLog
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
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    AgentActionLog.__table__.create(bind=engine)

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


def _create_task(client: TestClient, user_id: UUID, **fields) -> dict:
    body = {"user_id": str(user_id), "name": "Gym", "duration_min": 45}
    body.update(fields)
    response = client.post("/tasks", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_task_creates_user_and_logs(client):
    test_client, session_factory = client
    user_id = uuid4()

    data = _create_task(
        test_client,
        user_id,
        name="  Physio  ",
        scheduling_mode="fixed",
        fixed_days=["Monday", "thursday", "monday"],
        fixed_time="07:30",
    )

    assert data["name"] == "Physio"
    assert data["fixed_days"] == ["monday", "thursday"]
    assert data["fixed_time"] == "07:30:00"
    assert data["frequency"] == 1
    assert data["frequency_period"] == "week"
    assert data["is_active"] is True

    session = session_factory()
    user = session.get(User, user_id)
    assert user is not None
    assert user.country == settings.default_country
    assert user.available_time_start == settings.default_day_start_hour
    log = session.query(AgentActionLog).one()
    assert log.action_type == "task_created"
    assert log.action_payload["task_id"] == data["id"]
    session.close()


@pytest.mark.parametrize(
    "fields",
    [
        {"duration_min": 10},
        {"fixed_days": ["funday"]},
        {"preferred_time_start": "07:00"},
        {"preferred_time_start": "09:00", "preferred_time_end": "08:00"},
        {"category": "errand"},
        {"priority": 9},
    ],
)
def test_create_task_validation(client, fields):
    test_client, _ = client
    body = {"user_id": str(uuid4()), "name": "Gym", "duration_min": 45}
    body.update(fields)
    assert test_client.post("/tasks", json=body).status_code == 422


def test_list_update_and_deactivate(client):
    test_client, session_factory = client
    user_id = uuid4()
    gym = _create_task(test_client, user_id, priority=2)
    _create_task(test_client, user_id, name="Reading", duration_min=30)

    listed = test_client.get("/tasks", params={"user_id": str(user_id)})
    assert [task["name"] for task in listed.json()] == ["Gym", "Reading"]

    patched = test_client.patch(
        f"/tasks/{gym['id']}",
        json={
            "user_id": str(user_id),
            "duration_min": 60,
            "preferred_time_start": "06:00",
            "preferred_time_end": "09:00",
        },
    )
    assert patched.status_code == 200
    assert patched.json()["duration_min"] == 60
    assert patched.json()["preferred_time_start"] == "06:00:00"

    deleted = test_client.delete(f"/tasks/{gym['id']}", params={"user_id": str(user_id)})
    assert deleted.status_code == 204

    active = test_client.get("/tasks", params={"user_id": str(user_id)}).json()
    assert [task["name"] for task in active] == ["Reading"]
    inactive = test_client.get("/tasks", params={"user_id": str(user_id), "status": "inactive"}).json()
    assert [task["name"] for task in inactive] == ["Gym"]
    everything = test_client.get("/tasks", params={"user_id": str(user_id), "status": "all"}).json()
    assert len(everything) == 2

    session = session_factory()
    actions = [log.action_type for log in session.query(AgentActionLog).all()]
    assert actions.count("task_created") == 2
    assert "task_updated" in actions
    assert "task_deactivated" in actions
    assert session.get(Task, UUID(gym["id"])) is not None
    session.close()


def test_update_and_delete_check_ownership(client):
    test_client, _ = client
    owner = uuid4()
    task = _create_task(test_client, owner)

    patch_resp = test_client.patch(f"/tasks/{task['id']}", json={"user_id": str(uuid4()), "name": "Mine now"})
    assert patch_resp.status_code == 403
    delete_resp = test_client.delete(f"/tasks/{task['id']}", params={"user_id": str(uuid4())})
    assert delete_resp.status_code == 403
    missing = test_client.patch(f"/tasks/{uuid4()}", json={"user_id": str(owner), "name": "Ghost"})
    assert missing.status_code == 404


def test_family_tasks_are_visible_to_members(client):
    test_client, session_factory = client
    family_id = uuid4()
    parent, child = uuid4(), uuid4()
    session = session_factory()
    session.add_all([User(id=parent, family_id=family_id), User(id=child, family_id=family_id)])
    session.commit()
    session.close()

    _create_task(test_client, parent, name="Bins", category="chore", duration_min=15, family_id=str(family_id))
    _create_task(test_client, parent, name="Tax return", duration_min=120)

    visible = test_client.get("/tasks", params={"user_id": str(child)}).json()
    assert [task["name"] for task in visible] == ["Bins"]
