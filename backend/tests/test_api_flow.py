"""End-to-end API flow over an in-memory SQLite database."""
from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.migration_phases import seed_roles

API = "/api/v1"


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        seed_roles(conn)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_test_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _register(client: TestClient, email: str, role: str = "user") -> dict:
    response = client.post(f"{API}/auth/register", json={"email": email, "password": "secret1", "role": role})
    assert response.status_code == 201, response.text
    return response.json()


def _login(client: TestClient, email: str) -> dict[str, str]:
    response = client.post(f"{API}/auth/login", json={"email": email, "password": "secret1"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def people(client: TestClient) -> dict:
    admin = _register(client, "admin@example.com", role="admin")
    bob = _register(client, "bob@example.com")
    carol = _register(client, "carol@example.com")
    return {
        "admin": {**admin, "headers": _login(client, "admin@example.com")},
        "bob": {**bob, "headers": _login(client, "bob@example.com")},
        "carol": {**carol, "headers": _login(client, "carol@example.com")},
    }


def _create_task(client: TestClient, headers: dict, **overrides) -> dict:
    payload = {"title": "Prepare release", "priority": "high", **overrides}
    response = client.post(f"{API}/tasks", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_register_login_and_me(client: TestClient) -> None:
    created = _register(client, "dana@example.com")
    assert created["role"] == "user"
    assert created["status"] == "active"
    assert "password" not in created

    response = client.post(f"{API}/auth/login", json={"email": "DANA@example.com", "password": "secret1"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["last_login_at"] is not None

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "dana@example.com"


def test_duplicate_email_and_bad_password(client: TestClient) -> None:
    _register(client, "dana@example.com")

    duplicate = client.post(
        f"{API}/auth/register", json={"email": "Dana@example.com", "password": "secret1"}
    )
    assert duplicate.status_code == 409
    assert duplicate.headers["content-type"].startswith("application/problem+json")
    assert duplicate.json()["code"] == "EMAIL_ALREADY_EXISTS"

    wrong = client.post(f"{API}/auth/login", json={"email": "dana@example.com", "password": "wrong-password"})
    assert wrong.status_code == 401
    assert wrong.json()["code"] == "INVALID_CREDENTIALS"


def test_invalid_token_is_rejected(client: TestClient) -> None:
    response = client.get(f"{API}/tasks", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_task_with_assignees_and_filters(client: TestClient, people: dict) -> None:
    bob, carol = people["bob"], people["carol"]
    task = _create_task(
        client,
        bob["headers"],
        assignee_ids=[carol["id"], bob["id"]],
        deadline="2030-05-01T09:00:00Z",
    )

    assert task["creator"]["id"] == bob["id"]
    assert [a["id"] for a in task["assignees"]] == sorted([bob["id"], carol["id"]])
    assert task["legacy_assignee"] is None
    assert task["is_overdue"] is False

    _create_task(client, bob["headers"], title="Low priority chore", priority="low")

    by_assignee = client.get(f"{API}/tasks", params={"assignee": "carol"}, headers=bob["headers"]).json()
    assert [t["id"] for t in by_assignee["items"]] == [task["id"]]

    by_priority = client.get(f"{API}/tasks", params={"priority": "low"}, headers=bob["headers"]).json()
    assert by_priority["total"] == 1
    assert by_priority["items"][0]["title"] == "Low priority chore"

    by_deadline = client.get(f"{API}/tasks", params={"deadline": "2030-05-01"}, headers=bob["headers"]).json()
    assert [t["id"] for t in by_deadline["items"]] == [task["id"]]

    missing = client.post(
        f"{API}/tasks", json={"title": "x", "priority": "low", "assignee_ids": [999]}, headers=bob["headers"]
    )
    assert missing.status_code == 404
    assert missing.json()["details"] == {"missing_ids": [999]}


def test_task_update_and_delete_permissions(client: TestClient, people: dict) -> None:
    bob, carol, admin = people["bob"], people["carol"], people["admin"]
    task = _create_task(client, bob["headers"])

    forbidden = client.put(f"{API}/tasks/{task['id']}", json={"progress": 50}, headers=carol["headers"])
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "TASK_UPDATE_FORBIDDEN"

    assigned = client.put(
        f"{API}/tasks/{task['id']}", json={"assignee_ids": [carol["id"]]}, headers=bob["headers"]
    )
    assert [a["id"] for a in assigned.json()["assignees"]] == [carol["id"]]

    progressed = client.put(f"{API}/tasks/{task['id']}", json={"progress": 50}, headers=carol["headers"])
    assert progressed.status_code == 200
    assert progressed.json()["progress"] == 50

    denied = client.delete(f"{API}/tasks/{task['id']}", headers=carol["headers"])
    assert denied.status_code == 403

    deleted = client.delete(f"{API}/tasks/{task['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"{API}/tasks/{task['id']}", headers=admin["headers"]).status_code == 404


def test_ticket_approval_flow(client: TestClient, people: dict) -> None:
    admin, bob, carol = people["admin"], people["bob"], people["carol"]
    task = _create_task(client, admin["headers"])

    created = client.post(
        f"{API}/tickets",
        json={"title": "Need staging access", "task_id": task["id"], "assignee_ids": [carol["id"]]},
        headers=bob["headers"],
    )
    assert created.status_code == 201
    ticket = created.json()
    assert ticket["status"] == "pending"
    assert ticket["requested_by"]["id"] == bob["id"]
    assert [a["id"] for a in ticket["assignees"]] == [carol["id"]]

    denied = client.post(f"{API}/tickets/{ticket['id']}/approve", headers=bob["headers"])
    assert denied.status_code == 403
    assert denied.json()["code"] == "TICKET_DECISION_FORBIDDEN"

    approved = client.post(
        f"{API}/tickets/{ticket['id']}/approve", json={"notes": "granted"}, headers=admin["headers"]
    )
    assert approved.status_code == 200
    body = approved.json()
    assert body["status"] == "approved"
    assert body["approved_by"]["id"] == admin["id"]
    assert body["approved_at"] is not None
    assert body["notes"] == "granted"

    again = client.post(f"{API}/tickets/{ticket['id']}/reject", headers=admin["headers"])
    assert again.status_code == 409
    assert again.json()["code"] == "TICKET_ALREADY_DECIDED"

    pending = client.get(f"{API}/tickets", params={"status": "pending"}, headers=bob["headers"]).json()
    assert pending["total"] == 0


def test_work_log_hours_and_visibility(client: TestClient, people: dict) -> None:
    admin, bob, carol = people["admin"], people["bob"], people["carol"]
    task = _create_task(client, bob["headers"])

    logged = client.post(
        f"{API}/log-work",
        json={"task_id": task["id"], "date": "2025-07-30", "hours_worked": 2.5},
        headers=bob["headers"],
    )
    assert logged.status_code == 201
    assert Decimal(str(logged.json()["hours_worked"])) == Decimal("2.5")

    client.post(
        f"{API}/log-work",
        json={"task_id": task["id"], "date": "2025-07-31", "hours_worked": 24},
        headers=carol["headers"],
    )

    for hours in (25, 0, -1):
        rejected = client.post(
            f"{API}/log-work",
            json={"task_id": task["id"], "date": "2025-07-30", "hours_worked": hours},
            headers=bob["headers"],
        )
        assert rejected.status_code == 422

    own = client.get(f"{API}/log-work", params={"user_id": carol["id"]}, headers=bob["headers"]).json()
    assert own["total"] == 1
    assert own["items"][0]["user_id"] == bob["id"]

    everything = client.get(f"{API}/log-work", headers=admin["headers"]).json()
    assert everything["total"] == 2

    bad_range = client.get(
        f"{API}/log-work", params={"date_from": "2025-08-01", "date_to": "2025-07-01"}, headers=admin["headers"]
    )
    assert bad_range.status_code == 400

    detail = client.get(f"{API}/tasks/{task['id']}", headers=bob["headers"]).json()
    assert Decimal(str(detail["logged_hours"])) == Decimal("26.5")

    in_use = client.delete(f"{API}/tasks/{task['id']}", headers=bob["headers"])
    assert in_use.status_code == 409
    assert in_use.json()["code"] == "TASK_IN_USE"

    not_owner = client.delete(f"{API}/log-work/{logged.json()['id']}", headers=carol["headers"])
    assert not_owner.status_code == 403
    owner = client.delete(f"{API}/log-work/{logged.json()['id']}", headers=bob["headers"])
    assert owner.status_code == 200


def test_user_administration(client: TestClient, people: dict) -> None:
    admin, bob = people["admin"], people["bob"]

    assert client.get(f"{API}/users", headers=bob["headers"]).status_code == 403

    listing = client.get(f"{API}/users", params={"role": "admin"}, headers=admin["headers"]).json()
    assert [u["email"] for u in listing["items"]] == ["admin@example.com"]

    stats = client.get(f"{API}/users/stats", headers=admin["headers"]).json()
    assert (stats["total"], stats["active"], stats["admins"]) == (3, 3, 1)

    found = client.get(f"{API}/users/search", params={"q": "bob"}, headers=admin["headers"]).json()
    assert [u["id"] for u in found] == [bob["id"]]

    self_delete = client.delete(f"{API}/users/{admin['id']}", headers=admin["headers"])
    assert self_delete.status_code == 400

    deactivated = client.delete(f"{API}/users/{bob['id']}", headers=admin["headers"])
    assert deactivated.status_code == 200
    assert client.get(f"{API}/auth/me", headers=bob["headers"]).status_code == 401

    relogin = client.post(f"{API}/auth/login", json={"email": "bob@example.com", "password": "secret1"})
    assert relogin.status_code == 403
    assert relogin.json()["code"] == "USER_INACTIVE"

    inactive = client.get(f"{API}/users", params={"status": "inactive"}, headers=admin["headers"]).json()
    assert [u["id"] for u in inactive["items"]] == [bob["id"]]


def test_health_reports_database_status(client: TestClient) -> None:
    response = client.get(f"{API}/system/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_partial_update_rejects_null_for_required_fields(client: TestClient, people: dict) -> None:
    admin, bob = people["admin"], people["bob"]
    task = _create_task(client, bob["headers"], description="draft")

    for field in ("title", "priority", "status", "progress"):
        response = client.put(f"{API}/tasks/{task['id']}", json={field: None}, headers=bob["headers"])
        assert response.status_code == 422, field

    cleared = client.put(f"{API}/tasks/{task['id']}", json={"description": None}, headers=bob["headers"])
    assert cleared.status_code == 200
    assert cleared.json()["description"] is None
    assert cleared.json()["status"] == "pending"
    assert cleared.json()["title"] == "Prepare release"

    for field in ("status", "email", "role_name"):
        response = client.put(f"{API}/users/{bob['id']}", json={field: None}, headers=admin["headers"])
        assert response.status_code == 422, field

    assert client.get(f"{API}/auth/me", headers=bob["headers"]).status_code == 200


def test_hard_delete_refuses_referenced_users(client: TestClient, people: dict) -> None:
    admin, bob, carol = people["admin"], people["bob"], people["carol"]
    task = _create_task(client, bob["headers"], assignee_ids=[carol["id"]])

    in_use = client.delete(f"{API}/users/{bob['id']}", params={"hard": "true"}, headers=admin["headers"])
    assert in_use.status_code == 409
    assert in_use.json()["code"] == "USER_IN_USE"
    assert client.get(f"{API}/tasks/{task['id']}", headers=admin["headers"]).json()["creator"]["id"] == bob["id"]

    removed = client.delete(f"{API}/users/{carol['id']}", params={"hard": "true"}, headers=admin["headers"])
    assert removed.status_code == 200
    assert client.get(f"{API}/users/{carol['id']}", headers=admin["headers"]).status_code == 404
    assert client.get(f"{API}/tasks/{task['id']}", headers=admin["headers"]).json()["assignees"] == []


def test_hard_delete_refuses_ticket_decider(client: TestClient, people: dict) -> None:
    admin, bob, carol = people["admin"], people["bob"], people["carol"]
    task = _create_task(client, bob["headers"])
    ticket = client.post(
        f"{API}/tickets", json={"title": "Access", "task_id": task["id"]}, headers=bob["headers"]
    ).json()
    promoted = client.put(f"{API}/users/{carol['id']}", json={"role_name": "admin"}, headers=admin["headers"])
    assert promoted.json()["role"] == "admin"
    approved = client.post(f"{API}/tickets/{ticket['id']}/approve", headers=carol["headers"])
    assert approved.status_code == 200

    response = client.delete(f"{API}/users/{carol['id']}", params={"hard": "true"}, headers=admin["headers"])

    assert response.status_code == 409
    decided = client.get(f"{API}/tickets/{ticket['id']}", headers=admin["headers"]).json()
    assert decided["approved_by"]["id"] == carol["id"]
