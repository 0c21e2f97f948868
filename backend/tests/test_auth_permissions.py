from __future__ import annotations

import time
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from jose import jwt

from app.auth import (
    ROLE_PERMISSIONS,
    PermissionChecker,
    check_permission,
    create_access_token,
    decode_token,
)
from app.config import settings
from app.models import LogWork, Task, Ticket
from app.security import can_decide_ticket, can_delete_log_work, can_manage_task, can_update_task


def _user(*, user_id=1, role="user"):
    return SimpleNamespace(id=user_id, role_name=role)


@pytest.mark.parametrize(
    ("role", "expected"),
    [
        (
            "admin",
            {
                "canManageUsers": True,
                "canCreateTasks": True,
                "canManageAnyTask": True,
                "canDecideAnyTicket": True,
                "canViewAllWorkLogs": True,
                "canDeleteAnyWorkLog": True,
            },
        ),
        (
            "user",
            {
                "canManageUsers": False,
                "canCreateTasks": True,
                "canManageAnyTask": False,
                "canDecideAnyTicket": False,
                "canViewAllWorkLogs": False,
                "canDeleteAnyWorkLog": False,
            },
        ),
    ],
)
def test_role_permission_matrix(role: str, expected: dict[str, bool]) -> None:
    assert ROLE_PERMISSIONS[role] == expected


def test_unknown_role_has_no_permissions() -> None:
    assert check_permission(_user(role=None), "canCreateTasks") is False


def test_permission_checker_rejects_plain_user() -> None:
    checker = PermissionChecker("canManageUsers")
    with pytest.raises(HTTPException) as exc_info:
        checker(current_user=_user(role="user"))
    assert exc_info.value.status_code == 403

    admin = _user(role="admin")
    assert checker(current_user=admin) is admin


def test_access_token_round_trip_carries_subject_and_type() -> None:
    payload = decode_token(create_access_token({"sub": "17"}))
    assert payload["sub"] == "17"
    assert payload["type"] == "access"
    assert payload["exp"] > payload["iat"]


def test_expired_token_is_rejected_after_leeway() -> None:
    now = int(time.time())
    token = jwt.encode(
        {"sub": "1", "type": "access", "iat": now - 7200, "exp": now - settings.JWT_LEEWAY_SECONDS - 60},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


def test_token_issued_in_the_future_is_rejected() -> None:
    now = int(time.time())
    token = jwt.encode(
        {"sub": "1", "type": "access", "iat": now + 3600, "exp": now + 7200},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.status_code == 401


def test_token_with_wrong_signature_is_rejected() -> None:
    token = jwt.encode({"sub": "1", "exp": int(time.time()) + 60}, "not-the-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.status_code == 401


def test_task_management_is_limited_to_admin_and_creator() -> None:
    task = Task(id=1, title="t", priority="low", creator_id=10)

    assert can_manage_task(task, _user(user_id=10)) is True
    assert can_manage_task(task, _user(user_id=11)) is False
    assert can_manage_task(task, _user(user_id=11, role="admin")) is True


def test_assignees_may_update_but_not_delete_task() -> None:
    assignee = SimpleNamespace(id=12)
    task = SimpleNamespace(id=1, creator_id=10, assignees=[assignee])

    assert can_update_task(task, _user(user_id=12)) is True
    assert can_manage_task(task, _user(user_id=12)) is False
    assert can_update_task(task, _user(user_id=13)) is False


def test_ticket_decision_requires_admin_or_task_creator() -> None:
    ticket = Ticket(id=1, title="Need approval", status="pending", task_id=1, requested_by_id=20)
    ticket.task = Task(id=1, title="t", priority="low", creator_id=10)

    assert can_decide_ticket(ticket, _user(user_id=10)) is True
    assert can_decide_ticket(ticket, _user(user_id=20)) is False
    assert can_decide_ticket(ticket, _user(user_id=99, role="admin")) is True


def test_work_log_delete_allowed_for_owner_or_admin() -> None:
    entry = LogWork(id=1, task_id=1, user_id=5)

    assert can_delete_log_work(entry, _user(user_id=5)) is True
    assert can_delete_log_work(entry, _user(user_id=6)) is False
    assert can_delete_log_work(entry, _user(user_id=6, role="admin")) is True
