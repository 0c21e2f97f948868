"""Task response serialization helpers with batched relation loading."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import LogWork, Task, User, task_assignees
from ..schemas import TaskResponse, UserBrief


def build_task_response_context(db: Session, tasks: list[Task]) -> dict:
    """Preload creators, assignees and logged hours in a fixed number of queries for a task page."""
    if not tasks:
        return {
            "users_by_id": {},
            "assignee_ids_by_task_id": {},
            "hours_by_task_id": {},
        }

    task_ids = [task.id for task in tasks]
    user_ids: set[int] = {task.creator_id for task in tasks if task.creator_id}

    assignment_rows = (
        db.query(task_assignees.c.task_id, task_assignees.c.user_id)
        .filter(task_assignees.c.task_id.in_(task_ids))
        .all()
    )
    assignee_ids_by_task_id: dict[int, list[int]] = defaultdict(list)
    for task_id, user_id in assignment_rows:
        assignee_ids_by_task_id[task_id].append(user_id)
        user_ids.add(user_id)

    users_by_id: dict[int, User] = {}
    if user_ids:
        users = db.query(User).filter(User.id.in_(user_ids)).all()
        users_by_id = {user.id: user for user in users}

    hour_rows = (
        db.query(LogWork.task_id, func.coalesce(func.sum(LogWork.hours_worked), 0))
        .filter(LogWork.task_id.in_(task_ids))
        .group_by(LogWork.task_id)
        .all()
    )
    hours_by_task_id = {task_id: Decimal(str(total)) for task_id, total in hour_rows}

    return {
        "users_by_id": users_by_id,
        "assignee_ids_by_task_id": assignee_ids_by_task_id,
        "hours_by_task_id": hours_by_task_id,
    }


def task_to_response_from_context(task: Task, context: dict, now: datetime | None = None) -> TaskResponse:
    users_by_id: dict[int, User] = context["users_by_id"]
    assignee_ids: list[int] = context["assignee_ids_by_task_id"].get(task.id, [])
    now = now or datetime.now(timezone.utc)

    creator = users_by_id.get(task.creator_id) if task.creator_id else None
    assignees = [
        UserBrief.model_validate(users_by_id[user_id])
        for user_id in sorted(assignee_ids)
        if user_id in users_by_id
    ]

    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status or "pending",
        priority=task.priority,
        start_date=task.start_date,
        end_date=task.end_date,
        deadline=task.deadline,
        estimated_hours=task.estimated_hours or 0,
        actual_hours=task.actual_hours or 0,
        progress=task.progress or 0,
        notes=task.notes,
        creator=UserBrief.model_validate(creator) if creator else None,
        assignees=assignees,
        # Rows not yet linked to users still show the prototype's free-text value.
        legacy_assignee=None if assignees else task.assignee,
        logged_hours=context["hours_by_task_id"].get(task.id, Decimal("0")),
        is_overdue=task.is_overdue(now) and task.status not in ("completed", "cancelled"),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def tasks_to_response(db: Session, tasks: list[Task]) -> list[TaskResponse]:
    context = build_task_response_context(db, tasks)
    now = datetime.now(timezone.utc)
    return [task_to_response_from_context(task, context, now) for task in tasks]


def task_to_response(db: Session, task: Task) -> TaskResponse:
    return tasks_to_response(db, [task])[0]
