"""Task CRUD and filtered listing used by task router endpoints."""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ..database import commit_or_rollback
from ..domain_errors import DomainError, conflict, forbidden, not_found
from ..models import LogWork, Task, Ticket, User
from ..schemas import TaskCreate, TaskUpdate
from ..security import can_manage_task, can_update_task
from ..services.pagination import Page, paginate

logger = logging.getLogger(__name__)


def get_task_or_404(db: Session, task_id: int) -> Task:
    task = db.query(Task).options(selectinload(Task.assignees)).filter(Task.id == task_id).first()
    if not task:
        raise not_found("task", task_id)
    return task


def resolve_users(db: Session, user_ids: list[int]) -> list[User]:
    """Load users by id; every id must exist."""
    wanted = set(user_ids)
    if not wanted:
        return []
    users = db.query(User).filter(User.id.in_(wanted)).all()
    missing = sorted(wanted - {user.id for user in users})
    if missing:
        raise DomainError(
            code="USER_NOT_FOUND",
            http_status=404,
            message="Some assignees do not exist",
            details={"missing_ids": missing},
        )
    return sorted(users, key=lambda user: user.id)


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def list_tasks_use_case(
    *,
    db: Session,
    assignee: str | None = None,
    priority: str | None = None,
    status: str | None = None,
    deadline: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    query = db.query(Task)
    if assignee:
        pattern = f"%{assignee.strip()}%"
        query = query.filter(
            or_(
                Task.assignee.ilike(pattern),
                Task.assignees.any(
                    or_(
                        User.full_name.ilike(pattern),
                        User.email.ilike(pattern),
                        User.username.ilike(pattern),
                    )
                ),
            )
        )
    if priority:
        query = query.filter(Task.priority == priority)
    if status:
        query = query.filter(Task.status == status)
    if deadline:
        start, end = _day_bounds(deadline)
        query = query.filter(Task.deadline >= start, Task.deadline < end)
    query = query.order_by(Task.created_at.desc(), Task.id.desc())
    return paginate(query, page=page, limit=limit)


def search_tasks_use_case(*, db: Session, q: str, limit: int = 10) -> list[Task]:
    pattern = f"%{q.strip()}%"
    return (
        db.query(Task)
        .filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
        .order_by(Task.id.desc())
        .limit(limit)
        .all()
    )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _validate_dates(start_date: datetime | None, end_date: datetime | None) -> None:
    if start_date and end_date and _as_utc(end_date) < _as_utc(start_date):
        raise DomainError(
            code="TASK_INVALID_DATES",
            http_status=400,
            message="end_date must not be earlier than start_date",
        )


def create_task_use_case(*, db: Session, payload: TaskCreate, current_user: User) -> Task:
    _validate_dates(payload.start_date, payload.end_date)
    assignees = resolve_users(db, payload.assignee_ids)

    task = Task(
        **payload.model_dump(exclude={"assignee_ids"}),
        creator_id=current_user.id,
    )
    task.assignees = assignees
    db.add(task)
    commit_or_rollback(db, action="create task")
    db.refresh(task)
    logger.info("Task %s created by user %s with %d assignees", task.id, current_user.id, len(assignees))
    return task


def update_task_use_case(*, db: Session, task_id: int, payload: TaskUpdate, current_user: User) -> Task:
    task = get_task_or_404(db, task_id)
    if not can_update_task(task, current_user):
        raise forbidden("TASK_UPDATE_FORBIDDEN", "Only the creator, an assignee or an admin can update this task")

    data = payload.model_dump(exclude_unset=True)
    assignee_ids = data.pop("assignee_ids", None)
    _validate_dates(data.get("start_date", task.start_date), data.get("end_date", task.end_date))

    for field, value in data.items():
        setattr(task, field, value)
    if assignee_ids is not None:
        task.assignees = resolve_users(db, assignee_ids)

    commit_or_rollback(db, action="update task")
    db.refresh(task)
    return task


def delete_task_use_case(*, db: Session, task_id: int, current_user: User) -> None:
    task = get_task_or_404(db, task_id)
    if not can_manage_task(task, current_user):
        raise forbidden("TASK_DELETE_FORBIDDEN", "Only the creator or an admin can delete this task")
    has_tickets = db.query(Ticket.id).filter(Ticket.task_id == task.id).first() is not None
    has_work_logs = db.query(LogWork.id).filter(LogWork.task_id == task.id).first() is not None
    if has_tickets or has_work_logs:
        raise conflict("TASK_IN_USE", "Task has tickets or work logs", id=task_id)

    db.delete(task)
    commit_or_rollback(db, action="delete task")
    logger.info("Task %s deleted by user %s", task_id, current_user.id)
