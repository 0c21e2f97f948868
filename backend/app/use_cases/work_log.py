"""Work log entries: hours a user spent on a task on a given day."""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from ..auth import check_permission
from ..database import commit_or_rollback
from ..domain_errors import DomainError, forbidden, not_found
from ..models import LogWork, Task, User, hours_are_valid
from ..schemas import LogWorkCreate
from ..security import can_delete_log_work
from ..services.pagination import Page, paginate

logger = logging.getLogger(__name__)


def create_log_work_use_case(*, db: Session, payload: LogWorkCreate, current_user: User) -> LogWork:
    if not hours_are_valid(payload.hours_worked):
        raise DomainError(
            code="LOG_WORK_INVALID_HOURS",
            http_status=422,
            message="hours_worked must be greater than 0 and at most 24",
            details={"hours_worked": str(payload.hours_worked)},
        )
    task = db.query(Task).filter(Task.id == payload.task_id).first()
    if not task:
        raise not_found("task", payload.task_id)

    entry = LogWork(
        task_id=task.id,
        user_id=current_user.id,
        date=payload.date,
        hours_worked=payload.hours_worked,
        description=payload.description,
    )
    db.add(entry)
    commit_or_rollback(db, action="log work")
    db.refresh(entry)
    return entry


def list_log_work_use_case(
    *,
    db: Session,
    current_user: User,
    task_id: int | None = None,
    user_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """Admins see every entry; other users only their own, whatever user_id they pass."""
    if date_from and date_to and date_from > date_to:
        raise DomainError(
            code="LOG_WORK_INVALID_RANGE",
            http_status=400,
            message="date_from must not be after date_to",
        )

    query = db.query(LogWork)
    if not check_permission(current_user, "canViewAllWorkLogs"):
        query = query.filter(LogWork.user_id == current_user.id)
    elif user_id is not None:
        query = query.filter(LogWork.user_id == user_id)
    if task_id is not None:
        query = query.filter(LogWork.task_id == task_id)
    if date_from:
        query = query.filter(LogWork.date >= date_from)
    if date_to:
        query = query.filter(LogWork.date <= date_to)
    query = query.order_by(LogWork.date.desc(), LogWork.id.desc())
    return paginate(query, page=page, limit=limit)


def delete_log_work_use_case(*, db: Session, log_work_id: int, current_user: User) -> None:
    entry = db.query(LogWork).filter(LogWork.id == log_work_id).first()
    if not entry:
        raise not_found("log_work", log_work_id)
    if not can_delete_log_work(entry, current_user):
        raise forbidden("LOG_WORK_DELETE_FORBIDDEN", "Only the owner or an admin can delete this entry")

    db.delete(entry)
    commit_or_rollback(db, action="delete work log")
    logger.info("Work log %s deleted by user %s", log_work_id, current_user.id)
