"""Access checks on top of the role matrix (ownership rules)."""

from __future__ import annotations

from fastapi import HTTPException, status

from .auth import check_permission
from .models import LogWork, Task, Ticket, User


def require_permission(user: User, permission: str) -> None:
    """Enforce a role permission server-side."""
    if not check_permission(user, permission):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {permission} required",
        )


def can_manage_task(task: Task, user: User) -> bool:
    """Delete: admins, or the task's creator."""
    if check_permission(user, "canManageAnyTask"):
        return True
    return task.creator_id is not None and task.creator_id == user.id


def can_update_task(task: Task, user: User) -> bool:
    """Update: anyone who can manage the task, plus its assignees."""
    if can_manage_task(task, user):
        return True
    return any(assignee.id == user.id for assignee in task.assignees)


def can_decide_ticket(ticket: Ticket, user: User) -> bool:
    """Approve/reject: admins, or the creator of the ticket's task."""
    if check_permission(user, "canDecideAnyTicket"):
        return True
    task = ticket.task
    return task is not None and task.creator_id is not None and task.creator_id == user.id


def can_delete_log_work(entry: LogWork, user: User) -> bool:
    if check_permission(user, "canDeleteAnyWorkLog"):
        return True
    return entry.user_id == user.id
