"""Ticket approval workflow: raise a request against a task, then approve or reject it once."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session, joinedload, selectinload

from ..database import commit_or_rollback
from ..domain_errors import DomainError, conflict, forbidden, not_found
from ..models import Task, Ticket, User
from ..schemas import TicketCreate
from ..security import can_decide_ticket
from ..services.pagination import Page, paginate
from .task_management import resolve_users

logger = logging.getLogger(__name__)


def _ticket_query(db: Session):
    return db.query(Ticket).options(
        joinedload(Ticket.task),
        joinedload(Ticket.requested_by),
        joinedload(Ticket.approved_by),
        selectinload(Ticket.assignees),
    )


def get_ticket_or_404(db: Session, ticket_id: int) -> Ticket:
    ticket = _ticket_query(db).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise not_found("ticket", ticket_id)
    return ticket


def create_ticket_use_case(*, db: Session, payload: TicketCreate, current_user: User) -> Ticket:
    task = db.query(Task).filter(Task.id == payload.task_id).first()
    if not task:
        raise not_found("task", payload.task_id)
    assignees = resolve_users(db, payload.assignee_ids)

    ticket = Ticket(
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        notes=payload.notes,
        status="pending",
        task_id=task.id,
        requested_by_id=current_user.id,
    )
    ticket.assignees = assignees
    db.add(ticket)
    commit_or_rollback(db, action="create ticket")
    logger.info("Ticket %s raised on task %s by user %s", ticket.id, task.id, current_user.id)
    return get_ticket_or_404(db, ticket.id)


def list_tickets_use_case(
    *,
    db: Session,
    status: str | None = None,
    task_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    query = _ticket_query(db)
    if status:
        query = query.filter(Ticket.status == status)
    if task_id is not None:
        query = query.filter(Ticket.task_id == task_id)
    query = query.order_by(Ticket.id.desc())
    return paginate(query, page=page, limit=limit)


def _decide_ticket(
    *,
    db: Session,
    ticket_id: int,
    current_user: User,
    decision: str,
    notes: str | None,
) -> Ticket:
    ticket = get_ticket_or_404(db, ticket_id)

    if not can_decide_ticket(ticket, current_user):
        raise forbidden("TICKET_DECISION_FORBIDDEN", "Only an admin or the task creator can decide this ticket")
    if ticket.is_decided:
        raise conflict(
            "TICKET_ALREADY_DECIDED",
            f"Ticket already {ticket.status}",
            status=ticket.status,
        )
    if decision not in ("approved", "rejected"):
        raise DomainError(code="TICKET_INVALID_DECISION", http_status=400, message="Unknown decision")

    ticket.status = decision
    ticket.approved_by_id = current_user.id
    ticket.approved_at = datetime.now(timezone.utc)
    if notes is not None:
        ticket.notes = notes

    commit_or_rollback(db, action=f"mark ticket {decision}")
    logger.info("Ticket %s %s by user %s", ticket.id, decision, current_user.id)
    return get_ticket_or_404(db, ticket.id)


def approve_ticket_use_case(*, db: Session, ticket_id: int, current_user: User, notes: str | None = None) -> Ticket:
    return _decide_ticket(db=db, ticket_id=ticket_id, current_user=current_user, decision="approved", notes=notes)


def reject_ticket_use_case(*, db: Session, ticket_id: int, current_user: User, notes: str | None = None) -> Ticket:
    return _decide_ticket(db=db, ticket_id=ticket_id, current_user=current_user, decision="rejected", notes=notes)
