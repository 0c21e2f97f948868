"""Ticket endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import TicketCreate, TicketDecision, TicketResponse
from ..use_cases.ticket_workflow import (
    approve_ticket_use_case,
    create_ticket_use_case,
    get_ticket_or_404,
    list_tickets_use_case,
    reject_ticket_use_case,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Raise an approval request against a task."""
    return TicketResponse.model_validate(create_ticket_use_case(db=db, payload=payload, current_user=current_user))


@router.get("")
def get_tickets(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(pending|approved|rejected|in_review)$"),
    task_id: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = list_tickets_use_case(db=db, status=status_filter, task_id=task_id, page=page, limit=limit)
    return result.as_dict([TicketResponse.model_validate(t) for t in result.items])


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return TicketResponse.model_validate(get_ticket_or_404(db, ticket_id))


@router.post("/{ticket_id}/approve", response_model=TicketResponse)
def approve_ticket(
    ticket_id: int,
    payload: Optional[TicketDecision] = Body(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ticket = approve_ticket_use_case(
        db=db,
        ticket_id=ticket_id,
        current_user=current_user,
        notes=payload.notes if payload else None,
    )
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/reject", response_model=TicketResponse)
def reject_ticket(
    ticket_id: int,
    payload: Optional[TicketDecision] = Body(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ticket = reject_ticket_use_case(
        db=db,
        ticket_id=ticket_id,
        current_user=current_user,
        notes=payload.notes if payload else None,
    )
    return TicketResponse.model_validate(ticket)
