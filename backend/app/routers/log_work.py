"""Work log endpoints."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import LogWorkCreate, LogWorkResponse, MessageResponse
from ..use_cases.work_log import (
    create_log_work_use_case,
    delete_log_work_use_case,
    list_log_work_use_case,
)

router = APIRouter(prefix="/log-work", tags=["log-work"])


@router.post("", response_model=LogWorkResponse, status_code=status.HTTP_201_CREATED)
def create_log_work(
    payload: LogWorkCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return LogWorkResponse.model_validate(
        create_log_work_use_case(db=db, payload=payload, current_user=current_user)
    )


@router.get("")
def get_log_work(
    task_id: Optional[int] = Query(None, ge=1),
    user_id: Optional[int] = Query(None, ge=1),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see all entries; everyone else sees their own."""
    result = list_log_work_use_case(
        db=db,
        current_user=current_user,
        task_id=task_id,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return result.as_dict([LogWorkResponse.model_validate(e) for e in result.items])


@router.delete("/{log_work_id}", response_model=MessageResponse)
def delete_log_work(
    log_work_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_log_work_use_case(db=db, log_work_id=log_work_id, current_user=current_user)
    return MessageResponse(message="Work log deleted")
