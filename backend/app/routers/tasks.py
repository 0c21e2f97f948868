"""Task endpoints."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import User
from ..schemas import MessageResponse, TaskCreate, TaskListResponse, TaskResponse, TaskUpdate
from ..services.task_response_builder import task_to_response, tasks_to_response
from ..use_cases.task_management import (
    create_task_use_case,
    delete_task_use_case,
    get_task_or_404,
    list_tasks_use_case,
    search_tasks_use_case,
    update_task_use_case,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=TaskListResponse)
def get_tasks(
    assignee: Optional[str] = Query(None, min_length=1, max_length=255),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high|urgent)$"),
    status_filter: Optional[str] = Query(
        None, alias="status", pattern="^(pending|in_progress|completed|cancelled|on_hold)$"
    ),
    deadline: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Filtered, paginated task list."""
    result = list_tasks_use_case(
        db=db,
        assignee=assignee,
        priority=priority,
        status=status_filter,
        deadline=deadline,
        page=page,
        limit=limit,
    )
    return result.as_dict(tasks_to_response(db, result.items))


@router.get("/search", response_model=list[TaskResponse])
def search_tasks(
    q: str = Query(..., min_length=1, max_length=255),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return tasks_to_response(db, search_tasks_use_case(db=db, q=q, limit=limit))


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_to_response(db, get_task_or_404(db, task_id))


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    current_user: User = Depends(PermissionChecker("canCreateTasks")),
    db: Session = Depends(get_db),
):
    task = create_task_use_case(db=db, payload=payload, current_user=current_user)
    return task_to_response(db, task)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = update_task_use_case(db=db, task_id=task_id, payload=payload, current_user=current_user)
    return task_to_response(db, task)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_task_use_case(db=db, task_id=task_id, current_user=current_user)
    return MessageResponse(message="Task deleted")
