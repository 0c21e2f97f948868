"""User endpoints (admin only)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..database import get_db
from ..models import User
from ..schemas import (
    MessageResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdate,
)
from ..use_cases.user_management import (
    create_user_use_case,
    delete_user_use_case,
    get_user_or_404,
    list_users_use_case,
    search_users_use_case,
    update_user_use_case,
    user_stats_use_case,
)

router = APIRouter(prefix="/users", tags=["users"])

require_user_admin = PermissionChecker("canManageUsers")


@router.get("", response_model=UserListResponse)
def get_users(
    role: Optional[str] = Query(None, pattern="^(admin|user)$"),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(active|inactive|suspended)$"),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    """Filtered, paginated user list, newest first."""
    result = list_users_use_case(
        db=db,
        role=role,
        status=status_filter,
        search=search,
        page=page,
        limit=limit,
    )
    return result.as_dict([UserResponse.model_validate(u) for u in result.items])


@router.get("/search", response_model=list[UserResponse])
def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    users = search_users_use_case(db=db, q=q, limit=limit)
    return [UserResponse.model_validate(u) for u in users]


@router.get("/stats", response_model=UserStatsResponse)
def get_user_stats(
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    return user_stats_use_case(db=db)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    """Get user by ID."""
    return UserResponse.model_validate(get_user_or_404(db, user_id))


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(create_user_use_case(db=db, payload=payload))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(update_user_use_case(db=db, user_id=user_id, payload=payload))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    hard: bool = Query(False),
    current_user: User = Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    """Deactivate a user, or remove the row with ?hard=true."""
    delete_user_use_case(db=db, user_id=user_id, current_user=current_user, hard=hard)
    return MessageResponse(message="User deleted" if hard else "User deactivated")
