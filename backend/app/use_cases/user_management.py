"""User registration, login and admin user management."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..auth import get_password_hash, verify_password
from ..database import commit_or_rollback
from ..domain_errors import DomainError, conflict, not_found
from ..models import LogWork, Role, Task, Ticket, User
from ..schemas import UserCreate, UserUpdate
from ..services.pagination import Page, paginate

logger = logging.getLogger(__name__)

RECENT_USER_WINDOW = timedelta(days=30)


def _get_role_or_404(db: Session, role_name: str) -> Role:
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        raise DomainError(
            code="ROLE_NOT_FOUND",
            http_status=404,
            message=f"Role '{role_name}' not found",
        )
    return role


def _ensure_email_free(db: Session, email: str, *, exclude_user_id: int | None = None) -> None:
    query = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise conflict("EMAIL_ALREADY_EXISTS", "Email already exists", email=email)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).options(joinedload(User.role)).filter(User.id == user_id).first()
    if not user:
        raise not_found("user", user_id)
    return user


def register_user_use_case(*, db: Session, email: str, password: str, role_name: str) -> User:
    _ensure_email_free(db, email)
    role = _get_role_or_404(db, role_name)

    user = User(email=email, password=get_password_hash(password), role=role, status="active")
    db.add(user)
    commit_or_rollback(db, action="register user")
    db.refresh(user)
    logger.info("Registered user %s with role %s", user.id, role_name)
    return user


def authenticate_use_case(*, db: Session, email: str, password: str) -> User:
    user = (
        db.query(User)
        .options(joinedload(User.role))
        .filter(func.lower(User.email) == email.lower())
        .first()
    )
    if not user or not verify_password(password, user.password):
        raise DomainError(
            code="INVALID_CREDENTIALS",
            http_status=401,
            message="Invalid email or password",
        )
    if not user.is_active:
        raise DomainError(
            code="USER_INACTIVE",
            http_status=403,
            message="User account is not active",
            details={"status": user.status},
        )

    user.last_login_at = datetime.now(timezone.utc)
    commit_or_rollback(db, action="record login")
    return user


def list_users_use_case(
    *,
    db: Session,
    role: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    query = db.query(User).options(joinedload(User.role))
    if role:
        query = query.filter(User.role.has(Role.name == role))
    if status:
        query = query.filter(User.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.email.ilike(pattern),
                User.username.ilike(pattern),
                User.full_name.ilike(pattern),
            )
        )
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, limit=limit)


def search_users_use_case(*, db: Session, q: str, limit: int = 10) -> list[User]:
    pattern = f"%{q.strip()}%"
    return (
        db.query(User)
        .options(joinedload(User.role))
        .filter(
            or_(
                User.email.ilike(pattern),
                User.username.ilike(pattern),
                User.full_name.ilike(pattern),
            )
        )
        .order_by(User.id)
        .limit(limit)
        .all()
    )


def user_stats_use_case(*, db: Session, now: datetime | None = None) -> dict[str, int]:
    now = now or datetime.now(timezone.utc)
    total = db.query(func.count(User.id)).scalar() or 0
    active = db.query(func.count(User.id)).filter(User.status == "active").scalar() or 0
    admins = (
        db.query(func.count(User.id))
        .filter(User.role.has(Role.name == "admin"))
        .scalar()
        or 0
    )
    recent = (
        db.query(func.count(User.id))
        .filter(User.created_at >= now - RECENT_USER_WINDOW)
        .scalar()
        or 0
    )
    return {"total": total, "active": active, "admins": admins, "recent": recent}


def create_user_use_case(*, db: Session, payload: UserCreate) -> User:
    _ensure_email_free(db, payload.email)
    role = _get_role_or_404(db, payload.role_name)

    data = payload.model_dump(exclude={"password", "role_name"})
    user = User(**data, password=get_password_hash(payload.password), role=role, status="active")
    db.add(user)
    commit_or_rollback(db, action="create user")
    db.refresh(user)
    return user


def update_user_use_case(*, db: Session, user_id: int, payload: UserUpdate) -> User:
    user = get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    email = data.pop("email", None)
    if email is not None and email.lower() != user.email.lower():
        _ensure_email_free(db, email, exclude_user_id=user.id)
        user.email = email

    password = data.pop("password", None)
    if password is not None:
        user.password = get_password_hash(password)

    role_name = data.pop("role_name", None)
    if role_name is not None:
        user.role = _get_role_or_404(db, role_name)

    for field, value in data.items():
        setattr(user, field, value)

    commit_or_rollback(db, action="update user")
    db.refresh(user)
    return user


def _user_is_referenced(db: Session, user_id: int) -> bool:
    """Rows that would lose their user; task and ticket assignments are removed with it."""
    checks = (
        db.query(Task.id).filter(Task.creator_id == user_id),
        db.query(Ticket.id).filter(or_(Ticket.requested_by_id == user_id, Ticket.approved_by_id == user_id)),
        db.query(LogWork.id).filter(LogWork.user_id == user_id),
    )
    return any(query.first() is not None for query in checks)


def delete_user_use_case(*, db: Session, user_id: int, current_user: User, hard: bool = False) -> User:
    """Soft delete marks the user inactive; hard delete removes the row."""
    user = get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise DomainError(
            code="USER_SELF_DELETE",
            http_status=400,
            message="You cannot delete your own account",
        )

    if hard:
        if _user_is_referenced(db, user.id):
            raise conflict("USER_IN_USE", "User is still referenced by tasks, tickets or work logs", id=user_id)
        db.delete(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise conflict("USER_IN_USE", "User is still referenced by tasks, tickets or work logs", id=user_id)
    else:
        user.status = "inactive"
        commit_or_rollback(db, action="deactivate user")
    logger.info("User %s %s by %s", user_id, "deleted" if hard else "deactivated", current_user.id)
    return user
