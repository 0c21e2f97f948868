"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^[0-9+\-\s()]+$"
ROLE_PATTERN = "^(admin|user)$"
USER_STATUS_PATTERN = "^(active|inactive|suspended)$"
TASK_STATUS_PATTERN = "^(pending|in_progress|completed|cancelled|on_hold)$"
PRIORITY_PATTERN = "^(low|medium|high|urgent)$"
TICKET_STATUS_PATTERN = "^(pending|approved|rejected|in_review)$"


def _reject_null(value):
    """Partial updates may omit a field but not clear a required column."""
    if value is None:
        raise ValueError("must not be null")
    return value


# User schemas
class UserBrief(BaseModel):
    """Brief user info for nested responses."""
    id: int
    email: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: int
    email: str
    role: Optional[str] = Field(default=None, validation_alias="role_name")
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    total_orders: int = 0
    total_spending: Decimal = Decimal("0")
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class UserCreate(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=50)
    username: Optional[str] = Field(default=None, min_length=2, max_length=30)
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN, min_length=10, max_length=20)
    department: Optional[str] = Field(default=None, min_length=2, max_length=50)
    position: Optional[str] = Field(default=None, min_length=2, max_length=50)
    role_name: str = Field(default="user", pattern=ROLE_PATTERN)


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    password: Optional[str] = Field(default=None, min_length=6, max_length=50)
    username: Optional[str] = Field(default=None, min_length=2, max_length=30)
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN, min_length=10, max_length=20)
    department: Optional[str] = Field(default=None, min_length=2, max_length=50)
    position: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(default=None, max_length=255)
    status: Optional[str] = Field(default=None, pattern=USER_STATUS_PATTERN)
    role_name: Optional[str] = Field(default=None, pattern=ROLE_PATTERN)

    @field_validator("email", "password", "status", "role_name")
    @classmethod
    def _required_columns_not_null(cls, value):
        return _reject_null(value)


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UserStatsResponse(BaseModel):
    total: int
    active: int
    admins: int
    recent: int


# Auth schemas
class RegisterRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=50)
    role: str = Field(default="user", pattern=ROLE_PATTERN)


class LoginRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


# Task schemas
class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
    priority: str = Field(pattern=PRIORITY_PATTERN)
    status: str = Field(default="pending", pattern=TASK_STATUS_PATTERN)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    estimated_hours: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    notes: Optional[str] = None
    assignee_ids: list[int] = []


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
    priority: Optional[str] = Field(default=None, pattern=PRIORITY_PATTERN)
    status: Optional[str] = Field(default=None, pattern=TASK_STATUS_PATTERN)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    estimated_hours: Optional[int] = Field(default=None, ge=0)
    actual_hours: Optional[int] = Field(default=None, ge=0)
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None
    # None leaves assignments untouched; [] clears them.
    assignee_ids: Optional[list[int]] = None

    @field_validator("title", "priority", "status", "estimated_hours", "actual_hours", "progress")
    @classmethod
    def _required_columns_not_null(cls, value):
        return _reject_null(value)


class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    estimated_hours: int = 0
    actual_hours: int = 0
    progress: int = 0
    notes: Optional[str] = None
    creator: Optional[UserBrief] = None
    assignees: list[UserBrief] = []
    legacy_assignee: Optional[str] = None
    logged_hours: Decimal = Decimal("0")
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskListResponse(BaseModel):
    items: list[TaskResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# Ticket schemas
class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    task_id: int
    notes: Optional[str] = None
    assignee_ids: list[int] = []


class TicketDecision(BaseModel):
    notes: Optional[str] = None


class TicketResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    task_id: int
    requested_by: UserBrief
    approved_by: Optional[UserBrief] = None
    assignees: list[UserBrief] = []
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Work log schemas
class LogWorkCreate(BaseModel):
    task_id: int
    date: date
    hours_worked: Decimal = Field(gt=0, le=24, max_digits=5, decimal_places=2)
    description: Optional[str] = None


class LogWorkResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    date: date
    hours_worked: Decimal
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# System
class HealthCheckResponse(BaseModel):
    status: str
    database: str
    version: str
