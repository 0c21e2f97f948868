"""SQLAlchemy models matching the schema produced by the Alembic revisions."""
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Column, String, Integer, Date, DateTime, Text, Numeric,
    ForeignKey, CheckConstraint, Index, Table,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


ROLE_NAMES = ("admin", "user")
USER_STATUSES = ("active", "inactive", "suspended")
TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled", "on_hold")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TICKET_STATUSES = ("pending", "approved", "rejected", "in_review")
TICKET_DECIDED_STATUSES = ("approved", "rejected")

MAX_HOURS_PER_LOG = Decimal("24")


task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("task.id", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True),
)

ticket_assignees = Table(
    "ticket_assignees",
    Base.metadata,
    Column("ticket_id", Integer, ForeignKey("ticket.id", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True),
)


class Role(Base):
    """Role model (admin / user)."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)

    __table_args__ = (
        CheckConstraint(name.in_(ROLE_NAMES), name="roles_name_check"),
    )

    users = relationship("User", back_populates="role")


class User(Base):
    """User model."""
    __tablename__ = "user"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    username = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar = Column(String(255), nullable=True)
    phone = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    status = Column(String(20), default="active", server_default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    # Denormalized aggregates maintained outside this service.
    total_orders = Column(Integer, default=0, server_default="0")
    total_spending = Column(Numeric(12, 2), default=0, server_default="0")

    __table_args__ = (
        Index("user_email_index", "email"),
        Index("user_status_index", "status"),
        Index("user_total_orders_index", "total_orders"),
        Index("user_total_spending_index", "total_spending"),
    )

    # Relationships
    role = relationship("Role", back_populates="users")
    created_tasks = relationship("Task", back_populates="creator")
    assigned_tasks = relationship("Task", secondary=task_assignees, back_populates="assignees")
    requested_tickets = relationship("Ticket", foreign_keys="Ticket.requested_by_id", back_populates="requested_by")
    approved_tickets = relationship("Ticket", foreign_keys="Ticket.approved_by_id", back_populates="approved_by")
    log_works = relationship("LogWork", back_populates="user")

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    @property
    def is_admin(self) -> bool:
        return self.role_name == "admin"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or self.email


class Task(Base):
    """Task model."""
    __tablename__ = "task"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(String(20), default="pending", server_default="pending")
    priority = Column(String(255), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True)
    estimated_hours = Column(Integer, default=0, server_default="0")
    actual_hours = Column(Integer, default=0, server_default="0")
    progress = Column(Integer, default=0, server_default="0")
    notes = Column(Text, nullable=True)
    # Free-text assignee from the single-table prototype, kept for audit.
    assignee = Column(String(255), nullable=True)
    creator_id = Column(Integer, ForeignKey("user.id", onupdate="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("task_status_index", "status"),
        Index("task_priority_index", "priority"),
        Index("task_deadline_index", "deadline"),
    )

    # Relationships
    creator = relationship("User", back_populates="created_tasks")
    assignees = relationship("User", secondary=task_assignees, back_populates="assigned_tasks")
    tickets = relationship("Ticket", back_populates="task")
    log_works = relationship("LogWork", back_populates="task")

    def is_overdue(self, now: datetime | None = None) -> bool:
        if not self.deadline:
            return False
        now = now or datetime.now(timezone.utc)
        deadline = self.deadline
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return now > deadline


class Ticket(Base):
    """Approval request raised against a task."""
    __tablename__ = "ticket"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending", server_default="pending")
    priority = Column(String(10), default="medium", server_default="medium")
    task_id = Column(Integer, ForeignKey("task.id", onupdate="CASCADE"), nullable=False)
    requested_by_id = Column(Integer, ForeignKey("user.id", onupdate="CASCADE"), nullable=False)
    approved_by_id = Column(Integer, ForeignKey("user.id", onupdate="CASCADE"), nullable=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ticket_status_index", "status"),
    )

    # Relationships
    task = relationship("Task", back_populates="tickets")
    requested_by = relationship("User", foreign_keys=[requested_by_id], back_populates="requested_tickets")
    approved_by = relationship("User", foreign_keys=[approved_by_id], back_populates="approved_tickets")
    assignees = relationship("User", secondary=ticket_assignees)

    @property
    def is_decided(self) -> bool:
        return self.status in TICKET_DECIDED_STATUSES


class LogWork(Base):
    """Hours a user logged against a task on a given day."""
    __tablename__ = "log_work"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("task.id", onupdate="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("user.id", onupdate="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    hours_worked = Column(Numeric(5, 2), default=0, server_default="0")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    task = relationship("Task", back_populates="log_works")
    user = relationship("User", back_populates="log_works")

    __table_args__ = (
        Index("log_work_date_index", "date"),
    )


def hours_are_valid(hours: Decimal | float | int | None) -> bool:
    """Logged hours must fall within (0, 24]."""
    if hours is None:
        return False
    value = Decimal(str(hours))
    return Decimal("0") < value <= MAX_HOURS_PER_LOG
