"""extend user/task, add assignees, tickets and work logs, backfill legacy data

Revision ID: 20250730070000
Revises: 20250728095000
Create Date: 2025-07-30 07:00:00
"""

import logging

from alembic import op

from app.migration_phases import (
    AddedColumn,
    ForeignKeyDef,
    IndexDef,
    MigrationPhase,
    NewTable,
    backfill_task_assignees,
    backfill_task_creators,
    execute_all,
    report_unassigned_legacy_tasks,
    run_phases,
)


# revision identifiers, used by Alembic.
revision = "20250730070000"
down_revision = "20250728095000"
branch_labels = None
depends_on = None

logger = logging.getLogger("app.migrations.extend_users_and_tasks")


USER_COLUMNS = (
    AddedColumn("user", "username", "VARCHAR(255)"),
    AddedColumn("user", "full_name", "VARCHAR(255)"),
    AddedColumn("user", "avatar", "VARCHAR(255)"),
    AddedColumn("user", "phone", "VARCHAR(255)"),
    AddedColumn("user", "department", "VARCHAR(255)"),
    AddedColumn("user", "position", "VARCHAR(255)"),
    AddedColumn("user", "status", "VARCHAR(20) DEFAULT 'active'"),
    AddedColumn("user", "last_login_at", "TIMESTAMPTZ"),
    AddedColumn("user", "updated_at", "TIMESTAMPTZ DEFAULT now()"),
)

TASK_COLUMNS = (
    AddedColumn("task", "status", "VARCHAR(20) DEFAULT 'pending'"),
    AddedColumn("task", "start_date", "TIMESTAMPTZ"),
    AddedColumn("task", "end_date", "TIMESTAMPTZ"),
    AddedColumn("task", "estimated_hours", "INTEGER DEFAULT 0"),
    AddedColumn("task", "actual_hours", "INTEGER DEFAULT 0"),
    AddedColumn("task", "progress", "INTEGER DEFAULT 0"),
    AddedColumn("task", "notes", "TEXT"),
    AddedColumn("task", "creator_id", "INTEGER"),
)

NEW_TABLES = (
    NewTable(
        "task_assignees",
        """
        "task_id" INTEGER NOT NULL,
        "user_id" INTEGER NOT NULL,
        CONSTRAINT "task_assignees_pkey" PRIMARY KEY ("task_id", "user_id")
        """,
    ),
    NewTable(
        "ticket",
        """
        "id" SERIAL PRIMARY KEY,
        "title" VARCHAR(255) NOT NULL,
        "description" TEXT,
        "status" VARCHAR(20) DEFAULT 'pending',
        "priority" VARCHAR(10) DEFAULT 'medium',
        "task_id" INTEGER NOT NULL,
        "requested_by_id" INTEGER NOT NULL,
        "approved_by_id" INTEGER,
        "requested_at" TIMESTAMPTZ DEFAULT now(),
        "approved_at" TIMESTAMPTZ,
        "notes" TEXT,
        "created_at" TIMESTAMPTZ DEFAULT now(),
        "updated_at" TIMESTAMPTZ DEFAULT now()
        """,
    ),
    NewTable(
        "ticket_assignees",
        """
        "ticket_id" INTEGER NOT NULL,
        "user_id" INTEGER NOT NULL,
        CONSTRAINT "ticket_assignees_pkey" PRIMARY KEY ("ticket_id", "user_id")
        """,
    ),
    NewTable(
        "log_work",
        """
        "id" SERIAL PRIMARY KEY,
        "task_id" INTEGER NOT NULL,
        "user_id" INTEGER NOT NULL,
        "date" DATE NOT NULL,
        "hours_worked" DECIMAL(5,2) DEFAULT 0,
        "description" TEXT,
        "created_at" TIMESTAMPTZ DEFAULT now(),
        "updated_at" TIMESTAMPTZ DEFAULT now()
        """,
    ),
)

FOREIGN_KEYS = (
    ForeignKeyDef("task_creator_id_foreign", "task", "creator_id", "user"),
    ForeignKeyDef("task_assignees_task_id_foreign", "task_assignees", "task_id", "task", on_delete="CASCADE"),
    ForeignKeyDef("task_assignees_user_id_foreign", "task_assignees", "user_id", "user", on_delete="CASCADE"),
    ForeignKeyDef("ticket_task_id_foreign", "ticket", "task_id", "task"),
    ForeignKeyDef("ticket_requested_by_id_foreign", "ticket", "requested_by_id", "user"),
    ForeignKeyDef("ticket_approved_by_id_foreign", "ticket", "approved_by_id", "user"),
    ForeignKeyDef("ticket_assignees_ticket_id_foreign", "ticket_assignees", "ticket_id", "ticket", on_delete="CASCADE"),
    ForeignKeyDef("ticket_assignees_user_id_foreign", "ticket_assignees", "user_id", "user", on_delete="CASCADE"),
    ForeignKeyDef("log_work_task_id_foreign", "log_work", "task_id", "task"),
    ForeignKeyDef("log_work_user_id_foreign", "log_work", "user_id", "user"),
)

INDEXES = (
    IndexDef("user_email_index", "user", ("email",)),
    IndexDef("user_status_index", "user", ("status",)),
    IndexDef("task_status_index", "task", ("status",)),
    IndexDef("task_priority_index", "task", ("priority",)),
    IndexDef("task_deadline_index", "task", ("deadline",)),
    IndexDef("ticket_status_index", "ticket", ("status",)),
    IndexDef("log_work_date_index", "log_work", ("date",)),
)


def add_columns(conn) -> None:
    execute_all(conn, [column.add_sql() for column in USER_COLUMNS + TASK_COLUMNS])


def create_tables(conn) -> None:
    execute_all(conn, [table.create_sql() for table in NEW_TABLES])


def add_foreign_keys(conn) -> None:
    execute_all(conn, [fk.add_sql() for fk in FOREIGN_KEYS])


def create_indexes(conn) -> None:
    execute_all(conn, [index.create_sql() for index in INDEXES])


def backfill_legacy_data(conn) -> None:
    assigned = backfill_task_assignees(conn)
    logger.info("Linked %d task/user pairs from legacy assignee text", assigned)
    creators = backfill_task_creators(conn)
    logger.info("Set default creator on %d tasks", creators)
    report_unassigned_legacy_tasks(conn)


UPGRADE_PHASES = (
    MigrationPhase("add columns to user and task", add_columns),
    MigrationPhase("create assignee, ticket and work log tables", create_tables),
    MigrationPhase("add foreign keys", add_foreign_keys),
    MigrationPhase("create indexes", create_indexes),
    MigrationPhase("backfill assignees and creators", backfill_legacy_data),
)


def downgrade_statements() -> list[str]:
    """Reverse of the DDL phases; backfilled rows go away with their tables."""
    created = {table.name for table in NEW_TABLES}
    statements = [table.drop_sql() for table in reversed(NEW_TABLES)]
    statements += [fk.drop_sql() for fk in reversed(FOREIGN_KEYS) if fk.table not in created]
    statements += [index.drop_sql() for index in reversed(INDEXES) if index.table not in created]
    statements += [column.drop_sql() for column in reversed(USER_COLUMNS + TASK_COLUMNS)]
    return statements


def upgrade() -> None:
    run_phases(op.get_bind(), UPGRADE_PHASES)
    logger.info('Column "task"."assignee" kept; drop it manually once the backfill is verified')


def downgrade() -> None:
    execute_all(op.get_bind(), downgrade_statements())
