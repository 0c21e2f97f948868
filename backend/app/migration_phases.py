"""Idempotent schema-evolution building blocks shared by the Alembic revisions.

Every DDL statement produced here is safe to run twice against the same
PostgreSQL database: columns, tables and indexes use ``IF NOT EXISTS`` and
named constraints are guarded by a ``pg_constraint`` lookup. The data
backfills are written with SQLAlchemy Core so they only ever touch rows that
still need the change (``IS NULL`` / ``NOT EXISTS`` guards).

A revision lists its work as ordered :class:`MigrationPhase` objects and hands
them to :func:`run_phases`; a failing statement propagates so the surrounding
migration transaction is rolled back and the run halts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def add_constraint_if_missing(name: str, table: str, definition: str) -> str:
    """ALTER TABLE ... ADD CONSTRAINT wrapped in a catalog existence check."""
    return f"""
        DO $$
        BEGIN
          IF NOT EXISTS (
            SELECT 1 FROM pg_constraint
            WHERE conname = '{name}'
          ) THEN
            ALTER TABLE {_quote(table)}
              ADD CONSTRAINT {_quote(name)} {definition};
          END IF;
        END $$;
        """


def drop_constraint_if_exists(name: str, table: str) -> str:
    return f"ALTER TABLE {_quote(table)} DROP CONSTRAINT IF EXISTS {_quote(name)}"


@dataclass(frozen=True)
class AddedColumn:
    """Nullable or defaulted column added to an existing table."""

    table: str
    name: str
    ddl: str

    def add_sql(self) -> str:
        return f"ALTER TABLE {_quote(self.table)} ADD COLUMN IF NOT EXISTS {_quote(self.name)} {self.ddl}"

    def drop_sql(self) -> str:
        return f"ALTER TABLE {_quote(self.table)} DROP COLUMN IF EXISTS {_quote(self.name)}"


@dataclass(frozen=True)
class NewTable:
    name: str
    body: str

    def create_sql(self) -> str:
        return f"CREATE TABLE IF NOT EXISTS {_quote(self.name)} ({self.body})"

    def drop_sql(self) -> str:
        return f"DROP TABLE IF EXISTS {_quote(self.name)} CASCADE"


@dataclass(frozen=True)
class ForeignKeyDef:
    name: str
    table: str
    column: str
    ref_table: str
    ref_column: str = "id"
    on_delete: str | None = None

    @property
    def definition(self) -> str:
        clause = (
            f"FOREIGN KEY ({_quote(self.column)}) "
            f"REFERENCES {_quote(self.ref_table)} ({_quote(self.ref_column)}) ON UPDATE CASCADE"
        )
        if self.on_delete:
            clause += f" ON DELETE {self.on_delete}"
        return clause

    def add_sql(self) -> str:
        return add_constraint_if_missing(self.name, self.table, self.definition)

    def drop_sql(self) -> str:
        return drop_constraint_if_exists(self.name, self.table)


@dataclass(frozen=True)
class IndexDef:
    name: str
    table: str
    columns: tuple[str, ...]

    def create_sql(self) -> str:
        cols = ", ".join(_quote(col) for col in self.columns)
        return f"CREATE INDEX IF NOT EXISTS {_quote(self.name)} ON {_quote(self.table)} ({cols})"

    def drop_sql(self) -> str:
        return f"DROP INDEX IF EXISTS {_quote(self.name)}"


@dataclass(frozen=True)
class MigrationPhase:
    """Named step of a multi-phase revision; ``apply`` receives the migration connection."""

    name: str
    apply: Callable[[Connection], object]


def execute_all(conn: Connection, statements: Iterable[str]) -> int:
    """Execute raw SQL statements in program order; returns how many ran."""
    count = 0
    for statement in statements:
        conn.execute(sa.text(statement))
        count += 1
    return count


def run_phases(conn: Connection, phases: Sequence[MigrationPhase]) -> None:
    """Apply phases strictly in order. Errors propagate and stop the run."""
    total = len(phases)
    for number, phase in enumerate(phases, start=1):
        logger.info("Phase %d/%d: %s", number, total, phase.name)
        phase.apply(conn)
        logger.info("Phase %d/%d completed: %s", number, total, phase.name)


# Lightweight table handles for data backfills. They name only the columns the
# backfills touch, so they stay valid for every later shape of the schema.
roles_table = sa.table(
    "roles",
    sa.column("id", sa.Integer),
    sa.column("name", sa.String),
)
users_table = sa.table(
    "user",
    sa.column("id", sa.Integer),
    sa.column("email", sa.String),
    sa.column("username", sa.String),
    sa.column("full_name", sa.String),
    sa.column("role_id", sa.Integer),
)
tasks_table = sa.table(
    "task",
    sa.column("id", sa.Integer),
    sa.column("assignee", sa.String),
    sa.column("creator_id", sa.Integer),
)
task_assignees_table = sa.table(
    "task_assignees",
    sa.column("task_id", sa.Integer),
    sa.column("user_id", sa.Integer),
)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def seed_roles(conn: Connection, names: Sequence[str] = ("admin", "user")) -> None:
    """INSERT the role names, ON CONFLICT (name) DO NOTHING."""
    try:
        insert = _UPSERT_INSERTS[conn.dialect.name]
    except KeyError:
        raise ValueError(f"Role seeding is not supported on {conn.dialect.name}") from None
    stmt = insert(roles_table).values([{"name": name} for name in names])
    conn.execute(stmt.on_conflict_do_nothing(index_elements=["name"]))


def backfill_user_roles(conn: Connection, role_name: str) -> int:
    """Give every user without a role the named role."""
    role_id = sa.select(roles_table.c.id).where(roles_table.c.name == role_name).scalar_subquery()
    result = conn.execute(
        sa.update(users_table)
        .where(users_table.c.role_id.is_(None))
        .values(role_id=role_id)
    )
    return result.rowcount


def _contains_either_way(field, text):
    """Case-insensitive substring match in both directions; blank fields never match."""
    return sa.and_(
        field != "",
        sa.or_(
            field.ilike(sa.literal("%") + text + sa.literal("%")),
            text.ilike(sa.literal("%") + field + sa.literal("%")),
        ),
    )


def legacy_assignee_match():
    """Join condition between ``task`` and ``user`` for the free-text assignee."""
    legacy = sa.func.trim(tasks_table.c.assignee, type_=sa.String)
    return sa.or_(
        _contains_either_way(users_table.c.full_name, legacy),
        _contains_either_way(users_table.c.email, legacy),
        _contains_either_way(users_table.c.username, legacy),
        sa.func.trim(sa.func.lower(users_table.c.full_name)) == sa.func.lower(legacy),
        sa.func.trim(sa.func.lower(users_table.c.email)) == sa.func.lower(legacy),
    )


def backfill_task_assignees(conn: Connection) -> int:
    """Create task_assignees rows from the legacy free-text ``task.assignee``.

    The match is deliberately over-inclusive: one assignee string may link
    several users (for example when one user's name contains another's).
    Pairs that already exist are skipped, so reruns insert nothing.
    """
    already_assigned = sa.exists().where(
        task_assignees_table.c.task_id == tasks_table.c.id,
        task_assignees_table.c.user_id == users_table.c.id,
    )
    candidates = (
        sa.select(tasks_table.c.id, users_table.c.id)
        .distinct()
        .select_from(tasks_table.join(users_table, legacy_assignee_match()))
        .where(
            tasks_table.c.assignee.is_not(None),
            sa.func.trim(tasks_table.c.assignee) != "",
            ~already_assigned,
        )
    )
    result = conn.execute(
        sa.insert(task_assignees_table).from_select(["task_id", "user_id"], candidates)
    )
    return result.rowcount


def backfill_task_creators(conn: Connection) -> int:
    """Set ``creator_id`` on tasks that have none to the lowest-id admin user."""
    first_admin = (
        sa.select(sa.func.min(users_table.c.id))
        .select_from(users_table.join(roles_table, users_table.c.role_id == roles_table.c.id))
        .where(roles_table.c.name == "admin")
        .scalar_subquery()
    )
    result = conn.execute(
        sa.update(tasks_table)
        .where(tasks_table.c.creator_id.is_(None), first_admin.is_not(None))
        .values(creator_id=first_admin)
    )
    return result.rowcount


def report_unassigned_legacy_tasks(conn: Connection) -> list[tuple[int, str]]:
    """Log tasks whose legacy assignee matched no user, for operator review."""
    has_assignee = sa.exists().where(task_assignees_table.c.task_id == tasks_table.c.id)
    rows = conn.execute(
        sa.select(tasks_table.c.id, tasks_table.c.assignee)
        .where(
            tasks_table.c.assignee.is_not(None),
            sa.func.trim(tasks_table.c.assignee) != "",
            ~has_assignee,
        )
        .order_by(tasks_table.c.id)
    ).all()
    for task_id, assignee in rows:
        logger.warning("Task %s: legacy assignee %r matched no user; left unassigned", task_id, assignee)
    return [(task_id, assignee) for task_id, assignee in rows]
