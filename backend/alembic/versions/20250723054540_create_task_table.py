"""single-table prototype: task with free-text assignee

Revision ID: 20250723054540
Revises:
Create Date: 2025-07-23 05:45:40
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "20250723054540"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS "task" (
            "id" SERIAL PRIMARY KEY,
            "title" VARCHAR(255) NOT NULL,
            "description" VARCHAR(255) NULL,
            "deadline" TIMESTAMPTZ NULL,
            "priority" VARCHAR(255) NOT NULL,
            "assignee" VARCHAR(255) NULL,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT now(),
            "updated_at" TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )


def downgrade() -> None:
    op.execute('DROP TABLE IF EXISTS "task" CASCADE')
