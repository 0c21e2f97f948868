"""user table with unique email

Revision ID: 20250726061226
Revises: 20250723054540
Create Date: 2025-07-26 06:12:26
"""

from alembic import op

from app.migration_phases import add_constraint_if_missing


# revision identifiers, used by Alembic.
revision = "20250726061226"
down_revision = "20250723054540"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS "user" (
            "id" SERIAL PRIMARY KEY,
            "email" VARCHAR(255) NOT NULL,
            "password" VARCHAR(255) NOT NULL,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute(add_constraint_if_missing("user_email_unique", "user", 'UNIQUE ("email")'))


def downgrade() -> None:
    op.execute('DROP TABLE IF EXISTS "user" CASCADE')
