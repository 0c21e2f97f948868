"""roles table, seeded roles and user.role_id

Revision ID: 20250728095000
Revises: 20250726061226
Create Date: 2025-07-28 09:50:00
"""

import logging

from alembic import op

from app.migration_phases import add_constraint_if_missing, backfill_user_roles, seed_roles


# revision identifiers, used by Alembic.
revision = "20250728095000"
down_revision = "20250726061226"
branch_labels = None
depends_on = None

logger = logging.getLogger("app.migrations.roles")

# Users created before roles existed were all operators of the prototype.
LEGACY_USER_ROLE = "admin"


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS "roles" (
            "id" SERIAL PRIMARY KEY,
            "name" VARCHAR(50) NOT NULL UNIQUE,
            CONSTRAINT "roles_name_check" CHECK ("name" IN ('admin', 'user'))
        )
        """
    )
    conn = op.get_bind()
    seed_roles(conn, ("admin", "user"))

    op.execute('ALTER TABLE "user" ADD COLUMN IF NOT EXISTS "role_id" INTEGER')
    updated = backfill_user_roles(conn, LEGACY_USER_ROLE)
    if updated:
        logger.info("Assigned role %r to %d existing users", LEGACY_USER_ROLE, updated)
    op.execute('ALTER TABLE "user" ALTER COLUMN "role_id" SET NOT NULL')
    op.execute(
        add_constraint_if_missing(
            "user_role_id_foreign",
            "user",
            'FOREIGN KEY ("role_id") REFERENCES "roles" ("id") ON UPDATE CASCADE',
        )
    )


def downgrade() -> None:
    op.execute('ALTER TABLE "user" DROP CONSTRAINT IF EXISTS "user_role_id_foreign"')
    op.execute('ALTER TABLE "user" DROP COLUMN IF EXISTS "role_id"')
    op.execute('DROP TABLE IF EXISTS "roles" CASCADE')
