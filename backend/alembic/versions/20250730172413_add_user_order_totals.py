"""user.total_orders and user.total_spending with indexes

Revision ID: 20250730172413
Revises: 20250730070000
Create Date: 2025-07-30 17:24:13
"""

from alembic import op

from app.migration_phases import AddedColumn, IndexDef, execute_all


# revision identifiers, used by Alembic.
revision = "20250730172413"
down_revision = "20250730070000"
branch_labels = None
depends_on = None

COLUMNS = (
    AddedColumn("user", "total_orders", "INTEGER DEFAULT 0"),
    AddedColumn("user", "total_spending", "DECIMAL(12,2) DEFAULT 0"),
)

INDEXES = (
    IndexDef("user_total_orders_index", "user", ("total_orders",)),
    IndexDef("user_total_spending_index", "user", ("total_spending",)),
)


def upgrade() -> None:
    conn = op.get_bind()
    execute_all(conn, [column.add_sql() for column in COLUMNS])
    execute_all(conn, [index.create_sql() for index in INDEXES])


def downgrade() -> None:
    conn = op.get_bind()
    execute_all(conn, [index.drop_sql() for index in reversed(INDEXES)])
    execute_all(conn, [column.drop_sql() for column in reversed(COLUMNS)])
