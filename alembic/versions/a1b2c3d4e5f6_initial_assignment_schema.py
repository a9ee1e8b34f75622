"""initial customer assignment schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column(
            "role", sa.String(20), nullable=False, server_default="assistant"
        ),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column("max_customers_limit", sa.Integer()),
        sa.Column(
            "permissions",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "role IN ('admin', 'supervisor', 'manager', 'assistant', 'customer')",
            name="ck_user_role",
        ),
        sa.CheckConstraint(
            "max_customers_limit IS NULL OR max_customers_limit >= 0",
            name="ck_max_customers_limit_nonneg",
        ),
    )

    op.create_table(
        "customers",
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column(
            "assigned_to",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.user_id", ondelete="RESTRICT"),
        ),
        sa.Column(
            "assigned_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.user_id", ondelete="SET NULL"),
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True)),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "assigned_to IS NOT NULL OR assigned_by IS NULL",
            name="ck_assigned_by_requires_owner",
        ),
        sa.CheckConstraint(
            "assigned_to IS NOT NULL OR assigned_at IS NULL",
            name="ck_assigned_at_requires_owner",
        ),
    )
    # workload counts
    op.create_index("idx_customers_assigned_to", "customers", ["assigned_to"])

    op.create_table(
        "assignment_events",
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("customers.customer_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "action_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.user_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("previous_assignment", postgresql.JSONB(), nullable=False),
        sa.Column("new_assignment", postgresql.JSONB(), nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("reason", sa.Text()),
        sa.Column(
            "request_metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default="{}",
        ),
        sa.CheckConstraint(
            "action IN ('claimed', 'assigned', 'reassigned', 'unassigned', "
            "'transfer-requested')",
            name="ck_assignment_event_action",
        ),
        sa.CheckConstraint(
            "reason IS NULL OR char_length(reason) <= 500",
            name="ck_assignment_event_reason_length",
        ),
    )
    # per-customer history in chronological order
    op.create_index(
        "idx_assignment_events_customer_ts",
        "assignment_events",
        ["customer_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("idx_assignment_events_customer_ts", table_name="assignment_events")
    op.drop_table("assignment_events")
    op.drop_index("idx_customers_assigned_to", table_name="customers")
    op.drop_table("customers")
    op.drop_table("users")
