"""make assignment_events append-only at the database level

Revision ID: b2c3d4e5f6a7
Revises: a1b2c3d4e5f6
Create Date: 2026-10-19 09:30:00.000000

"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b2c3d4e5f6a7"
down_revision: Union[str, None] = "a1b2c3d4e5f6"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION reject_assignment_event_change()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'assignment_events is append-only: % of event % rejected',
                TG_OP, OLD.event_id;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER trg_assignment_events_immutable
        BEFORE UPDATE OR DELETE ON assignment_events
        FOR EACH ROW
        EXECUTE FUNCTION reject_assignment_event_change();
    """)


def downgrade() -> None:
    op.execute(
        "DROP TRIGGER IF EXISTS trg_assignment_events_immutable ON assignment_events"
    )
    op.execute("DROP FUNCTION IF EXISTS reject_assignment_event_change()")
