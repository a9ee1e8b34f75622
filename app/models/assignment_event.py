from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.constants import EVENT_ACTION_CHECK_CLAUSE, MAX_REASON_LENGTH
from app.models.base import Base


class AssignmentEvent(Base):
    """Immutable audit entry for one committed ownership transition.

    ``previous_assignment`` and ``new_assignment`` hold
    ``{assignedTo, assignmentStatus, assignedAt}`` snapshots taken around
    the conditional write.  Rows are insert-only: ORM listeners refuse
    updates and deletes, and a PostgreSQL trigger does the same at the
    database level.
    """

    __tablename__ = "assignment_events"
    event_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )
    action_by = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )
    action = Column(String(30), nullable=False)
    previous_assignment = Column(JSONB, nullable=False)
    new_assignment = Column(JSONB, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reason = Column(Text)
    request_metadata = Column(JSONB, nullable=False, server_default="{}")

    customer = relationship("Customer", back_populates="assignment_history")

    __table_args__ = (
        Index("idx_assignment_events_customer_ts", "customer_id", "timestamp"),
        CheckConstraint(EVENT_ACTION_CHECK_CLAUSE, name="ck_assignment_event_action"),
        CheckConstraint(
            f"reason IS NULL OR char_length(reason) <= {MAX_REASON_LENGTH}",
            name="ck_assignment_event_reason_length",
        ),
    )
