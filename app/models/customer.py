from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    case,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.models.base import Base
from app.schemas.common import AssignmentStatus


class Customer(Base):
    """Customer record, including the ownership columns of the assignment engine.

    ``assigned_to`` is the single source of truth for ownership.
    ``assignment_status`` is derived from it (in Python and in SQL) and is
    never stored, so the two can not disagree.  ``assigned_by`` and
    ``assigned_at`` are NULL exactly when the customer is unassigned,
    enforced by CHECK constraints.
    """

    __tablename__ = "customers"
    customer_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    assigned_to = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
    )
    assigned_by = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
    )
    assigned_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    assignee = relationship(
        "User", back_populates="assigned_customers", foreign_keys=[assigned_to]
    )
    assignment_history = relationship(
        "AssignmentEvent",
        back_populates="customer",
        order_by="AssignmentEvent.timestamp",
        passive_deletes="all",
    )

    @hybrid_property
    def assignment_status(self) -> str:
        if self.assigned_to is None:
            return AssignmentStatus.unassigned.value
        return AssignmentStatus.assigned.value

    @assignment_status.inplace.expression
    @classmethod
    def _assignment_status_expression(cls):
        return case(
            (cls.assigned_to.is_(None), AssignmentStatus.unassigned.value),
            else_=AssignmentStatus.assigned.value,
        )

    __table_args__ = (
        Index("idx_customers_assigned_to", "assigned_to"),
        CheckConstraint(
            "assigned_to IS NOT NULL OR assigned_by IS NULL",
            name="ck_assigned_by_requires_owner",
        ),
        CheckConstraint(
            "assigned_to IS NOT NULL OR assigned_at IS NULL",
            name="ck_assigned_at_requires_owner",
        ),
    )
