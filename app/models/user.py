from sqlalchemy import (
    ARRAY,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.constants import ROLE_CHECK_CLAUSE
from app.models.base import Base


class User(Base):
    """Back-office account: admin, supervisor, manager, assistant or customer.

    Only users with role ``assistant`` can own customer records.  The
    ``max_customers_limit`` column is nullable; the workload guard falls
    back to the configured default (50) when it is unset.  ``permissions``
    optionally narrows the role's default permission tokens.
    """

    __tablename__ = "users"
    user_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, server_default="assistant")
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    max_customers_limit = Column(Integer)
    permissions = Column(ARRAY(String), nullable=False, server_default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    assigned_customers = relationship(
        "Customer",
        back_populates="assignee",
        foreign_keys="[Customer.assigned_to]",
    )

    __table_args__ = (
        CheckConstraint(ROLE_CHECK_CLAUSE, name="ck_user_role"),
        CheckConstraint(
            "max_customers_limit IS NULL OR max_customers_limit >= 0",
            name="ck_max_customers_limit_nonneg",
        ),
    )
