from datetime import datetime, timezone

from sqlalchemy import event

from app.models.assignment_event import AssignmentEvent
from app.models.customer import Customer
from app.models.user import User


# Auto updated_at
@event.listens_for(User, "before_update")
@event.listens_for(Customer, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = datetime.now(timezone.utc)


# Audit entries are append-only
@event.listens_for(AssignmentEvent, "before_update")
def block_event_update(mapper, connection, target):
    raise ValueError(
        f"Assignment event {target.event_id} is immutable and cannot be updated"
    )


@event.listens_for(AssignmentEvent, "before_delete")
def block_event_delete(mapper, connection, target):
    raise ValueError(
        f"Assignment event {target.event_id} is immutable and cannot be deleted"
    )
