from app.models.base import Base
from app.models.user import User
from app.models.customer import Customer
from app.models.assignment_event import AssignmentEvent

# Import event listeners to register them
from app.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "User",
    "Customer",
    "AssignmentEvent",
]
