"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.
"""

from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.repositories.assignment_event_repository import AssignmentEventRepository

__all__ = [
    "CustomerRepository",
    "UserRepository",
    "AssignmentEventRepository",
]
