from typing import Optional
from uuid import UUID

from sqlalchemy import select

from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Encapsulates every SQL query that touches the ``users`` table."""

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Return a single user by primary key, or ``None``."""
        result = await self._db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def find_assistant(self, assistant_id: UUID) -> Optional[User]:
        """Return the user that would receive a customer, or ``None``.

        The role is not filtered here; callers decide how to treat a
        non-assistant recipient.
        """
        return await self.get_by_id(assistant_id)
