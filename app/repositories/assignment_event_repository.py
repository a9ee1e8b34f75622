"""Assignment-event repository – append-only audit store."""

from typing import Any, List
from uuid import UUID

from sqlalchemy import func, select

from app.models.assignment_event import AssignmentEvent
from app.repositories.base import BaseRepository


class AssignmentEventRepository(BaseRepository):
    """Encapsulates queries against ``assignment_events``.

    There is intentionally no update or delete method.
    """

    async def append_event(self, **kwargs: Any) -> AssignmentEvent:
        """Insert a new audit event and flush it."""
        event = AssignmentEvent(**kwargs)
        self._db.add(event)
        await self._db.flush()
        return event

    async def list_for_customer(self, customer_id: UUID) -> List[AssignmentEvent]:
        """Return a customer's events, oldest first."""
        result = await self._db.execute(
            select(AssignmentEvent)
            .where(AssignmentEvent.customer_id == customer_id)
            .order_by(AssignmentEvent.timestamp.asc())
        )
        return list(result.scalars().all())

    async def count_for_customer(self, customer_id: UUID) -> int:
        """Return the number of committed transitions recorded for a customer."""
        result = await self._db.execute(
            select(func.count(AssignmentEvent.event_id)).where(
                AssignmentEvent.customer_id == customer_id
            )
        )
        return result.scalar_one()
