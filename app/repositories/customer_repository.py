"""Customer repository – ownership reads and the conditional ownership write."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update

from app.models.customer import Customer
from app.repositories.base import BaseRepository
from app.schemas.assignment import OwnershipSnapshot


class CustomerRepository(BaseRepository):
    """Encapsulates queries against the ownership columns of ``customers``."""

    async def find_ownership(self, customer_id: UUID) -> Optional[OwnershipSnapshot]:
        """Return the current ownership snapshot, or ``None`` if no such customer."""
        result = await self._db.execute(
            select(
                Customer.customer_id,
                Customer.assigned_to,
                Customer.assigned_by,
                Customer.assigned_at,
            ).where(Customer.customer_id == customer_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return OwnershipSnapshot(
            customer_id=row.customer_id,
            assigned_to=row.assigned_to,
            assigned_by=row.assigned_by,
            assigned_at=row.assigned_at,
        )

    async def conditional_update_ownership(
        self,
        customer_id: UUID,
        expected_assigned_to: Optional[UUID],
        assigned_to: Optional[UUID],
        assigned_by: Optional[UUID],
        assigned_at: Optional[datetime],
    ) -> bool:
        """Compare-and-set the ownership columns in a single UPDATE.

        The row is only written if ``assigned_to`` still equals
        *expected_assigned_to*.  Returns ``False`` when zero rows matched,
        i.e. another transition committed first.
        """
        if expected_assigned_to is None:
            guard = Customer.assigned_to.is_(None)
        else:
            guard = Customer.assigned_to == expected_assigned_to

        result = await self._db.execute(
            update(Customer)
            .where(Customer.customer_id == customer_id, guard)
            .values(
                assigned_to=assigned_to,
                assigned_by=assigned_by,
                assigned_at=assigned_at,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_assigned(self, assistant_id: UUID) -> int:
        """Count customers currently owned by *assistant_id*."""
        result = await self._db.execute(
            select(func.count(Customer.customer_id)).where(
                Customer.assigned_to == assistant_id
            )
        )
        return result.scalar_one()
