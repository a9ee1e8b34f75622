import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError

from app.core.constants import EVENT_ACTION_FOR
from app.core.exceptions import AuditWriteFailedError
from app.models.assignment_event import AssignmentEvent
from app.repositories.assignment_event_repository import AssignmentEventRepository
from app.schemas.assignment import Actor, OwnershipSnapshot, RequestMetadata
from app.schemas.common import AssignmentAction

logger = logging.getLogger(__name__)


class AssignmentAuditLog:
    """Append-only writer for :class:`AssignmentEvent` rows.

    Only called after a committed transition.  The event is written in
    its own transaction; if that fails the ownership change stays
    committed and :class:`AuditWriteFailedError` is raised so the caller
    can report a warning.
    """

    async def append(
        self,
        customer_id: UUID,
        actor: Actor,
        action: AssignmentAction,
        previous: OwnershipSnapshot,
        new: OwnershipSnapshot,
        event_repo: AssignmentEventRepository,
        reason: Optional[str] = None,
        request_metadata: Optional[RequestMetadata] = None,
    ) -> AssignmentEvent:
        metadata = request_metadata or RequestMetadata()
        try:
            event = await event_repo.append_event(
                event_id=uuid4(),
                customer_id=customer_id,
                action_by=actor.id,
                action=EVENT_ACTION_FOR[action].value,
                previous_assignment=previous.to_audit(),
                new_assignment=new.to_audit(),
                timestamp=datetime.now(timezone.utc),
                reason=reason,
                request_metadata=metadata.to_audit(),
            )
            await event_repo.commit()
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "Audit write failed for customer %s (%s by %s)",
                customer_id,
                action.value,
                actor.id,
                exc_info=True,
            )
            try:
                await event_repo.rollback()
            except (SQLAlchemyError, OSError):
                logger.warning("Rollback after failed audit write also failed")
            raise AuditWriteFailedError(
                details={"customer_id": str(customer_id), "action": action.value}
            ) from exc

        logger.info(
            "Audit event %s recorded: customer %s %s",
            event.event_id,
            customer_id,
            event.action,
        )
        return event
