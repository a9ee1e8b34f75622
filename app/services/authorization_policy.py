import logging
from typing import Dict, FrozenSet, Iterable, Optional, Union

from app.core.constants import (
    ACTION_PERMISSIONS,
    RECEIVE_CUSTOMERS,
    ROLE_PERMISSIONS,
)
from app.schemas.assignment import Actor, PolicyDecision
from app.schemas.common import (
    AssignmentAction,
    CustomerOperation,
    DenialReason,
    Role,
)

logger = logging.getLogger(__name__)

PolicyAction = Union[AssignmentAction, CustomerOperation]

# Actions restricted to the oversight roles, with the reason used on denial
_PRIVILEGED_ACTIONS: FrozenSet[AssignmentAction] = frozenset(
    {
        AssignmentAction.assign,
        AssignmentAction.reassign,
        AssignmentAction.transfer,
        AssignmentAction.unassign,
    }
)


class AuthorizationPolicy:
    """Pure role × permission × ownership decision table.

    Every check returns a :class:`PolicyDecision`; denials are values,
    never exceptions, so callers can format a 403 uniformly.  Rules are
    evaluated in this order:

    1. ``claim`` – active ``assistant`` holding ``claim_customers``.
    2. ``assign`` / ``reassign`` / ``transfer`` / ``unassign`` – roles
       whose permission set contains the action's token (admin for
       ``assign``; admin, supervisor, manager for the rest).
    3. ``read`` / ``update`` – admin unconditionally, assistant only on
       customers it owns, nobody else.
    """

    def __init__(
        self, role_permissions: Optional[Dict[Role, FrozenSet[str]]] = None
    ) -> None:
        self._role_permissions = role_permissions or ROLE_PERMISSIONS

    def _permissions_for(
        self, role: Role, granted: Optional[Iterable[str]]
    ) -> FrozenSet[str]:
        """Role defaults, narrowed by a non-empty per-user *granted* list."""
        defaults = self._role_permissions.get(role, frozenset())
        granted_set = frozenset(granted or ())
        return defaults & granted_set if granted_set else defaults

    def check(
        self,
        actor: Actor,
        action: PolicyAction,
        is_resource_owner: bool = False,
    ) -> PolicyDecision:
        """Decide whether *actor* may perform *action*."""
        decision = self._evaluate(actor, action, is_resource_owner)
        if not decision.allowed:
            logger.warning(
                "Security: %s denied for user %s (role=%s): %s",
                action.value,
                actor.id,
                actor.role.value,
                decision.reason.value,
            )
        return decision

    def _evaluate(
        self, actor: Actor, action: PolicyAction, is_resource_owner: bool
    ) -> PolicyDecision:
        token = ACTION_PERMISSIONS[action.value]
        held = self._permissions_for(actor.role, actor.permissions)

        if action == AssignmentAction.claim:
            if actor.role != Role.assistant or not actor.is_active or token not in held:
                return PolicyDecision.deny(
                    DenialReason.RoleNotPermitted,
                    "Only active assistants can claim customers",
                )
            return PolicyDecision.allow()

        if action in _PRIVILEGED_ACTIONS:
            if token not in held:
                return PolicyDecision.deny(
                    DenialReason.InsufficientPrivilege,
                    f"Role '{actor.role.value}' may not {action.value} customers",
                )
            return PolicyDecision.allow()

        # read / update on a customer record
        if actor.role == Role.admin and token in held:
            return PolicyDecision.allow()
        if actor.role == Role.assistant and token in held:
            if is_resource_owner:
                return PolicyDecision.allow()
            return PolicyDecision.deny(
                DenialReason.NotResourceOwner,
                "Customer is not assigned to you",
            )
        return PolicyDecision.deny(
            DenialReason.RoleNotPermitted,
            f"Role '{actor.role.value}' may not {action.value} customer records",
        )

    def can_receive(self, recipient) -> PolicyDecision:
        """Explicit recipient check: must be an assistant holding ``receive_customers``."""
        role = Role(recipient.role)
        if role != Role.assistant:
            return PolicyDecision.deny(
                DenialReason.RoleNotPermitted,
                "Recipient must be an assistant",
            )
        if RECEIVE_CUSTOMERS not in self._permissions_for(role, recipient.permissions):
            return PolicyDecision.deny(
                DenialReason.RecipientNotPermitted,
                "Recipient does not have permission to receive customers",
            )
        return PolicyDecision.allow()

    def holds(self, actor: Actor, token: str) -> bool:
        """Return ``True`` if *actor* holds permission *token*."""
        return token in self._permissions_for(actor.role, actor.permissions)
