"""
Authorization gate: the single check every tree endpoint runs before it
touches storage.

authorize() returns the evaluator's Decision unchanged. require() and
authorize_transition() turn a deny into the matching error so handlers can
let it propagate. The gate never writes anything.
"""

import uuid
from typing import Optional

from citytrees.kernel.errors import (
    CityTreesError,
    ForbiddenError,
    InvalidTransitionError,
    LookupFailedError,
    NotFoundError,
    UnauthenticatedError,
)
from citytrees.kernel.permissions.evaluator import Decision, DenyReason, PermissionEvaluator
from citytrees.kernel.permissions.policy import Domain, Permission, Principal
from citytrees.logging_config import get_logger
from citytrees.orchestration.state_machine import ModerationOutcome, TreeStatus, transition

logger = get_logger(__name__)

_DENY_ERRORS = {
    DenyReason.UNAUTHENTICATED: UnauthenticatedError,
    DenyReason.FORBIDDEN: ForbiddenError,
    DenyReason.NOT_FOUND: NotFoundError,
    DenyReason.LOOKUP_FAILED: LookupFailedError,
}


def error_for(decision: Decision, permission: Permission) -> CityTreesError:
    """Map a deny decision to the error raised at the boundary."""
    error_cls = _DENY_ERRORS[decision.reason]
    if error_cls is ForbiddenError:
        return ForbiddenError(f"Insufficient permissions. Required: {permission.value}")
    return error_cls()


class AuthorizationGate:
    """Wraps the permission evaluator and the lifecycle state machine."""

    def __init__(self, evaluator: PermissionEvaluator):
        self.evaluator = evaluator

    async def authorize(
        self,
        principal: Optional[Principal],
        domain: Domain,
        resource_id: uuid.UUID,
        permission: Permission,
    ) -> Decision:
        decision = await self.evaluator.evaluate(principal, domain, resource_id, permission)
        if not decision.allowed:
            logger.info(
                "Access denied",
                extra={
                    "principal_id": str(principal.id) if principal else None,
                    "domain": domain.value,
                    "resource_id": str(resource_id),
                    "permission": permission.value,
                    "reason": decision.reason.value,
                },
            )
        return decision

    async def require(
        self,
        principal: Optional[Principal],
        domain: Domain,
        resource_id: uuid.UUID,
        permission: Permission,
    ) -> Decision:
        """Like authorize(), but raise the typed error on deny."""
        decision = await self.authorize(principal, domain, resource_id, permission)
        if not decision.allowed:
            raise error_for(decision, permission) from decision.cause
        return decision

    async def authorize_transition(
        self,
        principal: Optional[Principal],
        resource_id: uuid.UUID,
        current: TreeStatus,
        outcome: ModerationOutcome,
    ) -> TreeStatus:
        """
        Check APPROVE on the tree, then validate the lifecycle move.

        Returns:
            The status the tree should move to

        Raises:
            CityTreesError subclass for a permission deny, or
            InvalidTransitionError when the tree is already moderated
        """
        await self.require(principal, Domain.TREE, resource_id, Permission.APPROVE)

        result = transition(current, outcome)
        if not result.ok:
            raise InvalidTransitionError(result.error, tree_id=str(resource_id))
        return result.to_state
