"""
Permission evaluator: one allow/deny decision per (principal, resource, permission).

Decision order:
1. Open permissions (public reads) - anyone
2. No principal - deny as unauthenticated
3. Admin role - full access to everything
4. Resource owner - ownership-grantable permissions only
5. Explicit role grant for the permission
6. Otherwise deny

Denial is a return value, not an exception. The ownership lookup is the only
external call; if it raises, the decision is a deny with reason LOOKUP_FAILED.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from citytrees.kernel.permissions.policy import (
    Domain,
    Permission,
    Principal,
    ResourceRef,
    is_open,
    is_owner_grantable,
    roles_granting,
)
from citytrees.logging_config import get_logger

logger = get_logger(__name__)


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    LOOKUP_FAILED = "lookup_failed"


class GrantSource(str, Enum):
    OPEN = "open"
    ADMIN = "admin"
    OWNER = "owner"
    ROLE = "role"


@dataclass(frozen=True)
class Decision:
    """Outcome of a permission check."""

    allowed: bool
    reason: Optional[DenyReason] = None
    granted_by: Optional[GrantSource] = None
    cause: Optional[BaseException] = None

    @classmethod
    def allow(cls, source: GrantSource) -> "Decision":
        return cls(allowed=True, granted_by=source)

    @classmethod
    def deny(cls, reason: DenyReason, cause: Optional[BaseException] = None) -> "Decision":
        return cls(allowed=False, reason=reason, cause=cause)

    def __bool__(self) -> bool:
        return self.allowed


class OwnershipLookup(Protocol):
    """Source of ownership facts. Returns None when the resource does not exist."""

    async def lookup_owner(self, domain: Domain, resource_id: uuid.UUID) -> Optional[uuid.UUID]:
        ...


class PermissionEvaluator:
    """
    Combines role-based and ownership-based rules from the policy tables.

    Holds no state besides the lookup, so one instance can serve concurrent
    requests.
    """

    def __init__(self, ownership: OwnershipLookup):
        self.ownership = ownership

    async def evaluate(
        self,
        principal: Optional[Principal],
        domain: Domain,
        resource_id: uuid.UUID,
        permission: Permission,
    ) -> Decision:
        """
        Decide whether principal may exercise permission on (domain, resource_id).

        Args:
            principal: The acting principal, or None for anonymous requests
            domain: The resource domain
            resource_id: The resource ID
            permission: The requested permission

        Returns:
            An allow or deny Decision
        """
        if is_open(domain, permission):
            return Decision.allow(GrantSource.OPEN)

        if principal is None:
            return Decision.deny(DenyReason.UNAUTHENTICATED)

        if principal.is_admin:
            return Decision.allow(GrantSource.ADMIN)

        missing = False
        if is_owner_grantable(domain, permission):
            try:
                owner_id = await self.ownership.lookup_owner(domain, resource_id)
            except Exception as exc:
                logger.warning(
                    "Ownership lookup failed",
                    extra={
                        "domain": domain.value,
                        "resource_id": str(resource_id),
                        "error": type(exc).__name__,
                    },
                )
                return Decision.deny(DenyReason.LOOKUP_FAILED, cause=exc)

            if owner_id is None:
                missing = True
            elif owner_id == principal.id:
                return Decision.allow(GrantSource.OWNER)

        if principal.roles & roles_granting(domain, permission):
            return Decision.allow(GrantSource.ROLE)

        return Decision.deny(DenyReason.NOT_FOUND if missing else DenyReason.FORBIDDEN)

    async def evaluate_ref(
        self,
        principal: Optional[Principal],
        resource: ResourceRef,
        permission: Permission,
    ) -> Decision:
        return await self.evaluate(principal, resource.domain, resource.id, permission)
