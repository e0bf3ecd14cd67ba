"""
Permission Core - role and ownership based access control.
"""

from citytrees.kernel.permissions.policy import (
    Domain,
    Permission,
    Principal,
    ResourceRef,
    Role,
)
from citytrees.kernel.permissions.evaluator import (
    Decision,
    DenyReason,
    GrantSource,
    OwnershipLookup,
    PermissionEvaluator,
)

__all__ = [
    "Domain",
    "Permission",
    "Principal",
    "ResourceRef",
    "Role",
    "Decision",
    "DenyReason",
    "GrantSource",
    "OwnershipLookup",
    "PermissionEvaluator",
]
