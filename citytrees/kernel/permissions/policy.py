"""
Roles, permissions and the per-domain grant tables.

The tables below are the whole rule set the evaluator applies. Adding a
domain means adding one entry to each table.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional


class Role(str, Enum):
    """User roles in the system."""
    BASIC = "BASIC"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class Domain(str, Enum):
    """Kinds of owned resources that can be protected."""
    TREE = "TREE"


class Permission(str, Enum):
    """Actions a principal may request on a resource."""
    VIEW = "VIEW"
    EDIT = "EDIT"
    DELETE = "DELETE"
    APPROVE = "APPROVE"


@dataclass(frozen=True)
class Principal:
    """An authenticated actor, fixed for the duration of one request."""

    id: uuid.UUID
    roles: FrozenSet[Role] = field(default_factory=lambda: frozenset({Role.BASIC}))

    @classmethod
    def of(cls, user_id: uuid.UUID, roles: Iterable[str]) -> "Principal":
        """Build a principal from raw role names, ignoring unknown ones."""
        known = {r.value for r in Role}
        return cls(id=user_id, roles=frozenset(Role(r) for r in roles if r in known))

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles


@dataclass(frozen=True)
class ResourceRef:
    """Identifies a protected object."""

    domain: Domain
    id: uuid.UUID


# Permissions anyone may exercise, authenticated or not
OPEN_PERMISSIONS: Dict[Domain, FrozenSet[Permission]] = {
    Domain.TREE: frozenset({Permission.VIEW}),
}

# Permissions the owner of a resource holds on it. APPROVE must never appear here.
OWNER_PERMISSIONS: Dict[Domain, FrozenSet[Permission]] = {
    Domain.TREE: frozenset({Permission.EDIT, Permission.DELETE}),
}

# Permissions granted by role alone, independent of ownership
ROLE_PERMISSIONS: Dict[Domain, Dict[Permission, FrozenSet[Role]]] = {
    Domain.TREE: {
        Permission.APPROVE: frozenset({Role.MODERATOR}),
    },
}


def is_open(domain: Domain, permission: Permission) -> bool:
    return permission in OPEN_PERMISSIONS.get(domain, frozenset())


def is_owner_grantable(domain: Domain, permission: Permission) -> bool:
    return permission in OWNER_PERMISSIONS.get(domain, frozenset())


def roles_granting(domain: Domain, permission: Permission) -> FrozenSet[Role]:
    return ROLE_PERMISSIONS.get(domain, {}).get(permission, frozenset())


def parse_roles(raw: Optional[Iterable[str]]) -> FrozenSet[Role]:
    """Normalise a stored role list; an empty or missing list means BASIC."""
    if not raw:
        return frozenset({Role.BASIC})
    return frozenset(Role(r) for r in raw)
