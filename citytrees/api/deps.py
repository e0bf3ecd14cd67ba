"""
FastAPI dependencies for authentication, authorization, and database sessions.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.database import get_db
from citytrees.kernel.errors import ForbiddenError, UnauthenticatedError
from citytrees.kernel.files.file_service import FileService
from citytrees.kernel.identity.identity_service import IdentityService
from citytrees.kernel.identity.resolver import IdentityResolver
from citytrees.kernel.permissions.evaluator import PermissionEvaluator
from citytrees.kernel.permissions.policy import Domain, Permission, Principal, Role
from citytrees.kernel.trees.tree_service import TreeService
from citytrees.orchestration.authorization_gate import AuthorizationGate


security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_identity_service(db: DbSession) -> IdentityService:
    return IdentityService(db)


def get_file_service(db: DbSession) -> FileService:
    return FileService(db)


def get_tree_service(db: DbSession) -> TreeService:
    return TreeService(db)


Identity = Annotated[IdentityService, Depends(get_identity_service)]
Files = Annotated[FileService, Depends(get_file_service)]
Trees = Annotated[TreeService, Depends(get_tree_service)]


def get_authorization_gate(trees: Trees) -> AuthorizationGate:
    return AuthorizationGate(PermissionEvaluator(ownership=trees))


Gate = Annotated[AuthorizationGate, Depends(get_authorization_gate)]


async def get_principal_optional(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    identity: Identity,
) -> Optional[Principal]:
    """Principal for the bearer token, or None for anonymous/invalid tokens."""
    resolver = IdentityResolver(identity)
    return await resolver.resolve_identity(credentials.credentials if credentials else None)


async def get_current_principal(
    principal: Annotated[Optional[Principal], Depends(get_principal_optional)],
) -> Principal:
    """Require an authenticated principal."""
    if principal is None:
        raise UnauthenticatedError()
    return principal


OptionalPrincipal = Annotated[Optional[Principal], Depends(get_principal_optional)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def require_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.has_role(Role.ADMIN):
        raise ForbiddenError("Admin access required")
    return principal


AdminPrincipal = Annotated[Principal, Depends(require_admin)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class TreeAccess:
    """
    Dependency running the authorization gate for the tree in the path.

    Usage:
        @router.put("/{tree_id}")
        async def update_tree(tree_id: uuid.UUID, _: RequireTreeEdit, ...):
            ...
    """

    def __init__(self, permission: Permission):
        self.permission = permission

    async def __call__(
        self,
        tree_id: uuid.UUID,
        principal: OptionalPrincipal,
        gate: Gate,
    ) -> Optional[Principal]:
        await gate.require(principal, Domain.TREE, tree_id, self.permission)
        return principal


RequireTreeView = Annotated[Optional[Principal], Depends(TreeAccess(Permission.VIEW))]
RequireTreeEdit = Annotated[Optional[Principal], Depends(TreeAccess(Permission.EDIT))]
RequireTreeDelete = Annotated[Optional[Principal], Depends(TreeAccess(Permission.DELETE))]
