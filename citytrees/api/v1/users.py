"""
User administration endpoints.
"""

import uuid

from fastapi import APIRouter, Request

from citytrees.api.deps import AdminPrincipal, Identity, get_client_ip
from citytrees.kernel.errors import NotFoundError
from citytrees.schemas.auth import UserResponse, UserRolesUpdate

router = APIRouter()


@router.put("/{user_id}/roles", response_model=UserResponse)
async def set_user_roles(
    request: Request,
    user_id: uuid.UUID,
    data: UserRolesUpdate,
    admin: AdminPrincipal,
    identity: Identity,
):
    """Replace a user's roles (admin only)."""
    user = await identity.change_roles(
        user_id,
        roles=data.roles,
        changed_by=admin.id,
        ip_address=get_client_ip(request),
    )
    if not user:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)
