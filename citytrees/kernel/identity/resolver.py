"""
Identity resolver: bearer credential -> Principal.
"""

import uuid
from typing import Optional

from citytrees.kernel.identity.identity_service import IdentityService
from citytrees.kernel.identity.jwt import JWTManager, get_jwt_manager
from citytrees.kernel.permissions.policy import Principal


class IdentityResolver:
    """
    Maps an access token to the principal it names.

    The account is re-read on every request: a disabled or deleted user stops
    resolving, and roles are taken from the stored account rather than the
    token, before the token expires.
    """

    def __init__(self, identity_service: IdentityService, jwt_manager: Optional[JWTManager] = None):
        self.identity_service = identity_service
        self.jwt_manager = jwt_manager or get_jwt_manager()

    async def resolve_identity(self, credential: Optional[str]) -> Optional[Principal]:
        """Return the principal for a valid access token, None otherwise."""
        if not credential:
            return None

        payload = self.jwt_manager.verify_access_token(credential)
        if payload is None:
            return None

        try:
            user_id = uuid.UUID(payload.sub)
        except ValueError:
            return None

        user = await self.identity_service.get_user_by_id(user_id)
        if user is None or not user.is_active:
            return None

        return Principal.of(user_id, user.roles)
