"""
Identity Core - authentication and user management.
"""

from citytrees.kernel.identity.password import PasswordHasher, verify_password, hash_password
from citytrees.kernel.identity.jwt import (
    JWTManager,
    TokenPair,
    AccessTokenPayload,
    get_jwt_manager,
)
from citytrees.kernel.identity.identity_service import IdentityService
from citytrees.kernel.identity.resolver import IdentityResolver

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "JWTManager",
    "TokenPair",
    "AccessTokenPayload",
    "get_jwt_manager",
    "IdentityService",
    "IdentityResolver",
]
