"""Unit tests for bearer token -> principal resolution."""

import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest

from citytrees.kernel.identity.resolver import IdentityResolver
from citytrees.kernel.permissions.policy import Role


class FakeIdentityService:
    def __init__(self, users):
        self.users = users

    async def get_user_by_id(self, user_id):
        return self.users.get(user_id)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def resolver(jwt_manager, user_id) -> IdentityResolver:
    users = {user_id: SimpleNamespace(id=user_id, is_active=True, roles=["MODERATOR"])}
    return IdentityResolver(FakeIdentityService(users), jwt_manager=jwt_manager)


class TestIdentityResolver:

    @pytest.mark.asyncio
    async def test_valid_token(self, resolver, jwt_manager, user_id):
        token, _, _ = jwt_manager.create_access_token(user_id, "u@example.com", ["MODERATOR"])
        principal = await resolver.resolve_identity(token)
        assert principal is not None
        assert principal.id == user_id
        assert principal.roles == frozenset({Role.MODERATOR})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credential", [None, "", "not-a-jwt"])
    async def test_missing_or_garbage_credential(self, resolver, credential):
        assert await resolver.resolve_identity(credential) is None

    @pytest.mark.asyncio
    async def test_expired_token(self, resolver, jwt_manager, user_id):
        token, _, _ = jwt_manager.create_access_token(
            user_id, "u@example.com", ["BASIC"], expires_delta=timedelta(seconds=-5)
        )
        assert await resolver.resolve_identity(token) is None

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_a_credential(self, resolver, jwt_manager, user_id):
        token, _, _ = jwt_manager.create_refresh_token(user_id)
        assert await resolver.resolve_identity(token) is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, resolver, jwt_manager):
        token, _, _ = jwt_manager.create_access_token(uuid.uuid4(), "ghost@example.com", ["ADMIN"])
        assert await resolver.resolve_identity(token) is None

    @pytest.mark.asyncio
    async def test_inactive_user(self, jwt_manager, user_id):
        users = {user_id: SimpleNamespace(id=user_id, is_active=False, roles=["BASIC"])}
        resolver = IdentityResolver(FakeIdentityService(users), jwt_manager=jwt_manager)
        token, _, _ = jwt_manager.create_access_token(user_id, "u@example.com", ["BASIC"])
        assert await resolver.resolve_identity(token) is None

    @pytest.mark.asyncio
    async def test_roles_come_from_stored_account(self, resolver, jwt_manager, user_id):
        """A token minted before a demotion carries stale roles; the account wins."""
        token, _, _ = jwt_manager.create_access_token(user_id, "u@example.com", ["ADMIN"])
        principal = await resolver.resolve_identity(token)
        assert principal.roles == frozenset({Role.MODERATOR})
        assert not principal.is_admin
