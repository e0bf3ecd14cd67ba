"""
Pytest fixtures for city trees tests.

The environment is pointed at a temp-file SQLite database and a temp storage
directory before anything from citytrees is imported, so the app, the
services and the tests all share one database.
"""

import os
import shutil
import tempfile
import uuid
from typing import AsyncGenerator, Dict, Optional

_tmp_dir = tempfile.mkdtemp(prefix="citytrees-tests-")
TEST_DB_PATH = os.path.join(_tmp_dir, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["FILE_STORAGE_DIR"] = os.path.join(_tmp_dir, "files")
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["ADMIN_EMAIL"] = ""
os.environ["ADMIN_PASSWORD"] = ""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.config import get_settings

get_settings.cache_clear()

from citytrees.database import async_session_maker, init_db
from citytrees.kernel.identity.jwt import JWTManager
from citytrees.kernel.permissions.policy import Domain, Principal, Role


def pytest_sessionfinish(session, exitstatus):
    """Remove the temp database and stored files."""
    shutil.rmtree(_tmp_dir, ignore_errors=True)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A session on the test database; committed work persists across tests."""
    await init_db()
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def jwt_manager() -> JWTManager:
    """Create a JWT manager for tests."""
    return JWTManager(
        secret_key="test-secret-key-for-testing-only",
        algorithm="HS256",
        access_token_expire_minutes=30,
        refresh_token_expire_days=7,
    )


def make_principal(*roles: Role) -> Principal:
    return Principal(id=uuid.uuid4(), roles=frozenset(roles or (Role.BASIC,)))


@pytest.fixture
def basic_user() -> Principal:
    return make_principal(Role.BASIC)


@pytest.fixture
def other_user() -> Principal:
    return make_principal(Role.BASIC)


@pytest.fixture
def moderator() -> Principal:
    return make_principal(Role.MODERATOR)


@pytest.fixture
def admin() -> Principal:
    return make_principal(Role.ADMIN)


class FakeOwnership:
    """In-memory ownership lookup that records every call."""

    def __init__(self, owners: Optional[Dict[uuid.UUID, uuid.UUID]] = None, error: Optional[Exception] = None):
        self.owners: Dict[uuid.UUID, uuid.UUID] = dict(owners or {})
        self.error = error
        self.calls = 0

    async def lookup_owner(self, domain: Domain, resource_id: uuid.UUID) -> Optional[uuid.UUID]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.owners.get(resource_id)


@pytest.fixture
def fake_ownership():
    """The FakeOwnership class, for tests that need custom owners or failures."""
    return FakeOwnership


@pytest.fixture
def tree_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def ownership(tree_id: uuid.UUID, basic_user: Principal) -> FakeOwnership:
    """basic_user owns tree_id."""
    return FakeOwnership({tree_id: basic_user.id})
