"""
Identity service for user management operations.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.kernel.events.event_store import EventStore
from citytrees.kernel.identity.jwt import JWTManager, TokenPair, get_jwt_manager
from citytrees.kernel.identity.password import hash_password, verify_password
from citytrees.kernel.models.event_log import EventType
from citytrees.kernel.models.user import RefreshToken, User
from citytrees.kernel.permissions.policy import Role
from citytrees.logging_config import get_logger

logger = get_logger(__name__)


class IdentityService:
    """
    Service for user identity operations.

    Handles registration, authentication, token rotation and role changes.
    """

    def __init__(self, session: AsyncSession, jwt_manager: Optional[JWTManager] = None):
        self.session = session
        self.jwt_manager = jwt_manager or get_jwt_manager()
        self.event_store = EventStore(session)

    async def register_user(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        roles: Iterable[Role] = (Role.BASIC,),
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            ValueError: If email already exists
        """
        existing = await self.get_user_by_email(email)
        if existing:
            raise ValueError(f"Email '{existing.email}' is already in use")

        user = User(
            email=email.lower().strip(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            roles=sorted(r.value for r in roles),
        )

        self.session.add(user)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"email": user.email, "roles": user.roles},
            ip_address=ip_address,
        )
        return user

    async def create_if_not_exists(
        self,
        email: str,
        password: str,
        roles: Iterable[Role],
    ) -> User:
        """Return the user with this email, registering it first if missing."""
        existing = await self.get_user_by_email(email)
        if existing:
            return existing
        logger.info("Seeding user", extra={"email": email})
        return await self.register_user(email=email, password=password, roles=roles)

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> Optional[tuple[User, TokenPair]]:
        """
        Authenticate a user and return tokens.

        Returns:
            Tuple of (User, TokenPair) if successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            return None

        if not verify_password(password, user.password_hash):
            return None

        token_pair = await self._issue_tokens(user)

        await self.event_store.log(
            event_type=EventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"method": "password"},
            ip_address=ip_address,
        )
        return user, token_pair

    async def refresh_tokens(self, refresh_token: str) -> Optional[tuple[User, TokenPair]]:
        """
        Exchange a refresh token for a new pair, revoking the old one.

        Returns:
            Tuple of (User, new TokenPair) if successful, None otherwise
        """
        payload = self.jwt_manager.verify_refresh_token(refresh_token)
        if not payload:
            return None

        query = select(RefreshToken).where(
            and_(
                RefreshToken.token_hash == JWTManager.hash_token(refresh_token),
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > datetime.now(timezone.utc),
            )
        )
        result = await self.session.execute(query)
        token_record = result.scalar_one_or_none()
        if not token_record:
            return None

        user = await self.get_user_by_id(uuid.UUID(payload.sub))
        if not user or not user.is_active:
            return None

        token_record.revoked = True
        return user, await self._issue_tokens(user)

    async def logout(
        self,
        user_id: uuid.UUID,
        refresh_token: Optional[str] = None,
        revoke_all: bool = False,
        ip_address: Optional[str] = None,
    ) -> None:
        """Revoke one refresh token, or all of a user's tokens."""
        query = select(RefreshToken).where(
            and_(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
            )
        )
        if not revoke_all:
            if not refresh_token:
                return
            query = query.where(RefreshToken.token_hash == JWTManager.hash_token(refresh_token))

        result = await self.session.execute(query)
        for token in result.scalars().all():
            token.revoked = True

        await self.event_store.log(
            event_type=EventType.USER_LOGGED_OUT,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            payload={"revoke_all": revoke_all},
            ip_address=ip_address,
        )

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get a user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email."""
        result = await self.session.execute(
            select(User).where(User.email == email.lower().strip())
        )
        return result.scalar_one_or_none()

    async def update_user(
        self,
        user_id: uuid.UUID,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[User]:
        """
        Update user profile.

        Returns:
            Updated user or None if not found

        Raises:
            ValueError: If the new email belongs to another user
        """
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        changes = {}
        if email is not None:
            new_email = email.lower().strip()
            existing = await self.get_user_by_email(new_email)
            if existing and existing.id != user_id:
                raise ValueError(f"Email '{new_email}' is already in use")
            user.email = new_email
            changes["email"] = new_email
        if first_name is not None:
            user.first_name = first_name
            changes["first_name"] = first_name
        if last_name is not None:
            user.last_name = last_name
            changes["last_name"] = last_name

        if changes:
            await self.event_store.log(
                event_type=EventType.USER_UPDATED,
                entity_type="user",
                entity_id=user_id,
                user_id=user_id,
                payload=changes,
                ip_address=ip_address,
            )
        return user

    async def change_password(
        self,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> bool:
        """
        Change user's password and revoke all refresh tokens.

        Returns:
            True if successful, False if the current password is wrong
        """
        user = await self.get_user_by_id(user_id)
        if not user or not verify_password(current_password, user.password_hash):
            return False

        user.password_hash = hash_password(new_password)
        await self.event_store.log(
            event_type=EventType.USER_PASSWORD_CHANGED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            ip_address=ip_address,
        )
        await self.logout(user_id, revoke_all=True, ip_address=ip_address)
        return True

    async def change_roles(
        self,
        user_id: uuid.UUID,
        roles: Iterable[Role],
        changed_by: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> Optional[User]:
        """Replace a user's roles. Takes effect on the user's next request."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        previous = list(user.roles)
        user.roles = sorted({r.value for r in roles} or {Role.BASIC.value})

        await self.event_store.log(
            event_type=EventType.USER_ROLES_CHANGED,
            entity_type="user",
            entity_id=user_id,
            user_id=changed_by,
            payload={"previous_roles": previous, "new_roles": user.roles},
            ip_address=ip_address,
        )
        return user

    async def _issue_tokens(self, user: User) -> TokenPair:
        token_pair, refresh_exp = self.jwt_manager.create_token_pair(
            user_id=user.id,
            email=user.email,
            roles=[r.value for r in user.role_set],
        )
        self.session.add(RefreshToken(
            user_id=user.id,
            token_hash=JWTManager.hash_token(token_pair.refresh_token),
            expires_at=refresh_exp,
        ))
        return token_pair
