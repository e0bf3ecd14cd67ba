"""
Tree record service: persistence for tree records.

Callers are expected to have passed the authorization gate already; nothing
here checks permissions. The service is also the ownership lookup the
permission evaluator consults.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.kernel.errors import ConflictError, NotFoundError, UserInputError
from citytrees.kernel.events.event_store import EventStore
from citytrees.kernel.files.file_service import FileService
from citytrees.kernel.models.event_log import EventType
from citytrees.kernel.models.file import StoredFile
from citytrees.kernel.models.tree import Tree
from citytrees.kernel.permissions.policy import Domain
from citytrees.logging_config import get_logger
from citytrees.orchestration.state_machine import INITIAL_STATUS, TreeStatus

logger = get_logger(__name__)

# Attributes a create or update may set. status and user_id are not among them.
PAYLOAD_FIELDS = (
    "latitude",
    "longitude",
    "state",
    "condition",
    "bark_condition",
    "branches_condition",
    "comment",
)


def tree_status(tree: Tree) -> TreeStatus:
    """Status as an enum (SQLite hands back plain strings)."""
    return TreeStatus(tree.status)


def _payload(attributes: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for key in PAYLOAD_FIELDS:
        if key not in attributes:
            continue
        value = attributes[key]
        if isinstance(value, list):
            value = [getattr(v, "value", v) for v in value]
        else:
            value = getattr(value, "value", value)
        values[key] = value
    return values


class TreeService:
    """Reads and writes tree records."""

    def __init__(self, session: AsyncSession, file_service: Optional[FileService] = None):
        self.session = session
        self.file_service = file_service or FileService(session)
        self.event_store = EventStore(session)

    async def lookup_owner(self, domain: Domain, resource_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Owner of a live tree, or None if there is no such tree."""
        if domain is not Domain.TREE:
            raise ValueError(f"Unsupported domain: {domain}")
        query = select(Tree.user_id).where(
            and_(
                Tree.id == resource_id,
                Tree.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        owner_id: uuid.UUID,
        attributes: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> Tree:
        """Create a tree in the initial status, owned by owner_id."""
        tree = Tree(
            user_id=owner_id,
            status=INITIAL_STATUS.value,
            file_ids=[],
            **_payload(attributes),
        )
        self.session.add(tree)
        await self.session.flush()
        await self.session.refresh(tree)

        await self.event_store.log(
            event_type=EventType.TREE_CREATED,
            entity_type="tree",
            entity_id=tree.id,
            user_id=owner_id,
            payload={"latitude": tree.latitude, "longitude": tree.longitude},
            ip_address=ip_address,
        )
        return tree

    async def get_by_id(self, tree_id: uuid.UUID) -> Optional[Tree]:
        query = select(Tree).where(
            and_(
                Tree.id == tree_id,
                Tree.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_or_404(self, tree_id: uuid.UUID) -> Tree:
        tree = await self.get_by_id(tree_id)
        if tree is None:
            raise NotFoundError("Tree not found", tree_id=str(tree_id))
        return tree

    async def list_all(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[TreeStatus] = None,
    ) -> List[Tree]:
        """Public listing, newest first."""
        query = select(Tree).where(Tree.deleted_at.is_(None))
        if status is not None:
            query = query.where(Tree.status == status.value)
        query = query.order_by(Tree.created_at.desc(), Tree.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_all(self, status: Optional[TreeStatus] = None) -> int:
        query = select(func.count(Tree.id)).where(Tree.deleted_at.is_(None))
        if status is not None:
            query = query.where(Tree.status == status.value)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def list_user_trees(
        self,
        user_id: uuid.UUID,
        limit: int = 30,
        cursor_position: Optional[uuid.UUID] = None,
    ) -> List[Tree]:
        """
        A user's own trees, newest first, keyset-paginated.

        Args:
            user_id: Owner whose trees to list
            limit: Page size
            cursor_position: Id of the last tree of the previous page

        Returns:
            Up to limit trees strictly after the cursor
        """
        query = select(Tree).where(
            and_(
                Tree.user_id == user_id,
                Tree.deleted_at.is_(None),
            )
        )

        if cursor_position is not None:
            cursor = await self.session.get(Tree, cursor_position)
            if cursor is None or cursor.user_id != user_id:
                raise NotFoundError("Cursor tree not found", tree_id=str(cursor_position))
            query = query.where(
                or_(
                    Tree.created_at < cursor.created_at,
                    and_(Tree.created_at == cursor.created_at, Tree.id < cursor.id),
                )
            )

        query = query.order_by(Tree.created_at.desc(), Tree.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(
        self,
        tree_id: uuid.UUID,
        attributes: Dict[str, Any],
        user_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> Tree:
        """
        Update payload attributes. Status and owner cannot change here.

        Raises:
            NotFoundError: The tree does not exist
            UserInputError: latitude or longitude is set to None
        """
        tree = await self.get_or_404(tree_id)
        changes = _payload(attributes)
        for key in ("latitude", "longitude"):
            if key in changes and changes[key] is None:
                raise UserInputError(f"{key} cannot be cleared")
        for key, value in changes.items():
            setattr(tree, key, value)

        if changes:
            await self.session.flush()
            await self.session.refresh(tree)
            await self.event_store.log(
                event_type=EventType.TREE_UPDATED,
                entity_type="tree",
                entity_id=tree_id,
                user_id=user_id,
                payload={"fields": sorted(changes)},
                ip_address=ip_address,
            )
        return tree

    async def delete(
        self,
        tree_id: uuid.UUID,
        user_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        """Soft-delete a tree in any status."""
        tree = await self.get_or_404(tree_id)
        tree.deleted_at = datetime.now(timezone.utc)

        await self.event_store.log(
            event_type=EventType.TREE_DELETED,
            entity_type="tree",
            entity_id=tree_id,
            user_id=user_id,
            payload={"status": tree_status(tree)},
            ip_address=ip_address,
        )
        await self.session.flush()

    async def persist_transition(
        self,
        tree_id: uuid.UUID,
        from_state: TreeStatus,
        to_state: TreeStatus,
        user_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Write a status change only if the stored status still equals from_state.

        Raises:
            NotFoundError: The tree no longer exists
            ConflictError: Another request changed the status first
        """
        stmt = (
            update(Tree)
            .where(
                and_(
                    Tree.id == tree_id,
                    Tree.status == from_state.value,
                    Tree.deleted_at.is_(None),
                )
            )
            .values(status=to_state.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount == 0:
            if await self.lookup_owner(Domain.TREE, tree_id) is None:
                raise NotFoundError("Tree not found", tree_id=str(tree_id))
            logger.info(
                "Status transition lost a race",
                extra={"tree_id": str(tree_id), "expected": from_state.value},
            )
            raise ConflictError(
                f"Tree status is no longer {from_state.value}",
                tree_id=str(tree_id),
            )

        await self.event_store.log(
            event_type=EventType.TREE_STATUS_CHANGED,
            entity_type="tree",
            entity_id=tree_id,
            user_id=user_id,
            payload={"from_state": from_state, "to_state": to_state},
            ip_address=ip_address,
        )
        logger.info(
            "Tree status changed",
            extra={"tree_id": str(tree_id), "from_state": from_state.value, "to_state": to_state.value},
        )

    async def attach_file(
        self,
        tree_id: uuid.UUID,
        uploader_id: uuid.UUID,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> StoredFile:
        """Store an upload and append it to the tree's file list."""
        tree = await self.get_or_404(tree_id)
        stored = await self.file_service.store(uploader_id, filename, content, mime_type)

        # Reassign so the JSON column is flagged dirty
        tree.file_ids = [*(tree.file_ids or []), str(stored.id)]

        await self.event_store.log(
            event_type=EventType.TREE_FILE_ATTACHED,
            entity_type="tree",
            entity_id=tree_id,
            user_id=uploader_id,
            payload={"file_id": stored.id, "name": stored.name, "size": stored.size},
            ip_address=ip_address,
        )
        await self.session.flush()
        return stored

    async def list_attached_files(self, tree_id: uuid.UUID) -> List[StoredFile]:
        tree = await self.get_or_404(tree_id)
        return await self.file_service.get_many(uuid.UUID(f) for f in (tree.file_ids or []))
