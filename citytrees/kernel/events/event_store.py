"""
Event Store service for append-only audit logging.

Mutations are logged in the same session as the change, before commit.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.TREE_CREATED,
            entity_type="tree",
            entity_id=tree.id,
            user_id=principal.id,
            payload={"latitude": tree.latitude, "longitude": tree.longitude},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> EventLog:
        """
        Add an event to the audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (user, tree, file)
            entity_id: The ID of the entity
            user_id: The acting user (None for system events)
            payload: Additional event data
            ip_address: Client IP address

        Returns:
            The created EventLog record
        """
        event = EventLog(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=self._serialize_payload(payload or {}),
            ip_address=ip_address,
        )
        self.session.add(event)
        # Caller flushes/commits together with the change itself
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Get the event history for an entity, newest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )
        if event_types:
            query = query.where(EventLog.event_type.in_([e.value for e in event_types]))
        query = query.order_by(desc(EventLog.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    @classmethod
    def _serialize_payload(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert UUIDs, enums and datetimes so the payload is JSON-safe."""
        return {key: cls._serialize_value(value) for key, value in payload.items()}

    @classmethod
    def _serialize_value(cls, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, dict):
            return cls._serialize_payload(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [cls._serialize_value(v) for v in value]
        return value
