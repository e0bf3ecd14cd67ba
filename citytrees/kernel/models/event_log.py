"""
Append-only audit log.

Every tree and account mutation adds a row here in the same transaction as
the change itself.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String, func, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from citytrees.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # User events
    USER_REGISTERED = "user.registered"
    USER_LOGGED_IN = "user.logged_in"
    USER_LOGGED_OUT = "user.logged_out"
    USER_UPDATED = "user.updated"
    USER_PASSWORD_CHANGED = "user.password_changed"
    USER_ROLES_CHANGED = "user.roles_changed"

    # Tree events
    TREE_CREATED = "tree.created"
    TREE_UPDATED = "tree.updated"
    TREE_DELETED = "tree.deleted"
    TREE_STATUS_CHANGED = "tree.status_changed"
    TREE_FILE_ATTACHED = "tree.file_attached"


class EventLog(Base):
    """Immutable audit event."""

    __tablename__ = "event_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
    )
    # Null for system events (e.g. admin seeding on startup)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    payload: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_event_log_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
