"""
Tree record - a citizen-submitted tree with location and condition.

Only status and user_id matter to access control. user_id is set once at
creation and never updated.
"""

import uuid
from enum import Enum
from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Index, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from citytrees.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid
from citytrees.orchestration.state_machine import INITIAL_STATUS, TreeStatus


class TreeState(str, Enum):
    """Physical state of the tree."""
    ALIVE = "ALIVE"
    DEAD = "DEAD"
    STUMP = "STUMP"
    EMPTY_SEAT = "EMPTY_SEAT"


class TreeCondition(str, Enum):
    """Overall condition estimate."""
    GOOD = "GOOD"
    SATISFACTORY = "SATISFACTORY"
    UNSATISFACTORY = "UNSATISFACTORY"
    EMERGENCY = "EMERGENCY"


class BarkCondition(str, Enum):
    CRACKS = "CRACKS"
    HOLLOW = "HOLLOW"
    PEELING = "PEELING"
    FRUITING_BODIES = "FRUITING_BODIES"
    MECHANICAL_DAMAGE = "MECHANICAL_DAMAGE"


class BranchesCondition(str, Enum):
    DRY_BRANCHES = "DRY_BRANCHES"
    BROKEN_BRANCHES = "BROKEN_BRANCHES"
    CROWN_IMBALANCE = "CROWN_IMBALANCE"
    MISTLETOE = "MISTLETOE"


class Tree(Base, TimestampMixin, SoftDeleteMixin):
    """Tree record submitted by a user."""

    __tablename__ = "trees"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[TreeStatus] = mapped_column(
        String(32),
        default=INITIAL_STATUS,
        nullable=False,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    state: Mapped[Optional[TreeState]] = mapped_column(String(32), nullable=True)
    condition: Mapped[Optional[TreeCondition]] = mapped_column(String(32), nullable=True)
    bark_condition: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    branches_condition: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Attached StoredFile ids, in upload order
    file_ids: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (
        Index("ix_trees_status", "status"),
        Index("ix_trees_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tree {self.id} {self.status}>"
