"""
Kernel Data Models

SQLAlchemy models for users, trees, stored files and the audit log.
"""

from citytrees.kernel.models.base import Base, TimestampMixin, SoftDeleteMixin, generate_uuid
from citytrees.kernel.models.user import User, RefreshToken
from citytrees.kernel.models.tree import (
    Tree,
    TreeState,
    TreeCondition,
    BarkCondition,
    BranchesCondition,
)
from citytrees.kernel.models.file import StoredFile
from citytrees.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "generate_uuid",
    # User
    "User",
    "RefreshToken",
    # Tree
    "Tree",
    "TreeState",
    "TreeCondition",
    "BarkCondition",
    "BranchesCondition",
    # Files
    "StoredFile",
    # Event Log
    "EventLog",
    "EventType",
]
