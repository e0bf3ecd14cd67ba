"""
Tree schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from citytrees.kernel.models.tree import BarkCondition, BranchesCondition, TreeCondition, TreeState
from citytrees.orchestration.state_machine import TreeStatus


class TreeCreate(BaseModel):
    """New tree submission."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    state: Optional[TreeState] = None
    condition: Optional[TreeCondition] = None
    bark_condition: Optional[List[BarkCondition]] = None
    branches_condition: Optional[List[BranchesCondition]] = None
    comment: Optional[str] = Field(None, max_length=4000)


class TreeUpdate(BaseModel):
    """Partial update of a tree's attributes. Status is changed via moderation only."""

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    state: Optional[TreeState] = None
    condition: Optional[TreeCondition] = None
    bark_condition: Optional[List[BarkCondition]] = None
    branches_condition: Optional[List[BranchesCondition]] = None
    comment: Optional[str] = Field(None, max_length=4000)

    @field_validator("latitude", "longitude")
    @classmethod
    def coordinates_not_null(cls, v: Optional[float]) -> float:
        """Coordinates may be omitted but not cleared."""
        if v is None:
            raise ValueError("must not be null")
        return v


class TreeCreateResponse(BaseModel):
    tree_id: uuid.UUID


class TreeResponse(BaseModel):
    """Full tree record."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    status: TreeStatus
    latitude: float
    longitude: float
    state: Optional[TreeState] = None
    condition: Optional[TreeCondition] = None
    bark_condition: Optional[List[BarkCondition]] = None
    branches_condition: Optional[List[BranchesCondition]] = None
    comment: Optional[str] = None
    file_ids: List[uuid.UUID] = []
    created_at: datetime
    updated_at: datetime


class FileUploadResponse(BaseModel):
    file_id: uuid.UUID
    url: str


class AttachedFileResponse(BaseModel):
    id: uuid.UUID
    name: str
    size: int
    url: str
