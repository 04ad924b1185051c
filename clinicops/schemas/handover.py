import uuid
from typing import List, Optional

from pydantic import Field

from ..services.handover import CollaboratorRole, HandoverPriority, HandoverStatus
from .common import PatchModel, PlainModel, UTCDateTime


class HandoverCreate(PlainModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = ""
    priority: HandoverPriority = HandoverPriority.MEDIUM
    assignee_id: Optional[uuid.UUID] = None
    shift_id: Optional[uuid.UUID] = None
    due_date: Optional[UTCDateTime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    category_ids: List[uuid.UUID] = []


class HandoverUpdate(PatchModel):
    not_null = ("title", "content", "status", "priority")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = None
    status: Optional[HandoverStatus] = None
    priority: Optional[HandoverPriority] = None
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[UTCDateTime] = None
    blocked_reason: Optional[str] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    category_ids: Optional[List[uuid.UUID]] = None
    version: Optional[int] = None


class BatchItem(PlainModel):
    id: uuid.UUID
    status: Optional[HandoverStatus] = None
    priority: Optional[HandoverPriority] = None
    assignee_id: Optional[uuid.UUID] = None


class BatchUpdate(PlainModel):
    items: List[BatchItem] = Field(min_length=1, max_length=100)


class CommentCreate(PlainModel):
    content: str = Field(min_length=1)


class CategoryCreate(PlainModel):
    name: str = Field(min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = None


class CategoryUpdate(PatchModel):
    not_null = ("name", "color")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = None


class SetCategories(PlainModel):
    category_ids: List[uuid.UUID]


class CollaboratorAdd(PlainModel):
    user_id: uuid.UUID
    role: CollaboratorRole = CollaboratorRole.COLLABORATOR


class ChecklistCreate(PlainModel):
    content: str = Field(min_length=1, max_length=500)


class ChecklistUpdate(PatchModel):
    not_null = ("content", "is_completed", "sort_order")

    content: Optional[str] = Field(default=None, min_length=1, max_length=500)
    is_completed: Optional[bool] = None
    sort_order: Optional[int] = None


class ArchiveRequest(PlainModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
