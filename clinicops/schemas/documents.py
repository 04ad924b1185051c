import uuid
from typing import List, Optional

from pydantic import Field

from ..services.documents import AnnouncementPriority, DocumentStatus
from .common import PatchModel, PlainModel, UTCDateTime


class DocumentCategoryCreate(PlainModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    sort_order: int = 0


class DocumentCreate(PlainModel):
    doc_no: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=255)
    content: str = ""
    category_id: Optional[uuid.UUID] = None


class DocumentUpdate(PatchModel):
    not_null = ("doc_no", "title", "content", "status", "is_active")

    doc_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    status: Optional[DocumentStatus] = None
    is_active: Optional[bool] = None


class AnnouncementCreate(PlainModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL
    is_pinned: bool = False
    publish_at: Optional[UTCDateTime] = None
    expire_at: Optional[UTCDateTime] = None
    target_roles: Optional[List[str]] = None


class AnnouncementUpdate(PatchModel):
    not_null = ("title", "content", "priority", "is_pinned", "publish_at", "is_active")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = None
    priority: Optional[AnnouncementPriority] = None
    is_pinned: Optional[bool] = None
    publish_at: Optional[UTCDateTime] = None
    expire_at: Optional[UTCDateTime] = None
    target_roles: Optional[List[str]] = None
    is_active: Optional[bool] = None
