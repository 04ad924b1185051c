import uuid
from typing import Optional

from pydantic import Field

from ..services.quality import ComplaintSource, ComplaintStatus, IncidentSeverity, IncidentStatus
from .common import PatchModel, PlainModel, UTCDateTime


class IncidentTypeCreate(PlainModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    default_severity: IncidentSeverity = IncidentSeverity.MEDIUM
    is_active: bool = True


class IncidentTypeUpdate(PatchModel):
    not_null = ("name", "default_severity", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_severity: Optional[IncidentSeverity] = None
    is_active: Optional[bool] = None


class IncidentCreate(PlainModel):
    type_id: Optional[uuid.UUID] = None
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    occurred_at: UTCDateTime
    location: Optional[str] = None
    severity: Optional[IncidentSeverity] = None
    is_near_miss: bool = False


class IncidentUpdate(PatchModel):
    not_null = ("title", "description", "severity", "status")

    type_id: Optional[uuid.UUID] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    severity: Optional[IncidentSeverity] = None
    status: Optional[IncidentStatus] = None
    handler_id: Optional[uuid.UUID] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None


class FollowUpCreate(PlainModel):
    content: str = Field(min_length=1)
    action_taken: Optional[str] = None


class ComplaintCreate(PlainModel):
    source: ComplaintSource = ComplaintSource.PATIENT
    complainant_name: Optional[str] = None
    contact: Optional[str] = None
    subject: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    handler_id: Optional[uuid.UUID] = None


class ComplaintUpdate(PatchModel):
    not_null = ("status", "subject", "content")

    status: Optional[ComplaintStatus] = None
    handler_id: Optional[uuid.UUID] = None
    resolution: Optional[str] = None
    subject: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = None
