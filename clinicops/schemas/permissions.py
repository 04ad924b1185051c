from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..services.permissions import Permission, PermissionRequestStatus, Position
from .common import UTCDateTime


class GrantPermissionRequest(BaseModel):
    permission: Permission
    reason: Optional[str] = None
    expires_at: Optional[UTCDateTime] = None


class RevokePermissionRequest(BaseModel):
    permission: Permission
    reason: Optional[str] = None


class UpdatePositionRequest(BaseModel):
    position: Position


class CreatePermissionRequest(BaseModel):
    permission: Permission
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_long_enough(cls, v: str) -> str:
        v = v.strip()
        if len(v) < settings.permission_request_min_reason:
            raise ValueError(f"reason must be at least {settings.permission_request_min_reason} characters")
        return v


class ReviewPermissionRequest(BaseModel):
    status: PermissionRequestStatus
    review_note: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def not_pending(cls, v: PermissionRequestStatus) -> PermissionRequestStatus:
        if v == PermissionRequestStatus.PENDING:
            raise ValueError("status must be APPROVED or REJECTED")
        return v
