import uuid
from datetime import date
from typing import Optional

from pydantic import Field

from ..services.hr import CertificationStatus, LeaveType, SkillLevel
from .common import PatchModel, PlainModel


class ProfileIn(PlainModel):
    department: Optional[str] = None
    title: Optional[str] = None
    employee_no: Optional[str] = None
    hire_date: Optional[date] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class CertificationCreate(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    issuer: Optional[str] = None
    cert_no: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: Optional[CertificationStatus] = None
    notes: Optional[str] = None


class CertificationUpdate(PatchModel):
    not_null = ("name", "status")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    issuer: Optional[str] = None
    cert_no: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: Optional[CertificationStatus] = None
    notes: Optional[str] = None


class SkillCreate(PlainModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None


class UserSkillAssign(PlainModel):
    skill_id: uuid.UUID
    level: SkillLevel = SkillLevel.BASIC
    certified_at: Optional[date] = None
    notes: Optional[str] = None


class UserSkillUpdate(PatchModel):
    not_null = ("level",)

    level: Optional[SkillLevel] = None
    certified_at: Optional[date] = None
    notes: Optional[str] = None


class LeaveCreate(PlainModel):
    type: LeaveType
    start_date: date
    end_date: date
    days: Optional[float] = Field(default=None, gt=0)
    reason: Optional[str] = None
    cover_user_id: Optional[uuid.UUID] = None


class LeaveReview(PlainModel):
    note: Optional[str] = None
