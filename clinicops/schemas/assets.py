import uuid
from datetime import date
from typing import Optional

from pydantic import Field

from ..services.assets import (
    AssetCondition,
    AssetStatus,
    FaultSeverity,
    FaultStatus,
    MaintenanceFrequency,
    MaintenanceType,
)
from .common import PatchModel, PlainModel, UTCDateTime


class AssetCreate(PlainModel):
    asset_no: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    category: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_no: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    status: AssetStatus = AssetStatus.IN_USE
    condition: AssetCondition = AssetCondition.GOOD
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    warranty_expiry: Optional[date] = None
    vendor_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class AssetUpdate(PatchModel):
    not_null = ("asset_no", "name", "status", "condition", "is_active")

    asset_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_no: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    status: Optional[AssetStatus] = None
    condition: Optional[AssetCondition] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    warranty_expiry: Optional[date] = None
    vendor_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class ScheduleCreate(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    frequency: MaintenanceFrequency
    next_due_at: Optional[UTCDateTime] = None
    assignee_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ScheduleUpdate(PatchModel):
    not_null = ("name", "frequency", "next_due_at", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    frequency: Optional[MaintenanceFrequency] = None
    next_due_at: Optional[UTCDateTime] = None
    assignee_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class RecordCreate(PlainModel):
    schedule_id: Optional[uuid.UUID] = None
    type: MaintenanceType = MaintenanceType.SCHEDULED
    description: str = ""
    performed_by_id: Optional[uuid.UUID] = None
    performed_at: Optional[UTCDateTime] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class FaultCreate(PlainModel):
    description: str = Field(min_length=1)
    severity: Optional[FaultSeverity] = None


class FaultStatusUpdate(PlainModel):
    status: FaultStatus


class FaultResolve(PlainModel):
    resolution: str = Field(min_length=1)
