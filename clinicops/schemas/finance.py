import uuid
import datetime as dt
from typing import Optional

from pydantic import Field

from ..services.finance import CostType
from .common import PatchModel, PlainModel


class CostCategoryCreate(PlainModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    type: CostType
    is_active: bool = True


class CostCategoryUpdate(PatchModel):
    not_null = ("name", "type", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[CostType] = None
    is_active: Optional[bool] = None


class CostEntryCreate(PlainModel):
    category_id: uuid.UUID
    amount: float = Field(ge=0)
    description: str = ""
    date: dt.date
    reference: Optional[str] = None


class CostEntryUpdate(PatchModel):
    not_null = ("category_id", "amount", "description", "date")

    category_id: Optional[uuid.UUID] = None
    amount: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    date: Optional[dt.date] = None
    reference: Optional[str] = None


class RevenueEntryCreate(PlainModel):
    amount: float = Field(ge=0)
    source: Optional[str] = None
    doctor_id: Optional[uuid.UUID] = None
    description: str = ""
    date: dt.date


class RevenueEntryUpdate(PatchModel):
    not_null = ("amount", "source", "description", "date")

    amount: Optional[float] = Field(default=None, ge=0)
    source: Optional[str] = None
    doctor_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None


class SnapshotCreate(PlainModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
