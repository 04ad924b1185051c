import uuid
import datetime as dt
from typing import List, Optional

from pydantic import Field

from ..services.scheduling import ActivityType, ScheduleDepartment, ShiftCode, ShiftType
from .common import PatchModel, PlainModel


class ShiftCreate(PlainModel):
    date: dt.date
    type: ShiftType
    user_id: uuid.UUID
    notes: Optional[str] = None


class ShiftUpdate(PatchModel):
    not_null = ("date", "type", "user_id")

    date: Optional[dt.date] = None
    type: Optional[ShiftType] = None
    user_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ScheduleEntryIn(PlainModel):
    date: dt.date
    user_id: uuid.UUID
    department: ScheduleDepartment
    shift_code: Optional[ShiftCode] = None
    period_a: Optional[ActivityType] = None
    period_b: Optional[ActivityType] = None
    period_c: Optional[ActivityType] = None
    notes: Optional[str] = None


class BulkUpsertSchedule(PlainModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    entries: List[ScheduleEntryIn] = Field(max_length=2000)
