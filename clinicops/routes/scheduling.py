import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.scheduling import BulkUpsertSchedule, ShiftCreate, ShiftUpdate
from ..services import scheduling as svc
from ..services.schedule_excel import export_schedule, parse_schedule
from ..services.scheduling import ScheduleDepartment, ShiftType


router = APIRouter(prefix="/scheduling", tags=["scheduling"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ----- shifts -----
@router.get("/shifts")
def list_shifts(
    start: Optional[date] = None,
    end: Optional[date] = None,
    user_id: Optional[uuid.UUID] = None,
    type: Optional[ShiftType] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_shifts(db, start, end, user_id, type.value if type else None)


@router.get("/shifts/today")
def today(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.today_shifts(db)


@router.get("/shifts/weekly")
def weekly(start: Optional[date] = None, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.weekly_schedule(db, start)


@router.get("/shifts/my")
def my_shifts(month: Optional[str] = None, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.user_shifts(db, me.id, month)


@router.get("/shifts/user/{user_id}")
def user_shifts(user_id: uuid.UUID, month: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.user_shifts(db, user_id, month)


@router.get("/shifts/{shift_id}")
def get_shift(shift_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.get_shift(db, shift_id)


@router.post("/shifts", status_code=201)
def create_shift(body: ShiftCreate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.create_shift(db, body.date, body.type, body.user_id, body.notes)


@router.patch("/shifts/{shift_id}")
def update_shift(shift_id: uuid.UUID, body: ShiftUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_shift(db, shift_id, body.model_dump(exclude_unset=True))


@router.delete("/shifts/{shift_id}")
def delete_shift(shift_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.delete_shift(db, shift_id)


# ----- monthly grid -----
@router.get("/monthly")
def monthly(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    department: Optional[ScheduleDepartment] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.monthly_schedule(db, year, month, department.value if department else None)


@router.post("/monthly/bulk")
def bulk_upsert(body: BulkUpsertSchedule, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.bulk_upsert(db, body.year, body.month, [e.model_dump() for e in body.entries], me.id)


@router.delete("/monthly/entry/{entry_id}")
def delete_entry(entry_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.delete_entry(db, entry_id)


@router.get("/monthly/stats")
def monthly_stats(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    department: Optional[ScheduleDepartment] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.monthly_stats(db, year, month, department.value if department else None)


@router.get("/departments/staff")
def department_staff(department: Optional[ScheduleDepartment] = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.department_staff(db, department.value if department else None)


@router.get("/export.xlsx")
def export_xlsx(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    department: Optional[ScheduleDepartment] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    content = export_schedule(db, year, month, department.value if department else None)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=schedule_{year}_{month}.xlsx"},
    )


@router.post("/import")
async def import_xlsx(
    file: Optional[UploadFile] = File(None),
    department: Optional[ScheduleDepartment] = Form(None),
    year: Optional[int] = Form(None),
    month: Optional[int] = Form(None),
    _=Depends(require_roles("SUPERVISOR")),
):
    if file is None or not (file.filename or "").lower().endswith(".xlsx"):
        raise HTTPException(status_code=400, detail="請上傳 Excel 檔案")
    content = await file.read()
    return parse_schedule(content, department.value if department else None, year, month)
