import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.assets import (
    AssetCreate,
    AssetUpdate,
    FaultCreate,
    FaultResolve,
    FaultStatusUpdate,
    RecordCreate,
    ScheduleCreate,
    ScheduleUpdate,
)
from ..services import assets as svc
from ..services.assets import AssetStatus, FaultSeverity, FaultStatus


router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("")
def list_assets(
    category: Optional[str] = None,
    status: Optional[AssetStatus] = None,
    location: Optional[str] = None,
    department: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.list_assets(db, category, status.value if status else None, location, department, search, page, limit)


@router.get("/stats")
def stats(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.asset_stats(db)


@router.get("/warranty/expiring")
def expiring_warranties(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.expiring_warranties(db, days)


@router.get("/maintenance/upcoming")
def upcoming_maintenance(days: int = Query(7, ge=1, le=365), db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.upcoming_maintenance(db, days)


@router.patch("/maintenance/schedules/{schedule_id}")
def update_schedule(schedule_id: uuid.UUID, body: ScheduleUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_schedule(db, schedule_id, body.model_dump(exclude_unset=True))


# ----- faults -----
@router.get("/faults")
def list_faults(
    asset_id: Optional[uuid.UUID] = None,
    status: Optional[FaultStatus] = None,
    severity: Optional[FaultSeverity] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.list_faults(db, asset_id, status.value if status else None, severity.value if severity else None, page, limit)


@router.get("/faults/open")
def open_faults(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.open_faults(db)


@router.patch("/faults/{fault_id}/status")
def update_fault_status(fault_id: uuid.UUID, body: FaultStatusUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_fault_status(db, fault_id, body.status)


@router.post("/faults/{fault_id}/resolve")
def resolve_fault(fault_id: uuid.UUID, body: FaultResolve, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.resolve_fault(db, fault_id, body.resolution, me)


# ----- single asset -----
@router.post("", status_code=201)
def create_asset(body: AssetCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_asset(db, body.model_dump(), me.id)


@router.get("/{asset_id}")
def get_asset(asset_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.get_asset(db, asset_id)


@router.patch("/{asset_id}")
def update_asset(asset_id: uuid.UUID, body: AssetUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.update_asset(db, asset_id, body.model_dump(exclude_unset=True), me.id)


@router.post("/{asset_id}/schedules", status_code=201)
def create_schedule(asset_id: uuid.UUID, body: ScheduleCreate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.create_schedule(db, asset_id, body.model_dump())


@router.post("/{asset_id}/records", status_code=201)
def create_record(asset_id: uuid.UUID, body: RecordCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_record(db, asset_id, body.model_dump(), me.id)


@router.post("/{asset_id}/faults", status_code=201)
def report_fault(asset_id: uuid.UUID, body: FaultCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.report_fault(db, asset_id, body.description, body.severity, me)
