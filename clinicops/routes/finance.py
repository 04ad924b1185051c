import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.finance import (
    CostCategoryCreate,
    CostCategoryUpdate,
    CostEntryCreate,
    CostEntryUpdate,
    RevenueEntryCreate,
    RevenueEntryUpdate,
    SnapshotCreate,
)
from ..services import finance as svc


router = APIRouter(prefix="/finance", tags=["finance"])


def report_period(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    return svc.resolve_period(start_date, end_date, year, month)


# ----- categories -----
@router.get("/categories")
def list_categories(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_cost_categories(db)


@router.post("/categories", status_code=201)
def create_category(body: CostCategoryCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_cost_category(db, body.model_dump(), me.id)


@router.patch("/categories/{category_id}")
def update_category(category_id: uuid.UUID, body: CostCategoryUpdate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.update_cost_category(db, category_id, body.model_dump(exclude_unset=True))


# ----- costs -----
@router.get("/costs")
def list_costs(
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_costs(db, category_id, start_date, end_date, page, limit)


@router.post("/costs", status_code=201)
def create_cost(body: CostEntryCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_cost(db, body.model_dump(), me.id)


@router.patch("/costs/{entry_id}")
def update_cost(entry_id: uuid.UUID, body: CostEntryUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.update_cost(db, entry_id, body.model_dump(exclude_unset=True), me.id)


@router.delete("/costs/{entry_id}")
def delete_cost(entry_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.delete_cost(db, entry_id, me.id)


# ----- revenues -----
@router.get("/revenues")
def list_revenues(
    doctor_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_revenues(db, doctor_id, start_date, end_date, page, limit)


@router.post("/revenues", status_code=201)
def create_revenue(body: RevenueEntryCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_revenue(db, body.model_dump(), me.id)


@router.patch("/revenues/{entry_id}")
def update_revenue(entry_id: uuid.UUID, body: RevenueEntryUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.update_revenue(db, entry_id, body.model_dump(exclude_unset=True), me.id)


@router.delete("/revenues/{entry_id}")
def delete_revenue(entry_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.delete_revenue(db, entry_id, me.id)


# ----- reports -----
@router.get("/reports/summary")
def summary(period=Depends(report_period), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.summary(db, *period)


@router.get("/reports/breakdown")
def breakdown(period=Depends(report_period), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.cost_breakdown(db, *period)


@router.get("/reports/by-doctor")
def by_doctor(period=Depends(report_period), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.revenue_by_doctor(db, *period)


@router.get("/reports/margin")
def margin(year: int = Query(..., ge=2000, le=2100), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.yearly_margin(db, year)


# ----- snapshots -----
@router.get("/snapshots")
def list_snapshots(
    year: int = Query(..., ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_snapshots(db, year, month)


@router.post("/snapshots", status_code=201)
def create_snapshot(body: SnapshotCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_snapshot(db, body.year, body.month, me.id)
