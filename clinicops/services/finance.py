"""
Finance: cost/revenue ledgers, period reports and monthly snapshots.
"""
import enum
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..cache import cache
from ..models.models import CostCategory, CostEntry, CostSnapshot, RevenueEntry, User
from .audit import create_audit_log
from .common import local_today, month_bounds, paginate, row_to_dict


logger = structlog.get_logger(__name__)


class CostType(str, enum.Enum):
    FIXED = "FIXED"
    VARIABLE = "VARIABLE"


# ---------- categories ----------
def list_cost_categories(db: Session) -> List[Dict]:
    return cache.wrap(
        cache_keys.COST_CATEGORIES,
        lambda: [row_to_dict(c) for c in db.query(CostCategory).order_by(CostCategory.type.asc(), CostCategory.name.asc()).all()],
        cache_keys.TTL_LONG,
    )


def create_cost_category(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    category = CostCategory(**data)
    db.add(category)
    db.commit()
    db.refresh(category)
    cache.delete(cache_keys.COST_CATEGORIES)
    create_audit_log(db, "COST_CATEGORY_CREATE", actor_id, target_id=category.id, target_type="COST_CATEGORY", metadata={"name": category.name, "type": category.type})
    return row_to_dict(category)


def update_cost_category(db: Session, category_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    category = db.query(CostCategory).filter(CostCategory.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Cost category not found")
    for key, value in data.items():
        setattr(category, key, value)
    db.commit()
    db.refresh(category)
    cache.delete(cache_keys.COST_CATEGORIES)
    return row_to_dict(category)


# ---------- entries ----------
def serialize_cost(e: CostEntry) -> Dict:
    data = row_to_dict(e)
    data["category"] = {"id": e.category.id, "name": e.category.name, "type": e.category.type} if e.category else None
    return data


def serialize_revenue(e: RevenueEntry) -> Dict:
    data = row_to_dict(e)
    data["doctor"] = {"id": e.doctor.id, "name": e.doctor.name} if e.doctor else None
    return data


def _get_cost_or_404(db: Session, entry_id: uuid.UUID) -> CostEntry:
    entry = db.query(CostEntry).filter(CostEntry.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Cost entry not found")
    return entry


def _get_revenue_or_404(db: Session, entry_id: uuid.UUID) -> RevenueEntry:
    entry = db.query(RevenueEntry).filter(RevenueEntry.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Revenue entry not found")
    return entry


def list_costs(
    db: Session,
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(CostEntry)
    if category_id:
        q = q.filter(CostEntry.category_id == category_id)
    if start_date:
        q = q.filter(CostEntry.date >= start_date)
    if end_date:
        q = q.filter(CostEntry.date <= end_date)
    q = q.order_by(CostEntry.date.desc(), CostEntry.created_at.desc())
    return paginate(q, page, limit, serialize_cost)


def create_cost(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    if not db.query(CostCategory.id).filter(CostCategory.id == data["category_id"]).first():
        raise HTTPException(status_code=404, detail="Cost category not found")
    entry = CostEntry(created_by_id=actor_id, **data)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    create_audit_log(db, "COST_ENTRY_CREATE", actor_id, target_id=entry.id, target_type="COST_ENTRY", metadata={"amount": entry.amount, "date": entry.date})
    return serialize_cost(entry)


def update_cost(db: Session, entry_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    entry = _get_cost_or_404(db, entry_id)
    for key, value in data.items():
        setattr(entry, key, value)
    db.commit()
    db.refresh(entry)
    create_audit_log(db, "COST_ENTRY_UPDATE", actor_id, target_id=entry.id, target_type="COST_ENTRY", metadata={"fields": sorted(data.keys())})
    return serialize_cost(entry)


def delete_cost(db: Session, entry_id: uuid.UUID, actor_id: uuid.UUID) -> Dict:
    entry = _get_cost_or_404(db, entry_id)
    meta = {"amount": entry.amount, "date": entry.date}
    db.delete(entry)
    db.commit()
    create_audit_log(db, "COST_ENTRY_DELETE", actor_id, target_id=entry_id, target_type="COST_ENTRY", metadata=meta)
    return {"success": True}


def list_revenues(
    db: Session,
    doctor_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(RevenueEntry)
    if doctor_id:
        q = q.filter(RevenueEntry.doctor_id == doctor_id)
    if start_date:
        q = q.filter(RevenueEntry.date >= start_date)
    if end_date:
        q = q.filter(RevenueEntry.date <= end_date)
    q = q.order_by(RevenueEntry.date.desc(), RevenueEntry.created_at.desc())
    return paginate(q, page, limit, serialize_revenue)


def create_revenue(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    if not data.get("source"):
        data["source"] = "其他"
    entry = RevenueEntry(created_by_id=actor_id, **data)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    create_audit_log(db, "REVENUE_ENTRY_CREATE", actor_id, target_id=entry.id, target_type="REVENUE_ENTRY", metadata={"amount": entry.amount, "date": entry.date})
    return serialize_revenue(entry)


def update_revenue(db: Session, entry_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    entry = _get_revenue_or_404(db, entry_id)
    for key, value in data.items():
        setattr(entry, key, value)
    db.commit()
    db.refresh(entry)
    create_audit_log(db, "REVENUE_ENTRY_UPDATE", actor_id, target_id=entry.id, target_type="REVENUE_ENTRY", metadata={"fields": sorted(data.keys())})
    return serialize_revenue(entry)


def delete_revenue(db: Session, entry_id: uuid.UUID, actor_id: uuid.UUID) -> Dict:
    entry = _get_revenue_or_404(db, entry_id)
    meta = {"amount": entry.amount, "date": entry.date}
    db.delete(entry)
    db.commit()
    create_audit_log(db, "REVENUE_ENTRY_DELETE", actor_id, target_id=entry_id, target_type="REVENUE_ENTRY", metadata=meta)
    return {"success": True}


# ---------- reports ----------
def resolve_period(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> Tuple[date, date]:
    """Inclusive (start, end) for an explicit range, a year or month, or the current month."""
    if start_date and end_date:
        if end_date < start_date:
            raise HTTPException(status_code=400, detail="end_date must not be before start_date")
        return start_date, end_date
    if year and month:
        start, nxt = month_bounds(year, month)
        return start, nxt - timedelta(days=1)
    if year:
        return date(year, 1, 1), date(year, 12, 31)
    today = local_today()
    start, nxt = month_bounds(today.year, today.month)
    return start, nxt - timedelta(days=1)


def _sum(db: Session, column, *criteria) -> float:
    return float(db.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar() or 0)


def _totals(db: Session, start: date, end: date) -> Dict[str, float]:
    revenue = _sum(db, RevenueEntry.amount, RevenueEntry.date >= start, RevenueEntry.date <= end)
    in_range = (CostEntry.date >= start, CostEntry.date <= end)
    fixed = float(
        db.query(func.coalesce(func.sum(CostEntry.amount), 0))
        .join(CostCategory, CostCategory.id == CostEntry.category_id)
        .filter(CostCategory.type == CostType.FIXED.value, *in_range)
        .scalar()
        or 0
    )
    total_cost = _sum(db, CostEntry.amount, *in_range)
    return {"revenue": revenue, "cost": total_cost, "fixed": fixed, "variable": total_cost - fixed}


def margin_rate(revenue: float, profit: float) -> float:
    return round(profit / revenue * 100, 2) if revenue else 0


def summary(db: Session, start: date, end: date) -> Dict:
    t = _totals(db, start, end)
    profit = t["revenue"] - t["cost"]
    return {
        "start_date": start,
        "end_date": end,
        "total_revenue": t["revenue"],
        "total_cost": t["cost"],
        "fixed_costs": t["fixed"],
        "variable_costs": t["variable"],
        "gross_profit": profit,
        "gross_margin": margin_rate(t["revenue"], profit),
    }


def cost_breakdown(db: Session, start: date, end: date) -> List[Dict]:
    rows = (
        db.query(CostCategory.id, CostCategory.name, CostCategory.type, func.coalesce(func.sum(CostEntry.amount), 0))
        .outerjoin(CostEntry, (CostEntry.category_id == CostCategory.id) & (CostEntry.date >= start) & (CostEntry.date <= end))
        .filter(CostCategory.is_active.is_(True))
        .group_by(CostCategory.id, CostCategory.name, CostCategory.type)
        .all()
    )
    out = [{"category_id": r[0], "name": r[1], "type": r[2], "amount": float(r[3] or 0)} for r in rows]
    out.sort(key=lambda r: r["amount"], reverse=True)
    return out


def revenue_by_doctor(db: Session, start: date, end: date) -> List[Dict]:
    rows = (
        db.query(User.id, User.name, func.sum(RevenueEntry.amount), func.count(RevenueEntry.id))
        .join(RevenueEntry, RevenueEntry.doctor_id == User.id)
        .filter(RevenueEntry.date >= start, RevenueEntry.date <= end)
        .group_by(User.id, User.name)
        .all()
    )
    out = [{"doctor_id": r[0], "name": r[1], "revenue": float(r[2] or 0), "transaction_count": r[3]} for r in rows]
    out.sort(key=lambda r: r["revenue"], reverse=True)
    return out


def yearly_margin(db: Session, year: int) -> List[Dict]:
    out = []
    for month in range(1, 13):
        start, nxt = month_bounds(year, month)
        t = _totals(db, start, nxt - timedelta(days=1))
        profit = t["revenue"] - t["cost"]
        out.append(
            {
                "year": year,
                "month": month,
                "revenue": t["revenue"],
                "cost": t["cost"],
                "profit": profit,
                "margin": margin_rate(t["revenue"], profit),
            }
        )
    return out


# ---------- snapshots ----------
def create_snapshot(db: Session, year: int, month: int, actor_id: uuid.UUID) -> Dict:
    start, nxt = month_bounds(year, month)
    t = _totals(db, start, nxt - timedelta(days=1))
    profit = t["revenue"] - t["cost"]
    snapshot = db.query(CostSnapshot).filter(CostSnapshot.year == year, CostSnapshot.month == month).first()
    if snapshot is None:
        snapshot = CostSnapshot(year=year, month=month)
        db.add(snapshot)
    snapshot.total_revenue = t["revenue"]
    snapshot.total_cost = t["cost"]
    snapshot.fixed_cost = t["fixed"]
    snapshot.variable_cost = t["variable"]
    snapshot.gross_margin = profit
    snapshot.margin_rate = margin_rate(t["revenue"], profit)
    db.commit()
    db.refresh(snapshot)
    logger.info("cost_snapshot_saved", year=year, month=month, revenue=snapshot.total_revenue, cost=snapshot.total_cost)
    create_audit_log(db, "COST_SNAPSHOT_CREATE", actor_id, target_id=snapshot.id, target_type="COST_SNAPSHOT", metadata={"year": year, "month": month})
    return row_to_dict(snapshot)


def list_snapshots(db: Session, year: int, month: Optional[int] = None) -> List[Dict]:
    q = db.query(CostSnapshot).filter(CostSnapshot.year == year)
    if month:
        q = q.filter(CostSnapshot.month == month)
    return [row_to_dict(s) for s in q.order_by(CostSnapshot.month.asc()).all()]
