"""
Dashboard aggregates across modules.
"""
from typing import Dict

from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..auth.security import is_supervisor
from ..cache import cache
from ..models.models import PurchaseRequest, User
from . import assets, finance, handover, hr, inventory, quality, scheduling
from .documents import my_unread_count
from .procurement import PurchaseRequestStatus


def summary(db: Session, user: User) -> Dict:
    def build():
        data = {
            "today_shifts": scheduling.today_shifts(db),
            "my_handovers": handover.my_handovers(db, user.id),
            "pending_handovers": handover.pending_count(db),
            "low_stock_count": inventory.low_stock_count(db),
        }
        if is_supervisor(user):
            data["urgent_handovers"] = handover.urgent_handovers(db)
            data["low_stock_items"] = inventory.list_low_stock(db)
        return data

    return cache.wrap(f"{cache_keys.DASHBOARD_SUMMARY}:{user.id}", build, cache_keys.TTL_SHORT)


def stats(db: Session) -> Dict:
    return {
        "pending_handovers": handover.pending_count(db),
        "low_stock_items": inventory.low_stock_count(db),
    }


def operations(db: Session, user: User) -> Dict:
    upcoming = assets.upcoming_maintenance(db, 7)
    expiring = hr.expiring_certifications(db, 90)
    low_stock = inventory.list_low_stock(db)
    return {
        "tasks": handover.task_stats(db),
        "assets": {
            "open_fault_count": assets.open_fault_count(db),
            "open_faults": assets.open_faults(db, limit=5),
            "upcoming_maintenance_count": len(upcoming),
            "upcoming_maintenance": upcoming[:5],
        },
        "hr": {
            "expiring_certification_count": len(expiring),
            "expiring_certifications": expiring[:5],
        },
        "inventory": {
            "low_stock_count": len(low_stock),
            "low_stock_items": low_stock[:5],
            "pending_purchase_requests": db.query(PurchaseRequest)
            .filter(PurchaseRequest.status == PurchaseRequestStatus.PENDING.value)
            .count(),
        },
        "quality": quality.quality_stats(db),
        "finance": finance.summary(db, *finance.resolve_period()),
        "documents": {"my_unread_count": my_unread_count(db, user.id)},
    }
