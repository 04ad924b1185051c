import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.procurement import (
    GoodsReceiptCreate,
    OrderStatusUpdate,
    PurchaseOrderCreate,
    PurchaseRequestCreate,
    PurchaseRequestReview,
    VendorCreate,
    VendorUpdate,
)
from ..services import procurement as svc
from ..services.procurement import PurchaseOrderStatus, PurchaseRequestStatus


router = APIRouter(prefix="/procurement", tags=["procurement"])


@router.get("/stats")
def stats(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.procurement_stats(db)


# ----- vendors -----
@router.get("/vendors")
def list_vendors(search: Optional[str] = None, is_active: Optional[bool] = True, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_vendors(db, search, is_active)


@router.get("/vendors/{vendor_id}")
def get_vendor(vendor_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.get_vendor(db, vendor_id)


@router.post("/vendors", status_code=201)
def create_vendor(body: VendorCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_vendor(db, body.model_dump(), me.id)


@router.patch("/vendors/{vendor_id}")
def update_vendor(vendor_id: uuid.UUID, body: VendorUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_vendor(db, vendor_id, body.model_dump(exclude_unset=True))


# ----- purchase requests -----
@router.get("/requests")
def list_requests(
    status: Optional[PurchaseRequestStatus] = None,
    requester_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return svc.list_requests(db, me, status.value if status else None, requester_id, page, limit)


@router.get("/requests/{request_id}")
def get_request(request_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.get_request(db, request_id, me)


@router.post("/requests", status_code=201)
def create_request(body: PurchaseRequestCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_request(db, body.model_dump(), me)


@router.post("/requests/{request_id}/approve")
def review_request(request_id: uuid.UUID, body: PurchaseRequestReview, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.review_request(db, request_id, body.approved, body.note, me)


# ----- purchase orders -----
@router.get("/orders")
def list_orders(
    status: Optional[PurchaseOrderStatus] = None,
    vendor_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_orders(db, status.value if status else None, vendor_id, page, limit)


@router.get("/orders/{order_id}")
def get_order(order_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.get_order(db, order_id)


@router.post("/orders", status_code=201)
def create_order(body: PurchaseOrderCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_order(db, body.model_dump(), me.id)


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: uuid.UUID, body: OrderStatusUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_order_status(db, order_id, body.status)


# ----- goods receipts -----
@router.post("/receipts", status_code=201)
def create_receipt(body: GoodsReceiptCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_receipt(db, body.order_id, [i.model_dump() for i in body.items], body.notes, me)
