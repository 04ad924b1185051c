"""
Procurement: vendors, purchase requests, purchase orders and goods receipts.

Goods receipts feed accepted quantities into inventory in the same transaction.
"""
import enum
import uuid
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth.security import is_supervisor
from ..models.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    InventoryItem,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseRequest,
    PurchaseRequestItem,
    User,
    Vendor,
)
from .audit import create_audit_log
from .common import day_start, generate_number, local_today, month_bounds, paginate, row_to_dict, user_brief, utcnow
from .inventory import InventoryTxnType, apply_transaction, notify_if_low_stock
from .notifications import NotificationType, create_notification, notify_supervisors


logger = structlog.get_logger(__name__)


class PurchaseRequestStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ORDERED = "ORDERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PurchaseOrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    CONFIRMED = "CONFIRMED"
    PARTIAL_RECEIVED = "PARTIAL_RECEIVED"
    RECEIVED = "RECEIVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RequestPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# ---------- vendors ----------
def get_vendor_or_404(db: Session, vendor_id: uuid.UUID) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


def list_vendors(db: Session, search: Optional[str] = None, is_active: Optional[bool] = True) -> List[Dict]:
    q = db.query(Vendor)
    if is_active is not None:
        q = q.filter(Vendor.is_active.is_(is_active))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Vendor.name.ilike(pattern), Vendor.code.ilike(pattern), Vendor.contact_name.ilike(pattern)))
    return [row_to_dict(v) for v in q.order_by(Vendor.name.asc()).all()]


def get_vendor(db: Session, vendor_id: uuid.UUID) -> Dict:
    vendor = get_vendor_or_404(db, vendor_id)
    data = row_to_dict(vendor)
    orders = (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.vendor_id == vendor.id)
        .order_by(PurchaseOrder.created_at.desc())
        .limit(10)
        .all()
    )
    data["recent_orders"] = [
        {"id": o.id, "order_no": o.order_no, "status": o.status, "total_amount": o.total_amount, "created_at": o.created_at}
        for o in orders
    ]
    return data


def create_vendor(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    if db.query(Vendor.id).filter(Vendor.code == data["code"]).first():
        raise HTTPException(status_code=400, detail="Vendor code already exists")
    vendor = Vendor(**data)
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    create_audit_log(db, "VENDOR_CREATE", actor_id, target_id=vendor.id, target_type="VENDOR", metadata={"code": vendor.code, "name": vendor.name})
    return row_to_dict(vendor)


def update_vendor(db: Session, vendor_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    vendor = get_vendor_or_404(db, vendor_id)
    if data.get("code") and data["code"] != vendor.code:
        if db.query(Vendor.id).filter(Vendor.code == data["code"]).first():
            raise HTTPException(status_code=400, detail="Vendor code already exists")
    for key, value in data.items():
        setattr(vendor, key, value)
    db.commit()
    db.refresh(vendor)
    return row_to_dict(vendor)


# ---------- purchase requests ----------
def serialize_request(pr: PurchaseRequest, detail: bool = False) -> Dict:
    data = row_to_dict(pr)
    data["requester"] = user_brief(pr.requester)
    data["approved_by"] = {"id": pr.approved_by.id, "name": pr.approved_by.name} if pr.approved_by else None
    data["item_count"] = len(pr.items)
    if detail:
        data["items"] = [row_to_dict(i) for i in pr.items]
    return data


def get_request_or_404(db: Session, request_id: uuid.UUID) -> PurchaseRequest:
    pr = db.query(PurchaseRequest).filter(PurchaseRequest.id == request_id).first()
    if not pr:
        raise HTTPException(status_code=404, detail="Purchase request not found")
    return pr


def list_requests(
    db: Session,
    viewer: User,
    status: Optional[str] = None,
    requester_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(PurchaseRequest)
    if not is_supervisor(viewer):
        q = q.filter(PurchaseRequest.requester_id == viewer.id)
    elif requester_id:
        q = q.filter(PurchaseRequest.requester_id == requester_id)
    if status:
        q = q.filter(PurchaseRequest.status == status)
    q = q.order_by(PurchaseRequest.created_at.desc())
    return paginate(q, page, limit, serialize_request)


def get_request(db: Session, request_id: uuid.UUID, viewer: User) -> Dict:
    pr = get_request_or_404(db, request_id)
    if pr.requester_id != viewer.id and not is_supervisor(viewer):
        raise HTTPException(status_code=403, detail="You can only view your own purchase requests")
    return serialize_request(pr, detail=True)


def create_request(db: Session, data: Dict[str, Any], requester: User) -> Dict:
    items = data.pop("items")
    pr = PurchaseRequest(
        request_no=generate_number("PR"),
        requester_id=requester.id,
        status=PurchaseRequestStatus.PENDING.value,
        total_amount=sum(i["estimated_price"] * i["quantity"] for i in items),
        **data,
    )
    pr.items = [PurchaseRequestItem(**i) for i in items]
    db.add(pr)
    db.commit()
    db.refresh(pr)
    notify_supervisors(
        db,
        NotificationType.PR_PENDING_APPROVAL,
        "請購單待審核",
        f"{requester.name} 提出請購單 {pr.request_no}，金額 {pr.total_amount:,.0f}",
        {"request_id": pr.id},
        exclude=requester.id,
    )
    return serialize_request(pr, detail=True)


def review_request(db: Session, request_id: uuid.UUID, approved: bool, note: Optional[str], reviewer: User) -> Dict:
    pr = get_request_or_404(db, request_id)
    if pr.status != PurchaseRequestStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Request is not pending")
    pr.status = PurchaseRequestStatus.APPROVED.value if approved else PurchaseRequestStatus.REJECTED.value
    pr.approved_by_id = reviewer.id
    pr.approved_at = utcnow()
    pr.review_note = note
    db.commit()
    db.refresh(pr)
    create_notification(
        db,
        pr.requester_id,
        NotificationType.PR_APPROVED,
        "請購單審核結果",
        f"請購單 {pr.request_no} 已{'核准' if approved else '駁回'}",
        {"request_id": pr.id, "status": pr.status},
    )
    create_audit_log(db, "PR_APPROVE", reviewer.id, target_id=pr.id, target_type="PURCHASE_REQUEST", metadata={"request_no": pr.request_no, "status": pr.status})
    return serialize_request(pr, detail=True)


# ---------- purchase orders ----------
def serialize_order(po: PurchaseOrder, detail: bool = False) -> Dict:
    data = row_to_dict(po)
    data["vendor"] = {"id": po.vendor.id, "name": po.vendor.name, "code": po.vendor.code} if po.vendor else None
    data["created_by"] = {"id": po.created_by.id, "name": po.created_by.name} if po.created_by else None
    data["request_no"] = po.request.request_no if po.request else None
    if detail:
        data["items"] = [row_to_dict(i) for i in po.items]
        data["receipts"] = [serialize_receipt(r) for r in po.receipts]
    return data


def get_order_or_404(db: Session, order_id: uuid.UUID) -> PurchaseOrder:
    po = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return po


def list_orders(
    db: Session,
    status: Optional[str] = None,
    vendor_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(PurchaseOrder)
    if status:
        q = q.filter(PurchaseOrder.status == status)
    if vendor_id:
        q = q.filter(PurchaseOrder.vendor_id == vendor_id)
    q = q.order_by(PurchaseOrder.created_at.desc())
    return paginate(q, page, limit, serialize_order)


def get_order(db: Session, order_id: uuid.UUID) -> Dict:
    return serialize_order(get_order_or_404(db, order_id), detail=True)


def create_order(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    get_vendor_or_404(db, data["vendor_id"])
    pr = None
    if data.get("request_id"):
        pr = get_request_or_404(db, data["request_id"])
        if pr.status != PurchaseRequestStatus.APPROVED.value:
            raise HTTPException(status_code=400, detail="Purchase request must be approved before ordering")
    items = data.pop("items")
    po = PurchaseOrder(order_no=generate_number("PO"), created_by_id=actor_id, status=PurchaseOrderStatus.PENDING.value, **data)
    po.items = [PurchaseOrderItem(total_price=i["unit_price"] * i["quantity"], **i) for i in items]
    po.total_amount = sum(i.total_price for i in po.items)
    db.add(po)
    if pr is not None:
        pr.status = PurchaseRequestStatus.ORDERED.value
    db.commit()
    db.refresh(po)
    create_audit_log(db, "PO_CREATE", actor_id, target_id=po.id, target_type="PURCHASE_ORDER", metadata={"order_no": po.order_no, "vendor_id": po.vendor_id})
    return serialize_order(po, detail=True)


def update_order_status(db: Session, order_id: uuid.UUID, status: str) -> Dict:
    po = get_order_or_404(db, order_id)
    po.status = status
    db.commit()
    db.refresh(po)
    return serialize_order(po, detail=True)


# ---------- goods receipts ----------
def serialize_receipt(gr: GoodsReceipt) -> Dict:
    data = row_to_dict(gr)
    data["received_by"] = {"id": gr.received_by.id, "name": gr.received_by.name} if gr.received_by else None
    data["items"] = [row_to_dict(i) for i in gr.items]
    return data


def create_receipt(db: Session, order_id: uuid.UUID, items: List[Dict[str, Any]], notes: Optional[str], user: User) -> Dict:
    po = get_order_or_404(db, order_id)
    if po.status in (PurchaseOrderStatus.CANCELLED.value, PurchaseOrderStatus.COMPLETED.value):
        raise HTTPException(status_code=400, detail="Purchase order is closed")
    order_items = {i.id: i for i in po.items}
    receipt_no = generate_number("GR")
    touched: List[InventoryItem] = []
    try:
        gr = GoodsReceipt(receipt_no=receipt_no, order_id=po.id, received_by_id=user.id, notes=notes)
        db.add(gr)
        for line in items:
            order_item = order_items.get(line["order_item_id"])
            if order_item is None:
                raise HTTPException(status_code=400, detail="Order item does not belong to this purchase order")
            gr.items.append(
                GoodsReceiptItem(
                    order_item_id=order_item.id,
                    received_qty=line["received_qty"],
                    accepted_qty=line.get("accepted_qty", 0),
                    rejected_qty=line.get("rejected_qty", 0),
                    notes=line.get("notes"),
                )
            )
            order_item.received_qty = (order_item.received_qty or 0) + line["received_qty"]
            accepted = line.get("accepted_qty", 0)
            if order_item.inventory_item_id and accepted > 0:
                stock = db.query(InventoryItem).filter(InventoryItem.id == order_item.inventory_item_id).first()
                if stock is not None:
                    apply_transaction(db, stock, InventoryTxnType.IN.value, accepted, f"採購收貨: {receipt_no}", user.id)
                    touched.append(stock)

        if all(i.received_qty >= i.quantity for i in po.items):
            po.status = PurchaseOrderStatus.RECEIVED.value
        elif any(i.received_qty > 0 for i in po.items):
            po.status = PurchaseOrderStatus.PARTIAL_RECEIVED.value
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(gr)
    db.refresh(po)
    logger.info("goods_received", order_no=po.order_no, receipt_no=receipt_no, status=po.status)

    for stock in touched:
        notify_if_low_stock(db, stock)
    if po.status == PurchaseOrderStatus.RECEIVED.value:
        create_notification(
            db,
            po.created_by_id,
            NotificationType.PO_RECEIVED,
            "採購單已到貨",
            f"採購單 {po.order_no} 已全數收貨",
            {"order_id": po.id, "receipt_id": gr.id},
        )
    data = serialize_receipt(gr)
    data["order_status"] = po.status
    return data


def procurement_stats(db: Session) -> Dict:
    today = local_today()
    start, end = month_bounds(today.year, today.month)
    spending = (
        db.query(func.coalesce(func.sum(PurchaseOrder.total_amount), 0))
        .filter(
            PurchaseOrder.status.in_((PurchaseOrderStatus.RECEIVED.value, PurchaseOrderStatus.COMPLETED.value)),
            PurchaseOrder.created_at >= day_start(start),
            PurchaseOrder.created_at < day_start(end),
        )
        .scalar()
    )
    return {
        "pending_requests": db.query(PurchaseRequest).filter(PurchaseRequest.status == PurchaseRequestStatus.PENDING.value).count(),
        "approved_requests": db.query(PurchaseRequest).filter(PurchaseRequest.status == PurchaseRequestStatus.APPROVED.value).count(),
        "pending_orders": db.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_((PurchaseOrderStatus.PENDING.value, PurchaseOrderStatus.SENT.value)))
        .count(),
        "pending_receipts": db.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_((PurchaseOrderStatus.CONFIRMED.value, PurchaseOrderStatus.PARTIAL_RECEIVED.value)))
        .count(),
        "monthly_spending": float(spending or 0),
    }
