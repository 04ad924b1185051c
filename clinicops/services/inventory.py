"""
Inventory items and stock transactions.
"""
import csv
import enum
import io
import uuid
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..models.models import InventoryItem, InventoryTxn, User
from .audit import create_audit_log
from .common import paginate, row_to_dict
from .notifications import NotificationType, notify_admins


logger = structlog.get_logger(__name__)


class InventoryTxnType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"
    EXPIRED = "EXPIRED"


TXN_TYPE_LABELS = {"IN": "入庫", "OUT": "出庫", "ADJUST": "調整", "EXPIRED": "過期"}

CSV_HEADERS = ["品項名稱", "分類", "單位", "庫存量", "最低庫存", "最高庫存", "位置", "狀態"]
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def serialize_txn(t: InventoryTxn) -> Dict:
    data = row_to_dict(t)
    data["type_label"] = TXN_TYPE_LABELS.get(t.type, t.type)
    data["performed_by"] = {"id": t.performed_by.id, "name": t.performed_by.name} if t.performed_by else None
    return data


def get_item_or_404(db: Session, item_id: uuid.UUID) -> InventoryItem:
    item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


def list_items(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    low_stock: bool = False,
    is_active: Optional[bool] = True,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(InventoryItem)
    if is_active is not None:
        q = q.filter(InventoryItem.is_active.is_(is_active))
    if category:
        q = q.filter(InventoryItem.category == category)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.location.ilike(pattern)))
    if low_stock:
        q = q.filter(InventoryItem.quantity <= InventoryItem.min_stock)
    q = q.order_by(InventoryItem.name.asc())
    return paginate(q, page, limit, row_to_dict)


def get_item(db: Session, item_id: uuid.UUID) -> Dict:
    item = get_item_or_404(db, item_id)
    txns = (
        db.query(InventoryTxn)
        .filter(InventoryTxn.item_id == item.id)
        .order_by(InventoryTxn.created_at.desc())
        .limit(20)
        .all()
    )
    data = row_to_dict(item)
    data["transactions"] = [serialize_txn(t) for t in txns]
    return data


def create_item(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    item = InventoryItem(**data)
    db.add(item)
    db.commit()
    db.refresh(item)
    create_audit_log(db, "INVENTORY_ITEM_CREATE", actor_id, target_id=item.id, target_type="INVENTORY_ITEM", metadata={"name": item.name})
    return row_to_dict(item)


def update_item(db: Session, item_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    item = get_item_or_404(db, item_id)
    for key, value in data.items():
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    create_audit_log(db, "INVENTORY_ITEM_UPDATE", actor_id, target_id=item.id, target_type="INVENTORY_ITEM", metadata={"fields": sorted(data.keys())})
    return row_to_dict(item)


def delete_item(db: Session, item_id: uuid.UUID, actor_id: uuid.UUID) -> Dict:
    item = get_item_or_404(db, item_id)
    item.is_active = False
    db.commit()
    db.refresh(item)
    create_audit_log(db, "INVENTORY_ITEM_DELETE", actor_id, target_id=item.id, target_type="INVENTORY_ITEM", metadata={"name": item.name})
    return row_to_dict(item)


def signed_quantity(txn_type: str, quantity: int) -> int:
    if txn_type == InventoryTxnType.OUT.value:
        return -abs(quantity)
    if txn_type == InventoryTxnType.IN.value:
        return abs(quantity)
    if txn_type == InventoryTxnType.EXPIRED.value:
        return -abs(quantity)
    return quantity


def apply_transaction(
    db: Session,
    item: InventoryItem,
    txn_type: str,
    quantity: int,
    note: Optional[str],
    user_id: Optional[uuid.UUID],
) -> InventoryTxn:
    """
    Stage a transaction and the balance change without committing.

    The balance moves in a single guarded UPDATE so concurrent OUT
    transactions cannot both pass the stock check.
    """
    delta = signed_quantity(txn_type, quantity)
    result = db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item.id, InventoryItem.quantity + delta >= 0)
        .values(quantity=InventoryItem.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise HTTPException(status_code=400, detail="Insufficient stock")
    db.expire(item, ["quantity"])
    txn = InventoryTxn(item_id=item.id, type=txn_type, quantity=delta, note=note, performed_by_id=user_id)
    db.add(txn)
    return txn


def notify_if_low_stock(db: Session, item: InventoryItem) -> None:
    if item.quantity > item.min_stock:
        return
    logger.info("inventory_low_stock", item_id=str(item.id), quantity=item.quantity, min_stock=item.min_stock)
    notify_admins(
        db,
        NotificationType.INVENTORY_LOW_STOCK,
        "低庫存警示",
        f"{item.name} 庫存低於安全存量，目前：{item.quantity}，最低：{item.min_stock}",
        {"item_id": item.id},
    )


def create_transaction(db: Session, item_id: uuid.UUID, txn_type: str, quantity: int, note: Optional[str], user: User) -> Dict:
    item = get_item_or_404(db, item_id)
    try:
        txn = apply_transaction(db, item, txn_type, quantity, note, user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    db.refresh(txn)
    notify_if_low_stock(db, item)
    data = serialize_txn(txn)
    data["item"] = row_to_dict(item)
    return data


def list_low_stock(db: Session) -> List[Dict]:
    rows = (
        db.query(InventoryItem)
        .filter(InventoryItem.is_active.is_(True), InventoryItem.quantity <= InventoryItem.min_stock)
        .order_by(InventoryItem.quantity.asc())
        .all()
    )
    return [
        {"id": i.id, "name": i.name, "quantity": i.quantity, "min_stock": i.min_stock, "shortage": i.min_stock - i.quantity}
        for i in rows
    ]


def low_stock_count(db: Session) -> int:
    return (
        db.query(InventoryItem)
        .filter(InventoryItem.is_active.is_(True), InventoryItem.quantity <= InventoryItem.min_stock)
        .count()
    )


def list_item_transactions(db: Session, item_id: uuid.UUID, page: int = 1, limit: int = 20) -> Dict:
    get_item_or_404(db, item_id)
    q = db.query(InventoryTxn).filter(InventoryTxn.item_id == item_id).order_by(InventoryTxn.created_at.desc())
    return paginate(q, page, limit, serialize_txn)


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if text.startswith(_FORMULA_PREFIXES):
        return "'" + text
    return text


def export_csv(db: Session) -> str:
    items = db.query(InventoryItem).filter(InventoryItem.is_active.is_(True)).order_by(InventoryItem.name.asc()).all()
    out = io.StringIO()
    w = csv.writer(out, lineterminator="\n")
    w.writerow(CSV_HEADERS)
    for item in items:
        w.writerow([
            _csv_cell(item.name),
            _csv_cell(item.category or "其他"),
            _csv_cell(item.unit),
            item.quantity,
            item.min_stock,
            "" if item.max_stock is None else item.max_stock,
            _csv_cell(item.location),
            "低庫存" if item.quantity <= item.min_stock else "正常",
        ])
    return out.getvalue()

