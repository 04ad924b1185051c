import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.inventory import ItemCreate, ItemUpdate, TxnCreate
from ..services import inventory as svc


router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/items")
def list_items(
    search: Optional[str] = None,
    category: Optional[str] = None,
    low_stock: bool = False,
    is_active: Optional[bool] = True,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.list_items(db, search, category, low_stock, is_active, page, limit)


@router.get("/items/{item_id}")
def get_item(item_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.get_item(db, item_id)


@router.post("/items", status_code=201)
def create_item(body: ItemCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_item(db, body.model_dump(), me.id)


@router.patch("/items/{item_id}")
def update_item(item_id: uuid.UUID, body: ItemUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.update_item(db, item_id, body.model_dump(exclude_unset=True), me.id)


@router.delete("/items/{item_id}")
def delete_item(item_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.delete_item(db, item_id, me.id)


@router.get("/items/{item_id}/transactions")
def item_transactions(item_id: uuid.UUID, page: int = 1, limit: int = 20, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_item_transactions(db, item_id, page, limit)


@router.post("/txns", status_code=201)
def create_transaction(body: TxnCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_transaction(db, body.item_id, body.type, body.quantity, body.note, me)


@router.get("/low-stock")
def low_stock(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_low_stock(db)


@router.get("/low-stock/count")
def low_stock_count(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return {"count": svc.low_stock_count(db)}


@router.get("/export.csv")
def export_csv(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    content = "\ufeff" + svc.export_csv(db)
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=inventory-export.csv"},
    )
