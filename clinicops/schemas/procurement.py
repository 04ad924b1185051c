import uuid
from datetime import date
from typing import List, Optional

from pydantic import EmailStr, Field

from ..services.procurement import PurchaseOrderStatus, RequestPriority
from .common import PatchModel, PlainModel


class VendorCreate(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    payment_terms: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None
    is_active: bool = True


class VendorUpdate(PatchModel):
    not_null = ("name", "code", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    payment_terms: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class RequestItemIn(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(gt=0)
    unit: str = "個"
    estimated_price: float = Field(default=0, ge=0)
    inventory_item_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class PurchaseRequestCreate(PlainModel):
    department: Optional[str] = None
    reason: Optional[str] = None
    priority: RequestPriority = RequestPriority.MEDIUM
    items: List[RequestItemIn] = Field(min_length=1)


class PurchaseRequestReview(PlainModel):
    approved: bool
    note: Optional[str] = None


class OrderItemIn(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(gt=0)
    unit: str = "個"
    unit_price: float = Field(ge=0)
    inventory_item_id: Optional[uuid.UUID] = None


class PurchaseOrderCreate(PlainModel):
    vendor_id: uuid.UUID
    request_id: Optional[uuid.UUID] = None
    expected_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(min_length=1)


class OrderStatusUpdate(PlainModel):
    status: PurchaseOrderStatus


class ReceiptItemIn(PlainModel):
    order_item_id: uuid.UUID
    received_qty: int = Field(ge=0)
    accepted_qty: int = Field(default=0, ge=0)
    rejected_qty: int = Field(default=0, ge=0)
    notes: Optional[str] = None


class GoodsReceiptCreate(PlainModel):
    order_id: uuid.UUID
    notes: Optional[str] = None
    items: List[ReceiptItemIn] = Field(min_length=1)
