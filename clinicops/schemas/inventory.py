import uuid
from datetime import date
from typing import Optional

from pydantic import Field

from ..services.inventory import InventoryTxnType
from .common import PatchModel, PlainModel


class ItemCreate(PlainModel):
    name: str = Field(min_length=1, max_length=255)
    sku: Optional[str] = None
    description: Optional[str] = None
    category: str = "OTHER"
    unit: str = "個"
    quantity: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    max_stock: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    expiry_date: Optional[date] = None
    vendor_id: Optional[uuid.UUID] = None
    unit_price: Optional[float] = Field(default=None, ge=0)
    lead_time_days: Optional[int] = Field(default=None, ge=0)


class ItemUpdate(PatchModel):
    not_null = ("name", "category", "unit", "min_stock", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    min_stock: Optional[int] = Field(default=None, ge=0)
    max_stock: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    expiry_date: Optional[date] = None
    is_active: Optional[bool] = None
    vendor_id: Optional[uuid.UUID] = None
    unit_price: Optional[float] = Field(default=None, ge=0)
    lead_time_days: Optional[int] = Field(default=None, ge=0)


class TxnCreate(PlainModel):
    item_id: uuid.UUID
    type: InventoryTxnType
    quantity: int
    note: Optional[str] = None
