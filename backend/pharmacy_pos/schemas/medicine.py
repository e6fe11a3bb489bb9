from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class MedicineCreate(BaseModel):
    name: str
    price: Decimal
    stock: int = 0
    threshold: int = 0
    category: Optional[str] = None
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    description: Optional[str] = None


class MedicineUpdate(BaseModel):
    """Catalog fields only. Stock has its own endpoints."""
    name: Optional[str] = None
    price: Optional[Decimal] = None
    threshold: Optional[int] = None
    category: Optional[str] = None
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    description: Optional[str] = None


class StockChange(BaseModel):
    quantity: int
    reference: Optional[str] = None


class StockSet(BaseModel):
    stock: int
    reference: Optional[str] = None

