from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class SaleCreate(BaseModel):
    customer_name: Optional[str] = None


class SaleItemAdd(BaseModel):
    medicine_id: str
    quantity: int
    merge: bool = True


class DiscountApply(BaseModel):
    amount: Decimal


class SaleItemRecord(BaseModel):
    medicine_id: str
    medicine_name: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal

    class Config:
        from_attributes = True


class SaleRecord(BaseModel):
    id: str
    customer_name: Optional[str] = None
    cashier_id: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: str
    items: List[SaleItemRecord] = []
    total_amount: Decimal
    discount: Decimal
    final_amount: Decimal

    class Config:
        from_attributes = True


class StockDeltaRecord(BaseModel):
    medicine_id: str
    change: int
    stock_after: int


class RolledBackLine(BaseModel):
    medicine_id: str
    quantity: int


class SaleCompletion(BaseModel):
    """Outcome of POST /sales/{id}/complete. `succeeded` tells the two shapes apart."""
    sale_id: str
    succeeded: bool
    final_amount: Optional[Decimal] = None
    deltas: List[StockDeltaRecord] = []
    reason: Optional[str] = None
    failed_index: Optional[int] = None
    failed_medicine_id: Optional[str] = None
    message: Optional[str] = None
    rolled_back: List[RolledBackLine] = []
