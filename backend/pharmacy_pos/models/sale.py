"""
Sale aggregate: one transaction's line items, totals and status.

Status flow: PENDING -> COMPLETED | CANCELLED. REFUNDED is declared for the
refund workflow but nothing in this package moves a sale there.

Line items, discount and status change only while PENDING, and every such
change recomputes total_amount / final_amount before returning. The
aggregate never touches stock; SaleOrchestrator does that.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from pharmacy_pos.core.exceptions import EmptySale, InvalidQuantity, InvalidStateTransition, ValidationError
from pharmacy_pos.core.money import ZERO, to_money
from pharmacy_pos.db.base import Base


class SaleStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


TERMINAL_STATES = {SaleStatus.COMPLETED, SaleStatus.CANCELLED, SaleStatus.REFUNDED}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_quantity(quantity) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity, "Quantity must be a positive integer")
    return quantity


class SaleItem(Base):
    """
    One cart line. Name and unit price are copied from the medicine when the
    line is added so receipts show the price actually paid.
    """
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(String(64), ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    medicine_id = Column(String(64), ForeignKey("medicines.id"), nullable=False, index=True)
    medicine_name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")

    def set_quantity(self, quantity: int) -> None:
        self.quantity = validate_quantity(quantity)
        self.subtotal = to_money(to_money(self.unit_price) * quantity)

    def __repr__(self) -> str:
        return f"<SaleItem {self.medicine_id} x{self.quantity} @ {self.unit_price}>"


class Sale(Base):
    __tablename__ = "sales"

    id = Column(String(64), primary_key=True)
    customer_name = Column(String(255), nullable=True, index=True)
    cashier_id = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    final_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(32), nullable=False, default=SaleStatus.PENDING.value, index=True)

    items = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status", SaleStatus.PENDING.value)
        kwargs.setdefault("discount", ZERO)
        kwargs.setdefault("created_at", _utcnow())
        super().__init__(**kwargs)
        self.recalculate()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        return self.status == SaleStatus.PENDING.value

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATES}

    def find_item(self, medicine_id: str) -> SaleItem | None:
        for item in self.items:
            if item.medicine_id == medicine_id:
                return item
        return None

    def quantities_by_medicine(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for item in self.items:
            totals[item.medicine_id] = totals.get(item.medicine_id, 0) + item.quantity
        return totals

    # ------------------------------------------------------------------
    # Mutations (PENDING only)
    # ------------------------------------------------------------------

    def ensure_pending(self, operation: str) -> None:
        if not self.is_pending:
            raise InvalidStateTransition("Sale", self.id, self.status, operation)

    def recalculate(self) -> None:
        total = sum((to_money(item.subtotal) for item in self.items), ZERO)
        self.total_amount = to_money(total)
        self.final_amount = max(ZERO, to_money(total - to_money(self.discount)))

    def add_item(self, medicine, quantity: int) -> SaleItem:
        """Append a line for `medicine`. Stock availability is the caller's check."""
        self.ensure_pending("add_item")
        validate_quantity(quantity)
        next_position = max((item.position for item in self.items), default=-1) + 1
        item = SaleItem(
            medicine_id=medicine.id,
            medicine_name=medicine.name,
            unit_price=to_money(medicine.price),
            position=next_position,
        )
        item.set_quantity(quantity)
        self.items.append(item)
        self.recalculate()
        return item

    def set_item_quantity(self, item: SaleItem, quantity: int) -> None:
        self.ensure_pending("set_item_quantity")
        if item not in self.items:
            raise ValidationError(f"Line item {item.medicine_id} does not belong to sale {self.id}")
        item.set_quantity(quantity)
        self.recalculate()

    def remove_item(self, medicine_id: str) -> int:
        """Drop every line for `medicine_id`. Returns how many lines went."""
        self.ensure_pending("remove_item")
        before = len(self.items)
        self.items = [item for item in self.items if item.medicine_id != medicine_id]
        self.recalculate()
        return before - len(self.items)

    def apply_discount(self, amount) -> None:
        self.ensure_pending("apply_discount")
        amount = to_money(amount)
        if amount < 0:
            raise ValidationError("Discount cannot be negative")
        self.discount = amount
        self.recalculate()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def complete(self) -> None:
        self.ensure_pending(SaleStatus.COMPLETED.value)
        if not self.items:
            raise EmptySale(self.id)
        self.recalculate()
        self.status = SaleStatus.COMPLETED.value
        self.completed_at = _utcnow()

    def cancel(self) -> None:
        self.ensure_pending(SaleStatus.CANCELLED.value)
        self.status = SaleStatus.CANCELLED.value

    def __repr__(self) -> str:
        return f"<Sale {self.id} {self.status} final={self.final_amount}>"
