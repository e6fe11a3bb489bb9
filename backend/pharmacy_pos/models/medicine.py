from datetime import date, timedelta

from sqlalchemy import CheckConstraint, Column, Date, Integer, Numeric, String, Text

from pharmacy_pos.db.base import Base


class Medicine(Base):
    """
    Pharmacy catalog entry plus its authoritative stock count.

    INVARIANT:
    - stock is never negative (also enforced by a CHECK constraint)
    - once sales are in play, stock changes only through StockLedger,
      never by assigning `stock` directly

    The predicates below are derived from current state and never stored.
    """
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_medicines_stock_non_negative"),
        CheckConstraint("threshold >= 0", name="ck_medicines_threshold_non_negative"),
        CheckConstraint("price >= 0", name="ck_medicines_price_non_negative"),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(128), nullable=True, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)  # per unit
    stock = Column(Integer, nullable=False, default=0)
    threshold = Column(Integer, nullable=False, default=0)  # reorder level
    expiry_date = Column(Date, nullable=True)
    supplier = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    def is_out_of_stock(self) -> bool:
        return self.stock == 0

    def is_low_stock(self) -> bool:
        return self.stock <= self.threshold

    def is_expired(self, today: date | None = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or date.today())

    def is_expiring_soon(self, days: int, today: date | None = None) -> bool:
        # Includes already-expired stock: anything before today + days.
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or date.today()) + timedelta(days=days)

    def __repr__(self) -> str:
        return f"<Medicine {self.id} {self.name!r} stock={self.stock}>"
