"""
Persistence collaborator for the sale/inventory core.

Wraps one SQLAlchemy Session. Creation and update are separate, explicit
calls; the repository never guesses insert-vs-update. Any SQLAlchemy error
comes back as PersistenceFailure after the session is rolled back.

Stock primitives are single conditional UPDATE statements so the
"enough stock?" check and the decrement happen in one step at the store.
"""
import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy_pos.core.exceptions import MedicineNotFound, PersistenceFailure, SaleNotFound
from pharmacy_pos.models.alert import OPEN_STATES, LowStockAlert
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.models.sale import Sale

logger = logging.getLogger(__name__)


class PharmacyRepository:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Persistence failure during {operation}: {type(e).__name__}: {e}")
            self.db.rollback()
            raise PersistenceFailure(f"{operation} failed") from e

    def commit(self) -> None:
        with self._guard("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ------------------------------------------------------------------
    # Medicines
    # ------------------------------------------------------------------

    def get_medicine(self, medicine_id: str, refresh: bool = False) -> Medicine | None:
        with self._guard("load_medicine"):
            return self.db.get(Medicine, medicine_id, populate_existing=refresh)

    def load_medicine(self, medicine_id: str, refresh: bool = False) -> Medicine:
        medicine = self.get_medicine(medicine_id, refresh=refresh)
        if medicine is None:
            raise MedicineNotFound(medicine_id)
        return medicine

    def create_medicine(self, medicine: Medicine) -> Medicine:
        with self._guard("create_medicine"):
            self.db.add(medicine)
            self.db.flush()
        return medicine

    def update_medicine(self, medicine: Medicine) -> Medicine:
        with self._guard("update_medicine"):
            self.db.flush()
        return medicine

    def list_medicines(self, *criteria, order_by=None) -> list[Medicine]:
        with self._guard("list_medicines"):
            stmt = select(Medicine).where(*criteria).order_by(order_by if order_by is not None else Medicine.name)
            return list(self.db.scalars(stmt))

    def count_medicines(self, *criteria) -> int:
        with self._guard("count_medicines"):
            return self.db.scalar(select(func.count()).select_from(Medicine).where(*criteria)) or 0

    def distinct_medicine_values(self, column) -> list[str]:
        with self._guard("distinct_medicine_values"):
            stmt = select(column).where(column.isnot(None)).distinct().order_by(column)
            return list(self.db.scalars(stmt))

    def inventory_value(self):
        with self._guard("inventory_value"):
            return self.db.scalar(select(func.coalesce(func.sum(Medicine.price * Medicine.stock), 0)))

    # ------------------------------------------------------------------
    # Stock primitives
    # ------------------------------------------------------------------

    def decrement_stock_if_available(self, medicine_id: str, quantity: int) -> bool:
        """UPDATE ... SET stock = stock - q WHERE id = :id AND stock >= q. False if no row matched."""
        with self._guard("decrement_stock"):
            result = self.db.execute(
                update(Medicine)
                .where(Medicine.id == medicine_id, Medicine.stock >= quantity)
                .values(stock=Medicine.stock - quantity)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def increment_stock(self, medicine_id: str, quantity: int) -> bool:
        with self._guard("increment_stock"):
            result = self.db.execute(
                update(Medicine)
                .where(Medicine.id == medicine_id)
                .values(stock=Medicine.stock + quantity)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def set_stock(self, medicine_id: str, new_stock: int) -> bool:
        with self._guard("set_stock"):
            result = self.db.execute(
                update(Medicine)
                .where(Medicine.id == medicine_id)
                .values(stock=new_stock)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def current_stock(self, medicine_id: str) -> int | None:
        with self._guard("current_stock"):
            return self.db.scalar(select(Medicine.stock).where(Medicine.id == medicine_id))

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def get_sale(self, sale_id: str, refresh: bool = False) -> Sale | None:
        with self._guard("load_sale"):
            return self.db.get(Sale, sale_id, populate_existing=refresh)

    def load_sale(self, sale_id: str, refresh: bool = False) -> Sale:
        sale = self.get_sale(sale_id, refresh=refresh)
        if sale is None:
            raise SaleNotFound(sale_id)
        return sale

    def create_sale(self, sale: Sale) -> Sale:
        with self._guard("create_sale"):
            self.db.add(sale)
            self.db.flush()
        return sale

    def update_sale(self, sale: Sale) -> Sale:
        with self._guard("update_sale"):
            self.db.flush()
        return sale

    def transition_sale_status(self, sale_id: str, expected: str, target: str, **values) -> bool:
        """UPDATE sales SET status = target ... WHERE id = :id AND status = expected. False if no row matched."""
        with self._guard("transition_sale_status"):
            result = self.db.execute(
                update(Sale)
                .where(Sale.id == sale_id, Sale.status == expected)
                .values(status=target, **values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def sale_status(self, sale_id: str) -> str | None:
        with self._guard("sale_status"):
            return self.db.scalar(select(Sale.status).where(Sale.id == sale_id))

    def list_sales(
        self,
        status: str | None = None,
        customer: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        order_by=None,
        limit: int | None = None,
    ) -> list[Sale]:
        stmt = select(Sale)
        if status:
            stmt = stmt.where(Sale.status == status)
        if customer:
            stmt = stmt.where(Sale.customer_name.ilike(f"%{customer}%"))
        if start is not None:
            stmt = stmt.where(Sale.created_at >= start)
        if end is not None:
            stmt = stmt.where(Sale.created_at < end)
        stmt = stmt.order_by(order_by if order_by is not None else Sale.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        with self._guard("list_sales"):
            return list(self.db.scalars(stmt))

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def get_alert(self, alert_id: str) -> LowStockAlert | None:
        with self._guard("load_alert"):
            return self.db.get(LowStockAlert, alert_id)

    def open_alerts_for(self, medicine_id: str) -> list[LowStockAlert]:
        with self._guard("open_alerts_for"):
            stmt = (
                select(LowStockAlert)
                .where(LowStockAlert.medicine_id == medicine_id, LowStockAlert.status.in_(OPEN_STATES))
                .order_by(LowStockAlert.created_at)
            )
            return list(self.db.scalars(stmt))

    def create_alert(self, alert: LowStockAlert) -> LowStockAlert:
        with self._guard("create_alert"):
            self.db.add(alert)
            self.db.flush()
        return alert

    def list_alerts(self, status: str | None = None) -> list[LowStockAlert]:
        stmt = select(LowStockAlert)
        if status:
            stmt = stmt.where(LowStockAlert.status == status)
        stmt = stmt.order_by(LowStockAlert.current_stock.asc(), LowStockAlert.created_at.desc())
        with self._guard("list_alerts"):
            return list(self.db.scalars(stmt))
