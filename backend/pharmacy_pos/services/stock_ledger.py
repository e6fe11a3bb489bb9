"""
Stock ledger: the only code path that changes Medicine.stock.

Each primitive is its own unit of work: conditional UPDATE, alert refresh,
commit. Two guards keep stock from going negative:
- the UPDATE itself only matches rows with stock >= quantity, which holds
  across processes sharing the database;
- a per-medicine lock serializes callers inside this process, so two
  cashiers reducing the same medicine never interleave.
"""
import logging
import threading
import weakref
from contextlib import contextmanager

from pharmacy_pos.core.audit import AuditLog
from pharmacy_pos.core.exceptions import InsufficientStock, InvalidQuantity, MedicineNotFound
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.models.sale import validate_quantity
from pharmacy_pos.services.alert_service import AlertService

logger = logging.getLogger(__name__)


class _MedicineLocks:
    """
    One lock per medicine id, created on first use.

    Entries are weak: a lock lives only while some caller holds it, so ids
    that are no longer being written (or never existed) do not accumulate.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def get(self, medicine_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(medicine_id)
            if lock is None:
                lock = self._locks[medicine_id] = threading.Lock()
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_medicine_locks = _MedicineLocks()


class StockLedger:
    def __init__(self, repo: PharmacyRepository, alerts: AlertService | None = None):
        self.repo = repo
        self.alerts = alerts or AlertService(repo)

    @contextmanager
    def _unit_of_work(self, medicine_id: str):
        lock = _medicine_locks.get(medicine_id)
        with lock:
            try:
                yield
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

    def check_available(self, medicine_id: str, quantity: int) -> bool:
        """True iff quantity > 0 and the medicine has at least that much stock. No side effects."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return False
        stock = self.repo.current_stock(medicine_id)
        return stock is not None and quantity <= stock

    def reduce(self, medicine_id: str, quantity: int, reference: str | None = None) -> Medicine:
        """Take `quantity` out of stock, or raise InsufficientStock leaving stock untouched."""
        validate_quantity(quantity)
        with self._unit_of_work(medicine_id):
            if not self.repo.decrement_stock_if_available(medicine_id, quantity):
                available = self.repo.current_stock(medicine_id)
                if available is None:
                    raise MedicineNotFound(medicine_id)
                logger.info(f"Reduce rejected for {medicine_id}: requested {quantity}, available {available}")
                raise InsufficientStock(medicine_id, quantity, available)
            medicine = self.repo.load_medicine(medicine_id, refresh=True)
            self.alerts.refresh(medicine)

        AuditLog.log_stock_change("reduce", medicine_id, quantity, medicine.stock + quantity, medicine.stock, reference)
        return medicine

    def add(self, medicine_id: str, quantity: int, reference: str | None = None) -> Medicine:
        """Put `quantity` back into stock (restock, or sale rollback)."""
        validate_quantity(quantity)
        with self._unit_of_work(medicine_id):
            if not self.repo.increment_stock(medicine_id, quantity):
                raise MedicineNotFound(medicine_id)
            medicine = self.repo.load_medicine(medicine_id, refresh=True)
            self.alerts.refresh(medicine)

        AuditLog.log_stock_change("add", medicine_id, quantity, medicine.stock - quantity, medicine.stock, reference)
        return medicine

    def set_absolute(self, medicine_id: str, new_stock: int, reference: str | None = None) -> Medicine:
        """Administrative override of the stock count."""
        if isinstance(new_stock, bool) or not isinstance(new_stock, int) or new_stock < 0:
            raise InvalidQuantity(new_stock, "Stock cannot be negative")
        with self._unit_of_work(medicine_id):
            before = self.repo.current_stock(medicine_id)
            if before is None or not self.repo.set_stock(medicine_id, new_stock):
                raise MedicineNotFound(medicine_id)
            medicine = self.repo.load_medicine(medicine_id, refresh=True)
            self.alerts.refresh(medicine)

        logger.info(f"Stock for {medicine_id} set {before} -> {new_stock}")
        AuditLog.log_stock_change("set", medicine_id, new_stock, before, new_stock, reference)
        return medicine
