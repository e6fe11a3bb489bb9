"""
Complete-sale protocol.

Stock for each line is deducted through StockLedger.reduce, one medicine
at a time, each in its own commit. If line k cannot be deducted, lines
0..k-1 are given back with StockLedger.add (compensating actions, newest
first) and the sale stays PENDING so the cashier can fix the cart, retry
or cancel. Only when every line is deducted does the sale move to
COMPLETED.

This is not a two-phase commit: between the first reduce and the final
commit other callers can observe the intermediate stock levels. What it
guarantees is that stock ends up deducted only for sales that completed,
or else the failure is reported as InventoryInconsistent.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from pharmacy_pos.core.audit import AuditLog
from pharmacy_pos.core.exceptions import (
    EmptySale,
    InsufficientStock,
    InvalidStateTransition,
    InventoryInconsistent,
    MedicineNotFound,
    PersistenceFailure,
    PharmacyError,
    SaleNotFound,
)
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.sale import Sale, SaleStatus
from pharmacy_pos.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

REASON_INSUFFICIENT_STOCK = "insufficient_stock"
REASON_MEDICINE_NOT_FOUND = "medicine_not_found"


@dataclass(frozen=True)
class StockDelta:
    medicine_id: str
    change: int
    stock_after: int


@dataclass(frozen=True)
class Committed:
    sale_id: str
    final_amount: Decimal
    deltas: tuple[StockDelta, ...] = field(default_factory=tuple)

    succeeded = True


@dataclass(frozen=True)
class Failed:
    sale_id: str
    reason: str
    failed_index: int
    failed_medicine_id: str
    message: str
    # (medicine_id, quantity) deducted before the failure and given back
    rolled_back: tuple[tuple[str, int], ...] = field(default_factory=tuple)

    succeeded = False


class SaleOrchestrator:
    def __init__(self, repo: PharmacyRepository, ledger: StockLedger | None = None):
        self.repo = repo
        self.ledger = ledger or StockLedger(repo)

    def complete_sale(self, sale_id: str) -> Committed | Failed:
        """
        Deduct stock for every line and mark the sale COMPLETED.

        Raises SaleNotFound, InvalidStateTransition (not PENDING) and
        EmptySale before touching stock. Stock shortfalls and vanished
        medicines come back as Failed. If the sale itself cannot be marked
        completed (store failure, or it was completed, cancelled or emptied
        concurrently) every deduction is given back and that error
        propagates; InventoryInconsistent if the compensation itself could
        not be applied.
        """
        sale = self.repo.load_sale(sale_id)
        sale.ensure_pending(SaleStatus.COMPLETED.value)
        if not sale.items:
            raise EmptySale(sale_id)

        lines = [(item.medicine_id, item.quantity) for item in sale.items]
        reference = f"sale:{sale_id}"
        reduced: list[tuple[str, int]] = []
        deltas: list[StockDelta] = []

        for index, (medicine_id, quantity) in enumerate(lines):
            try:
                medicine = self.ledger.reduce(medicine_id, quantity, reference=reference)
            except (InsufficientStock, MedicineNotFound) as e:
                reason = REASON_INSUFFICIENT_STOCK if isinstance(e, InsufficientStock) else REASON_MEDICINE_NOT_FOUND
                logger.warning(f"Sale {sale_id} line {index} ({medicine_id} x{quantity}) failed: {e}")
                self._compensate(sale_id, reduced)
                AuditLog.log_sale_event(
                    "completion_failed",
                    sale_id,
                    cashier_id=sale.cashier_id,
                    details={"reason": reason, "index": index, "medicine_id": medicine_id},
                )
                return Failed(
                    sale_id=sale_id,
                    reason=reason,
                    failed_index=index,
                    failed_medicine_id=medicine_id,
                    message=str(e),
                    rolled_back=tuple(reversed(reduced)),
                )
            except PersistenceFailure:
                logger.error(f"Sale {sale_id}: store failed while deducting {medicine_id}; rolling back")
                self._compensate(sale_id, reduced)
                raise
            reduced.append((medicine_id, quantity))
            deltas.append(StockDelta(medicine_id, -quantity, medicine.stock))

        try:
            sale = self._finalize(sale_id)
        except PharmacyError as e:
            logger.error(f"Sale {sale_id}: could not mark completed ({type(e).__name__}: {e}); rolling back stock")
            self.repo.rollback()
            self._compensate(sale_id, reduced)
            raise

        logger.info(f"Completed sale {sale_id}: {len(lines)} line(s), final {sale.final_amount}")
        AuditLog.log_sale_event(
            "completed",
            sale_id,
            cashier_id=sale.cashier_id,
            details={"final_amount": str(sale.final_amount), "lines": len(lines)},
        )
        return Committed(sale_id=sale_id, final_amount=sale.final_amount, deltas=tuple(deltas))

    def _finalize(self, sale_id: str) -> Sale:
        """
        PENDING -> COMPLETED as a conditional write.

        The sale is re-read from the store because another cashier may have
        completed or cancelled it while stock was being deducted. The status
        UPDATE only matches a row that is still PENDING, so of two racing
        completions exactly one wins; the loser raises InvalidStateTransition.
        """
        sale = self.repo.load_sale(sale_id, refresh=True)
        sale.complete()
        won = self.repo.transition_sale_status(
            sale_id,
            SaleStatus.PENDING.value,
            SaleStatus.COMPLETED.value,
            completed_at=sale.completed_at,
        )
        if not won:
            current = self.repo.sale_status(sale_id)
            if current is None:
                raise SaleNotFound(sale_id)
            raise InvalidStateTransition("Sale", sale_id, current, SaleStatus.COMPLETED.value)
        self.repo.commit()
        return sale

    def _compensate(self, sale_id: str, reduced: list[tuple[str, int]]) -> None:
        """Give back every deduction, newest first. Tries all of them before reporting."""
        unrestored: list[tuple[str, int]] = []
        first_error: Exception | None = None
        for medicine_id, quantity in reversed(reduced):
            try:
                self.ledger.add(medicine_id, quantity, reference=f"rollback:{sale_id}")
            except PharmacyError as e:
                logger.critical(f"Rollback of sale {sale_id} could not restore {medicine_id} x{quantity}: {e}")
                AuditLog.log_compensation(sale_id, medicine_id, quantity, success=False, reason=str(e))
                unrestored.append((medicine_id, quantity))
                first_error = first_error or e
                continue
            AuditLog.log_compensation(sale_id, medicine_id, quantity, success=True)

        if unrestored:
            raise InventoryInconsistent(sale_id, unrestored, cause=first_error) from first_error
