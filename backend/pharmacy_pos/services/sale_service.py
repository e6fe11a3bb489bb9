"""Sale cart building and sale queries. Completion lives in SaleOrchestrator."""
import logging
import re
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from pharmacy_pos.core.audit import AuditLog
from pharmacy_pos.core.exceptions import InsufficientStock
from pharmacy_pos.core.ids import new_sale_id
from pharmacy_pos.core.money import ZERO, to_money
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.sale import Sale, SaleStatus, validate_quantity
from pharmacy_pos.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


def sanitize_customer_name(name: str | None) -> str | None:
    """Collapse whitespace and cap length. Empty means walk-in (None)."""
    if not name:
        return None
    name = " ".join(name.strip().split())
    name = re.sub(r"[\x00-\x1f\x7f]", "", name)
    return name[:255] or None


def create_sale(repo: PharmacyRepository, customer_name: str | None, cashier_id: str | None) -> Sale:
    sale = Sale(
        id=new_sale_id(),
        customer_name=sanitize_customer_name(customer_name),
        cashier_id=cashier_id,
    )
    repo.create_sale(sale)
    repo.commit()
    logger.info(f"Created sale {sale.id} for {sale.customer_name or 'walk-in'} by {cashier_id}")
    AuditLog.log_sale_event("created", sale.id, cashier_id=cashier_id)
    return sale


def get_sale(repo: PharmacyRepository, sale_id: str) -> Sale:
    return repo.load_sale(sale_id)


def add_item(
    repo: PharmacyRepository,
    ledger: StockLedger,
    sale_id: str,
    medicine_id: str,
    quantity: int,
    merge: bool = True,
) -> Sale:
    """
    Add `quantity` of a medicine to a pending sale.

    With `merge` (default) a second add of the same medicine grows the
    existing line instead of appending another one. Either way the whole
    quantity for that line must be available right now; nothing is reserved
    until the sale is completed.
    """
    sale = repo.load_sale(sale_id)
    sale.ensure_pending("add_item")
    validate_quantity(quantity)
    medicine = repo.load_medicine(medicine_id)

    existing = sale.find_item(medicine_id) if merge else None
    wanted = quantity + (existing.quantity if existing is not None else 0)
    if not ledger.check_available(medicine_id, wanted):
        raise InsufficientStock(medicine_id, wanted, repo.current_stock(medicine_id))

    if existing is not None:
        sale.set_item_quantity(existing, wanted)
    else:
        sale.add_item(medicine, quantity)
    repo.update_sale(sale)
    repo.commit()
    logger.debug(f"Sale {sale.id}: {medicine.name} x{wanted}, total {sale.total_amount}")
    return sale


def remove_item(repo: PharmacyRepository, sale_id: str, medicine_id: str) -> Sale:
    sale = repo.load_sale(sale_id)
    removed = sale.remove_item(medicine_id)
    repo.update_sale(sale)
    repo.commit()
    logger.debug(f"Sale {sale.id}: removed {removed} line(s) for {medicine_id}")
    return sale


def apply_discount(repo: PharmacyRepository, sale_id: str, amount) -> Sale:
    sale = repo.load_sale(sale_id)
    sale.apply_discount(amount)
    repo.update_sale(sale)
    repo.commit()
    return sale


def cancel_sale(repo: PharmacyRepository, sale_id: str) -> Sale:
    """PENDING -> CANCELLED. No stock effect: nothing was deducted yet."""
    sale = repo.load_sale(sale_id)
    sale.cancel()
    repo.update_sale(sale)
    repo.commit()
    logger.info(f"Cancelled sale {sale.id}")
    AuditLog.log_sale_event("cancelled", sale.id, cashier_id=sale.cashier_id)
    return sale


def validate_sale_item(ledger: StockLedger, medicine_id: str, quantity: int) -> bool:
    return ledger.check_available(medicine_id, quantity)


# ==============================================================================
# QUERIES
# ==============================================================================

def list_sales(
    repo: PharmacyRepository,
    status: str | None = None,
    customer: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Sale]:
    return repo.list_sales(status=status, customer=customer, start=start, end=end)


def sales_by_customer(repo: PharmacyRepository, customer_name: str) -> list[Sale]:
    return repo.list_sales(customer=customer_name)


def sales_by_status(repo: PharmacyRepository, status: SaleStatus | str) -> list[Sale]:
    return repo.list_sales(status=SaleStatus(status).value)


def sales_by_date_range(repo: PharmacyRepository, start: datetime, end: datetime) -> list[Sale]:
    return repo.list_sales(start=start, end=end)


def _today_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    return start, start + timedelta(days=1)


def todays_sales(repo: PharmacyRepository, now: datetime | None = None) -> list[Sale]:
    start, end = _today_bounds(now)
    return repo.list_sales(start=start, end=end)


def _completed_total(sales: list[Sale]) -> Decimal:
    return to_money(sum((to_money(s.final_amount) for s in sales if s.status == SaleStatus.COMPLETED.value), ZERO))


def sales_summary(repo: PharmacyRepository, now: datetime | None = None) -> dict:
    """Totals over COMPLETED sales only: all-time and today."""
    completed = repo.list_sales(status=SaleStatus.COMPLETED.value)
    today = [s for s in todays_sales(repo, now) if s.status == SaleStatus.COMPLETED.value]
    return {
        "total_sales_amount": _completed_total(completed),
        "total_sales_count": len(completed),
        "todays_sales_amount": _completed_total(today),
        "todays_sales_count": len(today),
    }


def top_sales(repo: PharmacyRepository, limit: int = 10) -> list[Sale]:
    return repo.list_sales(
        status=SaleStatus.COMPLETED.value,
        order_by=Sale.final_amount.desc(),
        limit=limit,
    )
