"""Medicine catalog factory and inventory read models.

Stock never changes here: quantities go through StockLedger. The list
queries are pure filters over current Medicine state.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import or_

from pharmacy_pos.core.config import settings
from pharmacy_pos.core.exceptions import InvalidQuantity, ValidationError
from pharmacy_pos.core.ids import new_medicine_id
from pharmacy_pos.core.money import to_money
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.services.alert_service import AlertService

logger = logging.getLogger(__name__)

# Fields a catalog update may touch. `stock` is deliberately absent.
EDITABLE_FIELDS = ("name", "category", "price", "threshold", "expiry_date", "supplier", "description")


def _validate_fields(fields: dict) -> None:
    if "name" in fields and (fields["name"] is None or not str(fields["name"]).strip()):
        raise ValidationError("Medicine name cannot be empty")
    if fields.get("price") is not None and to_money(fields["price"]) < 0:
        raise ValidationError("Price cannot be negative")
    threshold = fields.get("threshold")
    if threshold is not None and (isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0):
        raise InvalidQuantity(threshold, "Threshold cannot be negative")


def create_medicine(
    repo: PharmacyRepository,
    name: str,
    price,
    stock: int = 0,
    threshold: int = 0,
    category: str | None = None,
    expiry_date: date | None = None,
    supplier: str | None = None,
    description: str | None = None,
) -> Medicine:
    """Add a medicine to the catalog with a freshly generated id."""
    _validate_fields({"name": name, "price": price, "threshold": threshold})
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise InvalidQuantity(stock, "Stock cannot be negative")

    medicine = Medicine(
        id=new_medicine_id(),
        name=name.strip(),
        category=category,
        price=to_money(price),
        stock=stock,
        threshold=threshold,
        expiry_date=expiry_date,
        supplier=supplier,
        description=description,
    )
    repo.create_medicine(medicine)
    AlertService(repo).refresh(medicine)
    repo.commit()
    logger.info(f"Added {medicine.name} ({medicine.id}) with stock {stock}")
    return medicine


def update_medicine_details(repo: PharmacyRepository, medicine_id: str, **changes) -> Medicine:
    """Update catalog fields. A threshold change re-evaluates alerts in the same commit."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    _validate_fields(changes)

    medicine = repo.load_medicine(medicine_id)
    for key, value in changes.items():
        if key == "name":
            value = value.strip()
        elif key == "price":
            value = to_money(value)
        setattr(medicine, key, value)
    repo.update_medicine(medicine)
    AlertService(repo).refresh(medicine)
    repo.commit()
    return medicine


def get_medicine(repo: PharmacyRepository, medicine_id: str) -> Medicine:
    return repo.load_medicine(medicine_id)


def search_medicines(repo: PharmacyRepository, term: str | None = None) -> list[Medicine]:
    """Case-insensitive substring match on name, id or category."""
    if not term:
        return repo.list_medicines()
    pattern = f"%{term.strip()}%"
    return repo.list_medicines(
        or_(Medicine.name.ilike(pattern), Medicine.id.ilike(pattern), Medicine.category.ilike(pattern))
    )


def medicines_by_category(repo: PharmacyRepository, category: str) -> list[Medicine]:
    return repo.list_medicines(Medicine.category == category)


# ==============================================================================
# STOCK / EXPIRY FILTERS
# ==============================================================================

def low_stock_medicines(repo: PharmacyRepository) -> list[Medicine]:
    return repo.list_medicines(Medicine.stock <= Medicine.threshold, order_by=Medicine.stock.asc())


def out_of_stock_medicines(repo: PharmacyRepository) -> list[Medicine]:
    return repo.list_medicines(Medicine.stock == 0)


def expired_medicines(repo: PharmacyRepository, today: date | None = None) -> list[Medicine]:
    today = today or date.today()
    return repo.list_medicines(
        Medicine.expiry_date.isnot(None),
        Medicine.expiry_date < today,
        order_by=Medicine.expiry_date.asc(),
    )


def expiring_soon_medicines(repo: PharmacyRepository, days: int | None = None, today: date | None = None) -> list[Medicine]:
    """Expiry before today + days. Already-expired stock is included."""
    days = settings.EXPIRY_WARNING_DAYS if days is None else days
    if days < 0:
        raise ValidationError("Days cannot be negative")
    cutoff = (today or date.today()) + timedelta(days=days)
    return repo.list_medicines(
        Medicine.expiry_date.isnot(None),
        Medicine.expiry_date < cutoff,
        order_by=Medicine.expiry_date.asc(),
    )


# ==============================================================================
# CATALOG STATISTICS
# ==============================================================================

def categories(repo: PharmacyRepository) -> list[str]:
    return repo.distinct_medicine_values(Medicine.category)


def suppliers(repo: PharmacyRepository) -> list[str]:
    return repo.distinct_medicine_values(Medicine.supplier)


def inventory_summary(repo: PharmacyRepository) -> dict:
    return {
        "total_medicines": repo.count_medicines(),
        "low_stock_count": repo.count_medicines(Medicine.stock <= Medicine.threshold),
        "out_of_stock_count": repo.count_medicines(Medicine.stock == 0),
        "total_inventory_value": to_money(Decimal(str(repo.inventory_value() or 0))),
    }
