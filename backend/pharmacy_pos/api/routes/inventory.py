"""Inventory: medicine catalog, stock ledger operations and stock/expiry filters."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pharmacy_pos.api.deps import get_ledger, get_optional_user_id, get_repository
from pharmacy_pos.core.config import settings
from pharmacy_pos.core.exceptions import BusinessError
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.schemas.medicine import MedicineCreate, MedicineUpdate, StockChange, StockSet
from pharmacy_pos.services import inventory_service
from pharmacy_pos.services.alert_evaluator import evaluate_optional
from pharmacy_pos.services.stock_ledger import StockLedger

router = APIRouter()


def _medicine_dict(m: Medicine) -> dict:
    priority = evaluate_optional(m.stock, m.threshold)
    return {
        "id": m.id,
        "name": m.name,
        "category": m.category,
        "price": float(m.price),
        "stock": m.stock,
        "threshold": m.threshold,
        "expiry_date": m.expiry_date.isoformat() if m.expiry_date else None,
        "supplier": m.supplier,
        "description": m.description,
        "low_stock": m.is_low_stock(),
        "out_of_stock": m.is_out_of_stock(),
        "expired": m.is_expired(),
        "priority": priority.value if priority else None,
    }


# ==============================================================================
# CATALOG
# ==============================================================================

@router.get("/medicines", response_model=list)
def list_medicines(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    repo: PharmacyRepository = Depends(get_repository),
):
    """Medicine list with search (name, id or category)."""
    if category:
        items = inventory_service.medicines_by_category(repo, category)
    else:
        items = inventory_service.search_medicines(repo, search)
    return [_medicine_dict(m) for m in items]


@router.post("/medicines", response_model=dict, status_code=201)
def create_medicine(item: MedicineCreate, repo: PharmacyRepository = Depends(get_repository)):
    medicine = inventory_service.create_medicine(repo, **item.model_dump())
    return _medicine_dict(medicine)


@router.get("/medicines/{medicine_id}", response_model=dict)
def get_medicine(medicine_id: str, repo: PharmacyRepository = Depends(get_repository)):
    return _medicine_dict(inventory_service.get_medicine(repo, medicine_id))


@router.patch("/medicines/{medicine_id}", response_model=dict)
def update_medicine(medicine_id: str, updates: MedicineUpdate, repo: PharmacyRepository = Depends(get_repository)):
    changes = updates.model_dump(exclude_unset=True)
    if not changes:
        raise BusinessError.bad_request("No fields to update")
    medicine = inventory_service.update_medicine_details(repo, medicine_id, **changes)
    return _medicine_dict(medicine)


# ==============================================================================
# STOCK LEDGER
# ==============================================================================

@router.get("/medicines/{medicine_id}/availability", response_model=dict)
def check_availability(
    medicine_id: str,
    quantity: int = Query(..., description="Units requested"),
    ledger: StockLedger = Depends(get_ledger),
):
    return {"medicine_id": medicine_id, "quantity": quantity, "available": ledger.check_available(medicine_id, quantity)}


@router.post("/medicines/{medicine_id}/stock/add", response_model=dict)
def add_stock(
    medicine_id: str,
    change: StockChange,
    ledger: StockLedger = Depends(get_ledger),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Restock."""
    medicine = ledger.add(medicine_id, change.quantity, reference=change.reference or f"restock:{user_id}")
    return _medicine_dict(medicine)


@router.post("/medicines/{medicine_id}/stock/reduce", response_model=dict)
def reduce_stock(
    medicine_id: str,
    change: StockChange,
    ledger: StockLedger = Depends(get_ledger),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Write-off outside a sale (damage, returns to supplier)."""
    medicine = ledger.reduce(medicine_id, change.quantity, reference=change.reference or f"writeoff:{user_id}")
    return _medicine_dict(medicine)


@router.put("/medicines/{medicine_id}/stock", response_model=dict)
def set_stock(
    medicine_id: str,
    body: StockSet,
    ledger: StockLedger = Depends(get_ledger),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Administrative stock count override."""
    medicine = ledger.set_absolute(medicine_id, body.stock, reference=body.reference or f"stocktake:{user_id}")
    return _medicine_dict(medicine)


# ==============================================================================
# FILTERS & STATISTICS
# ==============================================================================

@router.get("/low-stock", response_model=list)
def get_low_stock(repo: PharmacyRepository = Depends(get_repository)):
    return [_medicine_dict(m) for m in inventory_service.low_stock_medicines(repo)]


@router.get("/out-of-stock", response_model=list)
def get_out_of_stock(repo: PharmacyRepository = Depends(get_repository)):
    return [_medicine_dict(m) for m in inventory_service.out_of_stock_medicines(repo)]


@router.get("/expired", response_model=list)
def get_expired(repo: PharmacyRepository = Depends(get_repository)):
    return [_medicine_dict(m) for m in inventory_service.expired_medicines(repo)]


@router.get("/expiring-soon", response_model=list)
def get_expiring_soon(
    days: int = Query(settings.EXPIRY_WARNING_DAYS, description="Alert for items expiring within N days"),
    repo: PharmacyRepository = Depends(get_repository),
):
    return [_medicine_dict(m) for m in inventory_service.expiring_soon_medicines(repo, days)]


@router.get("/categories", response_model=list)
def list_categories(repo: PharmacyRepository = Depends(get_repository)):
    return inventory_service.categories(repo)


@router.get("/suppliers", response_model=list)
def list_suppliers(repo: PharmacyRepository = Depends(get_repository)):
    return inventory_service.suppliers(repo)


@router.get("/summary", response_model=dict)
def inventory_summary(repo: PharmacyRepository = Depends(get_repository)):
    summary = inventory_service.inventory_summary(repo)
    summary["total_inventory_value"] = float(summary["total_inventory_value"])
    return summary
