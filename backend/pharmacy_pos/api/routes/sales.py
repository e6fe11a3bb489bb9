"""Sales: cart building, orchestrated completion, cancellation and reports."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pharmacy_pos.api.deps import get_current_user_id, get_ledger, get_orchestrator, get_repository
from pharmacy_pos.core.exceptions import BusinessError
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.sale import SaleStatus
from pharmacy_pos.schemas.sale import DiscountApply, SaleCompletion, SaleCreate, SaleItemAdd, SaleRecord
from pharmacy_pos.services import sale_service
from pharmacy_pos.services.sale_orchestrator import Committed, SaleOrchestrator
from pharmacy_pos.services.stock_ledger import StockLedger

router = APIRouter()


def _parse_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    try:
        return SaleStatus(status.upper()).value
    except ValueError:
        raise BusinessError.bad_request(f"Unknown sale status: {status}")


@router.get("", response_model=list[SaleRecord])
def list_sales(
    status: Optional[str] = Query(None),
    customer: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    repo: PharmacyRepository = Depends(get_repository),
):
    return sale_service.list_sales(repo, status=_parse_status(status), customer=customer, start=start, end=end)


@router.get("/summary", response_model=dict)
def sales_summary(repo: PharmacyRepository = Depends(get_repository)):
    """Totals over completed sales (all time and today)."""
    summary = sale_service.sales_summary(repo)
    summary["total_sales_amount"] = float(summary["total_sales_amount"])
    summary["todays_sales_amount"] = float(summary["todays_sales_amount"])
    return summary


@router.get("/today", response_model=list[SaleRecord])
def todays_sales(repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.todays_sales(repo)


@router.get("/top", response_model=list[SaleRecord])
def top_sales(limit: int = Query(10, ge=1, le=100), repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.top_sales(repo, limit)


@router.post("", response_model=SaleRecord, status_code=201)
def create_sale(
    body: SaleCreate,
    repo: PharmacyRepository = Depends(get_repository),
    cashier_id: str = Depends(get_current_user_id),
):
    return sale_service.create_sale(repo, body.customer_name, cashier_id)


@router.get("/{sale_id}", response_model=SaleRecord)
def get_sale(sale_id: str, repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.get_sale(repo, sale_id)


@router.post("/{sale_id}/items", response_model=SaleRecord)
def add_item(
    sale_id: str,
    body: SaleItemAdd,
    repo: PharmacyRepository = Depends(get_repository),
    ledger: StockLedger = Depends(get_ledger),
):
    return sale_service.add_item(repo, ledger, sale_id, body.medicine_id, body.quantity, merge=body.merge)


@router.delete("/{sale_id}/items/{medicine_id}", response_model=SaleRecord)
def remove_item(sale_id: str, medicine_id: str, repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.remove_item(repo, sale_id, medicine_id)


@router.post("/{sale_id}/discount", response_model=SaleRecord)
def apply_discount(sale_id: str, body: DiscountApply, repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.apply_discount(repo, sale_id, body.amount)


@router.post("/{sale_id}/complete", response_model=SaleCompletion)
def complete_sale(sale_id: str, orchestrator: SaleOrchestrator = Depends(get_orchestrator)):
    """
    Deduct stock for every line and mark the sale completed.

    A stock shortfall is not an HTTP error: the body says `succeeded: false`
    with the first failing line, and the sale stays pending.
    """
    outcome = orchestrator.complete_sale(sale_id)
    if isinstance(outcome, Committed):
        return {
            "sale_id": outcome.sale_id,
            "succeeded": True,
            "final_amount": outcome.final_amount,
            "deltas": [
                {"medicine_id": d.medicine_id, "change": d.change, "stock_after": d.stock_after}
                for d in outcome.deltas
            ],
        }
    return {
        "sale_id": outcome.sale_id,
        "succeeded": False,
        "reason": outcome.reason,
        "failed_index": outcome.failed_index,
        "failed_medicine_id": outcome.failed_medicine_id,
        "message": outcome.message,
        "rolled_back": [{"medicine_id": mid, "quantity": qty} for mid, qty in outcome.rolled_back],
    }


@router.post("/{sale_id}/cancel", response_model=SaleRecord)
def cancel_sale(sale_id: str, repo: PharmacyRepository = Depends(get_repository)):
    return sale_service.cancel_sale(repo, sale_id)
