"""FastAPI dependencies: DB session, core services and caller identity.

Identity is opaque: whoever sits in front of the API (login, SSO, a till)
passes the user id in the X-User-Id header. It is used only to attribute
sales and alert dismissals; no permission checks happen here.
"""
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from pharmacy_pos.core.exceptions import BusinessError
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.db.session import SessionLocal
from pharmacy_pos.services.alert_service import AlertService
from pharmacy_pos.services.sale_orchestrator import SaleOrchestrator
from pharmacy_pos.services.stock_ledger import StockLedger


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> PharmacyRepository:
    return PharmacyRepository(db)


def get_alert_service(repo: PharmacyRepository = Depends(get_repository)) -> AlertService:
    return AlertService(repo)


def get_ledger(
    repo: PharmacyRepository = Depends(get_repository),
    alerts: AlertService = Depends(get_alert_service),
) -> StockLedger:
    return StockLedger(repo, alerts)


def get_orchestrator(
    repo: PharmacyRepository = Depends(get_repository),
    ledger: StockLedger = Depends(get_ledger),
) -> SaleOrchestrator:
    return SaleOrchestrator(repo, ledger)


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise BusinessError.unauthorized("missing X-User-Id header")
    return x_user_id.strip()


def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None
