"""
Low-stock alert lifecycle. Called by StockLedger after every stock change,
and by the sweep for a full pass over the catalog.

Policy:
- stock <= threshold and no open alert  -> new ACTIVE alert
- stock <= threshold and an open alert  -> reading + priority updated
  (a DISMISSED alert stays dismissed)
- stock > threshold                     -> open alerts become RESOLVED

`refresh` only stages changes in the session; whoever changed the stock
commits them together with the stock change, so an alert is never older
than the last committed stock value.
"""
import logging

from pharmacy_pos.core.audit import AuditLog
from pharmacy_pos.core.exceptions import AlertNotFound
from pharmacy_pos.core.ids import new_alert_id
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.alert import LowStockAlert
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.services.alert_evaluator import is_low_stock

logger = logging.getLogger(__name__)


class AlertService:
    def __init__(self, repo: PharmacyRepository):
        self.repo = repo

    def refresh(self, medicine: Medicine) -> LowStockAlert | None:
        """Bring alert state in line with `medicine`. Returns the open alert, if any."""
        open_alerts = self.repo.open_alerts_for(medicine.id)

        if not is_low_stock(medicine.stock, medicine.threshold):
            for alert in open_alerts:
                alert.resolve(medicine.stock)
                logger.info(f"Resolved low-stock alert {alert.id} for {medicine.name} (stock {medicine.stock})")
            return None

        if open_alerts:
            current = open_alerts[-1]
            for alert in open_alerts:
                alert.observe(medicine.stock, medicine.threshold)
            return current

        alert = LowStockAlert(
            id=new_alert_id(),
            medicine_id=medicine.id,
            medicine_name=medicine.name,
            current_stock=medicine.stock,
            threshold=medicine.threshold,
        )
        self.repo.create_alert(alert)
        logger.info(
            f"Low stock: {medicine.name} at {medicine.stock}/{medicine.threshold} -> {alert.priority} alert {alert.id}"
        )
        return alert

    def sweep(self) -> int:
        """Re-evaluate every medicine and commit. Returns number of open alerts afterwards."""
        open_count = 0
        for medicine in self.repo.list_medicines():
            if self.refresh(medicine) is not None:
                open_count += 1
        self.repo.commit()
        logger.debug(f"Alert sweep done, {open_count} open alerts")
        return open_count

    def list_alerts(self, status: str | None = None) -> list[LowStockAlert]:
        return self.repo.list_alerts(status=status)

    def _load(self, alert_id: str) -> LowStockAlert:
        alert = self.repo.get_alert(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert

    def dismiss(self, alert_id: str, user_id: str) -> LowStockAlert:
        alert = self._load(alert_id)
        alert.dismiss(user_id)
        self.repo.commit()
        AuditLog.log_alert_event("dismissed", alert.id, alert.medicine_id, user_id=user_id)
        return alert

    def reactivate(self, alert_id: str, user_id: str | None = None) -> LowStockAlert:
        alert = self._load(alert_id)
        alert.reactivate()
        self.repo.commit()
        AuditLog.log_alert_event("reactivated", alert.id, alert.medicine_id, user_id=user_id)
        return alert
