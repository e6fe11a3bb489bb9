"""
Audit logging for stock and sale events.

Every stock mutation, sale transition, compensation step and alert
dismissal is written as one JSON line to the "audit" logger, so the
inventory history can be reconstructed independently of the database.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for inventory-affecting events."""

    @staticmethod
    def log_stock_change(
        action: str,  # "reduce", "add", "set"
        medicine_id: str,
        quantity: int,
        before: int,
        after: int,
        reference: Optional[str] = None,
    ):
        """
        Usage:
            AuditLog.log_stock_change("reduce", "MED-...", 3, 10, 7, reference="sale:SALE-...")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"stock.{action}",
            "medicine_id": medicine_id,
            "quantity": quantity,
            "before": before,
            "after": after,
        }
        if reference:
            log_entry["reference"] = reference

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_sale_event(
        action: str,  # "created", "completed", "cancelled", "completion_failed"
        sale_id: str,
        cashier_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": f"sale.{action}",
            "sale_id": sale_id,
            "cashier_id": cashier_id,
        }
        if details:
            log_entry["details"] = details

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_compensation(
        sale_id: str,
        medicine_id: str,
        quantity: int,
        success: bool,
        reason: str = "",
    ):
        """
        One rollback step of a failed sale completion.

        A failed step means stock was taken and not given back, so it is
        logged at CRITICAL.
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "sale.compensation",
            "sale_id": sale_id,
            "medicine_id": medicine_id,
            "quantity": quantity,
            "success": success,
        }
        if reason and not success:
            log_entry["reason"] = reason

        if success:
            audit_logger.info(json.dumps(log_entry))
        else:
            audit_logger.critical(json.dumps(log_entry))

    @staticmethod
    def log_alert_event(
        action: str,  # "dismissed", "reactivated"
        alert_id: str,
        medicine_id: str,
        user_id: Optional[str] = None,
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": f"alert.{action}",
            "alert_id": alert_id,
            "medicine_id": medicine_id,
            "user_id": user_id,
        }

        audit_logger.info(json.dumps(log_entry))
