"""
LowStockAlert: raised when a medicine drops to or below its threshold.
Status flow: ACTIVE -> DISMISSED (user) | RESOLVED (stock back above threshold).
DISMISSED -> ACTIVE via reactivate. RESOLVED is final; a new drop opens a new alert.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from pharmacy_pos.core.exceptions import InvalidStateTransition
from pharmacy_pos.db.base import Base
from pharmacy_pos.services.alert_evaluator import AlertPriority, evaluate


class AlertStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DISMISSED = "DISMISSED"
    RESOLVED = "RESOLVED"


OPEN_STATES = (AlertStatus.ACTIVE.value, AlertStatus.DISMISSED.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LowStockAlert(Base):
    __tablename__ = "low_stock_alerts"

    id = Column(String(64), primary_key=True)
    medicine_id = Column(String(64), ForeignKey("medicines.id"), nullable=False, index=True)
    medicine_name = Column(String(255), nullable=False)
    current_stock = Column(Integer, nullable=False)
    threshold = Column(Integer, nullable=False)
    priority = Column(String(16), nullable=False)  # HIGH | MEDIUM | LOW
    status = Column(String(16), nullable=False, default=AlertStatus.ACTIVE.value, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    dismissed_by = Column(String(128), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("status", AlertStatus.ACTIVE.value)
        kwargs.setdefault("created_at", _utcnow())
        super().__init__(**kwargs)
        self.priority = evaluate(self.current_stock, self.threshold).value

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATES

    @property
    def is_critical(self) -> bool:
        return self.current_stock == 0

    def observe(self, current_stock: int, threshold: int) -> None:
        """Record a new stock reading. Priority always follows the reading."""
        self.current_stock = current_stock
        self.threshold = threshold
        self.priority = evaluate(current_stock, threshold).value
        self.updated_at = _utcnow()

    def dismiss(self, user_id: str) -> None:
        if self.status != AlertStatus.ACTIVE.value:
            raise InvalidStateTransition("Alert", self.id, self.status, AlertStatus.DISMISSED.value)
        self.status = AlertStatus.DISMISSED.value
        self.dismissed_at = _utcnow()
        self.dismissed_by = user_id

    def reactivate(self) -> None:
        if self.status != AlertStatus.DISMISSED.value:
            raise InvalidStateTransition("Alert", self.id, self.status, AlertStatus.ACTIVE.value)
        self.status = AlertStatus.ACTIVE.value
        self.dismissed_at = None
        self.dismissed_by = None

    def resolve(self, current_stock: int) -> None:
        self.current_stock = current_stock
        self.status = AlertStatus.RESOLVED.value
        self.resolved_at = _utcnow()

    def __repr__(self) -> str:
        return f"<LowStockAlert {self.medicine_name} {self.current_stock}/{self.threshold} {self.priority}>"


__all__ = ["LowStockAlert", "AlertStatus", "AlertPriority", "OPEN_STATES"]
