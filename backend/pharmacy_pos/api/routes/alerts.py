"""Low-stock alerts: list, dismiss, reactivate, sweep."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pharmacy_pos.api.deps import get_alert_service, get_current_user_id, get_optional_user_id
from pharmacy_pos.core.exceptions import BusinessError
from pharmacy_pos.models.alert import AlertStatus
from pharmacy_pos.schemas.alert import AlertRecord
from pharmacy_pos.services.alert_service import AlertService

router = APIRouter()


@router.get("", response_model=list[AlertRecord])
def list_alerts(
    status: Optional[str] = Query("ACTIVE", description="ACTIVE, DISMISSED, RESOLVED or ALL"),
    alerts: AlertService = Depends(get_alert_service),
):
    """Alerts, lowest stock first."""
    if status and status.upper() == "ALL":
        return alerts.list_alerts()
    try:
        wanted = AlertStatus((status or "ACTIVE").upper()).value
    except ValueError:
        raise BusinessError.bad_request(f"Unknown alert status: {status}")
    return alerts.list_alerts(status=wanted)


@router.post("/{alert_id}/dismiss", response_model=AlertRecord)
def dismiss_alert(
    alert_id: str,
    alerts: AlertService = Depends(get_alert_service),
    user_id: str = Depends(get_current_user_id),
):
    return alerts.dismiss(alert_id, user_id)


@router.post("/{alert_id}/reactivate", response_model=AlertRecord)
def reactivate_alert(
    alert_id: str,
    alerts: AlertService = Depends(get_alert_service),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    return alerts.reactivate(alert_id, user_id)


@router.post("/sweep", response_model=dict)
def sweep_alerts(alerts: AlertService = Depends(get_alert_service)):
    """Re-evaluate every medicine now instead of waiting for the background sweep."""
    return {"open_alerts": alerts.sweep()}
