"""Identifier factory. Ids are assigned once, at creation, and never change."""
import uuid

MEDICINE_PREFIX = "MED"
SALE_PREFIX = "INV"
ALERT_PREFIX = "ALT"


def new_id(prefix: str) -> str:
    """Collision-resistant id such as ``MED-3f2a...`` (uuid4, 32 hex chars)."""
    return f"{prefix}-{uuid.uuid4().hex}"


def new_medicine_id() -> str:
    return new_id(MEDICINE_PREFIX)


def new_sale_id() -> str:
    return new_id(SALE_PREFIX)


def new_alert_id() -> str:
    return new_id(ALERT_PREFIX)
