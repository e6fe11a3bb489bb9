"""
Domain error taxonomy and its mapping to HTTP responses.

Domain code raises the `PharmacyError` subclasses below. Nothing in the
core retries automatically; callers decide what to do with each error.

HTTP mapping lives in `http_status_for` / `BusinessError` so routes and the
exception handler share one place for status codes and safe messages.
"""
import logging

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    """Base class for every error raised by the sale/inventory core."""


# ----------------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------------

class ValidationError(PharmacyError):
    """Bad input, rejected before any persisted state is touched."""


class InvalidQuantity(ValidationError):
    def __init__(self, quantity, message: str | None = None):
        self.quantity = quantity
        super().__init__(message or f"Invalid quantity: {quantity}")


class EmptySale(ValidationError):
    def __init__(self, sale_id: str | None = None):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} has no line items" if sale_id else "Sale has no line items")


# ----------------------------------------------------------------------------
# Stock
# ----------------------------------------------------------------------------

class InsufficientStock(PharmacyError):
    """Recoverable: the caller can correct the cart and retry."""

    def __init__(self, medicine_id: str, requested: int, available: int | None = None):
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available
        detail = f"Insufficient stock for {medicine_id}: requested {requested}"
        if available is not None:
            detail += f", available {available}"
        super().__init__(detail)


# ----------------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------------

class NotFoundError(PharmacyError):
    resource = "Resource"

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"{self.resource} {resource_id} not found")


class MedicineNotFound(NotFoundError):
    resource = "Medicine"


class SaleNotFound(NotFoundError):
    resource = "Sale"


class AlertNotFound(NotFoundError):
    resource = "Alert"


# ----------------------------------------------------------------------------
# State machine
# ----------------------------------------------------------------------------

class InvalidStateTransition(PharmacyError):
    """Usage error: mutating or transitioning a sale/alert from the wrong status."""

    def __init__(self, entity: str, entity_id: str | None, current: str, target: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(f"{entity} {entity_id} cannot go from '{current}' to '{target}'")


# ----------------------------------------------------------------------------
# Persistence
# ----------------------------------------------------------------------------

class PersistenceFailure(PharmacyError):
    """The store rejected a read or write. Never swallowed."""


class InventoryInconsistent(PersistenceFailure):
    """
    A compensating stock restore failed part-way through a sale rollback.

    Stock for `unrestored` items was deducted and NOT given back; somebody
    has to reconcile those quantities by hand.
    """

    def __init__(self, sale_id: str, unrestored: list[tuple[str, int]], cause: Exception | None = None):
        self.sale_id = sale_id
        self.unrestored = unrestored
        self.cause = cause
        items = ", ".join(f"{mid} x{qty}" for mid, qty in unrestored)
        super().__init__(
            f"Inventory may be inconsistent after failed rollback of sale {sale_id}; "
            f"manual reconciliation required for: {items}"
        )


# ----------------------------------------------------------------------------
# HTTP mapping
# ----------------------------------------------------------------------------

def http_status_for(exc: PharmacyError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (InsufficientStock, InvalidStateTransition)):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def public_detail(exc: PharmacyError) -> str:
    """Message safe to show to the client. Store errors stay in the log."""
    if isinstance(exc, InventoryInconsistent):
        return "Inventory may be inconsistent; manual reconciliation required."
    if isinstance(exc, PersistenceFailure):
        return "An internal error occurred. Please try again later."
    return str(exc)


class BusinessError:
    """Request-level HTTP errors with safe (non-leaky) messages."""

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input problems the caller can fix.
        Examples: "Quantity must be positive", "Discount cannot be negative"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        logger.warning(f"Missing identity: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identity required",
        )

