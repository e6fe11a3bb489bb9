"""
Low-stock priority classification.

Pure functions only: no database access, no side effects. Callers must
check `is_low_stock` before asking for a priority; above the threshold
there is no alert and therefore no priority.
"""
import enum

HIGH_RATIO = 0.3
MEDIUM_RATIO = 0.6


class AlertPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


def is_low_stock(current_stock: int, threshold: int) -> bool:
    return current_stock <= threshold


def evaluate(current_stock: int, threshold: int) -> AlertPriority:
    """
    threshold=10: stock 0 -> HIGH, 3 -> HIGH, 5 -> MEDIUM, 9 -> LOW.
    """
    if current_stock == 0:
        return AlertPriority.HIGH
    if current_stock <= threshold * HIGH_RATIO:
        return AlertPriority.HIGH
    if current_stock <= threshold * MEDIUM_RATIO:
        return AlertPriority.MEDIUM
    return AlertPriority.LOW


def evaluate_optional(current_stock: int, threshold: int) -> AlertPriority | None:
    """Priority, or None when the medicine is not low on stock."""
    if not is_low_stock(current_stock, threshold):
        return None
    return evaluate(current_stock, threshold)
