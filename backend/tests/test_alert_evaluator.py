import pytest

from pharmacy_pos.services.alert_evaluator import AlertPriority, evaluate, evaluate_optional, is_low_stock


@pytest.mark.parametrize(
    "stock, expected",
    [
        (0, AlertPriority.HIGH),
        (1, AlertPriority.HIGH),
        (3, AlertPriority.HIGH),  # <= 30%
        (4, AlertPriority.MEDIUM),
        (5, AlertPriority.MEDIUM),
        (6, AlertPriority.MEDIUM),  # <= 60%
        (7, AlertPriority.LOW),
        (9, AlertPriority.LOW),
        (10, AlertPriority.LOW),  # at threshold is still low stock
    ],
)
def test_priority_bands_for_threshold_ten(stock, expected):
    assert evaluate(stock, 10) is expected


def test_no_alert_above_threshold():
    assert not is_low_stock(11, 10)
    assert evaluate_optional(11, 10) is None


def test_empty_shelf_is_high_even_with_zero_threshold():
    assert is_low_stock(0, 0)
    assert evaluate_optional(0, 0) is AlertPriority.HIGH


def test_zero_threshold_with_stock_is_not_low():
    assert evaluate_optional(1, 0) is None
