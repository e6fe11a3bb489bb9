from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.models.sale import Sale, SaleItem, SaleStatus
from pharmacy_pos.models.alert import LowStockAlert, AlertStatus

__all__ = ["Medicine", "Sale", "SaleItem", "SaleStatus", "LowStockAlert", "AlertStatus"]
