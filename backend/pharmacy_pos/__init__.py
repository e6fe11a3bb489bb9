"""Pharmacy point-of-sale core: stock ledger, sales and low-stock alerts."""

__version__ = "0.1.0"
