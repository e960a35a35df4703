# wholesale_pos/__init__.py
"""Wholesale point-of-sale: catalog, stock ledger, sales, customer and lender ledgers."""

__version__ = "1.0.0"
