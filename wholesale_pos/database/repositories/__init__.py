# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from wholesale_pos.database.repositories import (
        # Catalog & stock
        ProductsRepo, Product, SaleMode, StockEntriesRepo, StockEntry,
        # Sales
        SalesRepo, Sale, SaleItem,
        # Customers / lenders
        CustomersRepo, Customer, Payment, LendersRepo, Lender,
        # Reporting
        DashboardRepo, SalesHistoryRepo,
    )

Module-level helpers (adjust_stock, add_debt, insert_sale) are meant to be
called inside an open transaction and are imported from their modules.
"""

# ---------------- Catalog ------------------
from .products_repo import ProductsRepo, Product, SaleMode
from .stock_entries_repo import StockEntriesRepo, StockEntry

# ------------------ Sales ------------------
from .sales_repo import SalesRepo, Sale, SaleItem

# ---------------- Customers ----------------
from .customers_repo import CustomersRepo, Customer, Payment, CustomerStatement

# ----------------- Lenders -----------------
from .lenders_repo import (
    LendersRepo,
    Lender,
    BorrowingInstance,
    DebtorPayment,
    ProductQty,
)

# ---------------- Reporting ----------------
from .dashboard_repo import DashboardRepo, DashboardStats
from .reporting_repo import SalesHistoryRepo, SalesSummary

# ------------------ Auth -------------------
from .login_repo import LoginRepo

__all__ = [
    # products_repo
    "ProductsRepo",
    "Product",
    "SaleMode",
    # stock_entries_repo
    "StockEntriesRepo",
    "StockEntry",
    # sales_repo
    "SalesRepo",
    "Sale",
    "SaleItem",
    # customers_repo
    "CustomersRepo",
    "Customer",
    "Payment",
    "CustomerStatement",
    # lenders_repo
    "LendersRepo",
    "Lender",
    "BorrowingInstance",
    "DebtorPayment",
    "ProductQty",
    # reporting
    "DashboardRepo",
    "DashboardStats",
    "SalesHistoryRepo",
    "SalesSummary",
    # login_repo
    "LoginRepo",
]
