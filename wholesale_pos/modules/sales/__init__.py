# wholesale_pos/modules/sales/__init__.py
"""
Sales module package exports.

Always available (no Qt needed):
- Cart, CartLine
- SalesService, SaleResult, SaleState
- build_invoice_document, build_statement_document, render_html, PdfInvoiceRenderer

Qt table models live in .model (SalesTableModel, SaleItemsModel).
"""

from .cart import Cart, CartLine
from .invoice import (
    PdfInvoiceRenderer,
    build_invoice_document,
    build_statement_document,
    render_html,
)
from .service import SaleResult, SaleState, SalesService

__all__ = [
    "Cart",
    "CartLine",
    "SalesService",
    "SaleResult",
    "SaleState",
    "PdfInvoiceRenderer",
    "build_invoice_document",
    "build_statement_document",
    "render_html",
]
