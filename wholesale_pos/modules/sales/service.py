# wholesale_pos/modules/sales/service.py
"""
Committing a cart as a sale.

Flow (SaleState):
    COMPOSING  -> cart is being edited (see cart.Cart)
    VALIDATING -> payment/customer rules checked, nothing written
    COMMITTING -> one IMMEDIATE transaction: sale + items, stock, debt
    COMMITTED  -> stored; invoice document built and handed to the renderer
    REJECTED   -> a validation or storage error stopped the commit

Rendering happens after the transaction; a renderer failure never undoes
the sale and is reported in SaleResult.warnings.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import enum
import logging
import sqlite3
from typing import Any, List, Optional, Protocol

from ...constants import CASH_CUSTOMER_NAME, EPSILON, QTY_PLACES
from ...database.repositories.customers_repo import add_debt
from ...database.repositories.products_repo import adjust_stock
from ...database.repositories.sales_repo import (
    Sale,
    SaleItem,
    SalesRepo,
    insert_sale,
    next_invoice_id,
)
from ...database.transactions import atomic_write
from ...errors import (
    CreditRequiresCustomerError,
    DocumentGenerationError,
    DomainError,
    EmptyCartError,
    InvalidPaymentAmountError,
    NotFoundError,
    OverpaymentRejectedError,
)
from ...utils.validators import try_parse_float
from ..login.model import UserSession, require_session
from .cart import Cart
from .invoice import build_invoice_document

_log = logging.getLogger(__name__)


class SaleState(enum.Enum):
    COMPOSING = "composing"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"


class DocumentRenderer(Protocol):
    def render(self, document: dict) -> Any: ...


@dataclass
class SaleResult:
    sale: Sale
    state: SaleState
    document: dict
    warnings: List[str] = field(default_factory=list)
    output: Any = None      # whatever the renderer returned (e.g. PDF path)


class SalesService:
    def __init__(self, conn: sqlite3.Connection, renderer: Optional[DocumentRenderer] = None):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self.renderer = renderer
        self.repo = SalesRepo(conn)
        self.state = SaleState.COMPOSING

    def commit(
        self,
        cart: Cart,
        *,
        customer_id: Optional[int] = None,
        amount_paid: float = 0,
        session: Optional[UserSession],
    ) -> SaleResult:
        user = require_session(session)
        self.state = SaleState.VALIDATING
        try:
            total, paid, balance, customer_name = self._validate(cart, customer_id, amount_paid)

            self.state = SaleState.COMMITTING
            items = [
                SaleItem(
                    product_id=line.product_id,
                    name=line.name,
                    qty=line.quantity,
                    price=line.unit_price,
                    sale_mode_name=line.sale_mode_name,
                    multiplier=line.multiplier,
                )
                for line in cart.lines
            ]
            with atomic_write(self.conn, "Sale commit"):
                invoice_id = next_invoice_id(self.conn)
                sale_id = insert_sale(
                    self.conn,
                    invoice_id=invoice_id,
                    customer_id=customer_id,
                    customer_name=customer_name,
                    items=items,
                    total=total,
                    paid=paid,
                    balance=balance,
                    created_by=user.user_id,
                )
                for item in items:
                    adjust_stock(self.conn, item.product_id, -item.base_units)
                if balance > EPSILON:
                    add_debt(self.conn, customer_id, balance, sale_id)  # type: ignore[arg-type]
        except DomainError as e:
            self.state = SaleState.REJECTED
            _log.debug("sale rejected: %s", e)
            raise

        self.state = SaleState.COMMITTED
        cart.clear()
        sale = self.repo.get(sale_id)
        _log.info("sale %s committed: total=%g paid=%g balance=%g", invoice_id, total, paid, balance)

        document = build_invoice_document(sale)
        result = SaleResult(sale=sale, state=self.state, document=document)  # type: ignore[arg-type]
        if self.renderer is not None:
            try:
                result.output = self.renderer.render(document)
            except Exception as e:
                err = e if isinstance(e, DocumentGenerationError) else DocumentGenerationError(
                    f"Invoice generation failed: {e}", original=e
                )
                _log.warning("invoice %s could not be generated: %s", invoice_id, err)
                result.warnings.append(str(err))
        return result

    def _validate(self, cart: Cart, customer_id: Optional[int], amount_paid) -> tuple[float, float, float, str]:
        if cart.is_empty:
            raise EmptyCartError("Cart is empty")
        total = cart.total
        ok, paid = try_parse_float(amount_paid or 0)
        if not ok:
            raise InvalidPaymentAmountError(f"Invalid amount paid: {amount_paid!r}")
        paid = round(paid, QTY_PLACES)
        if paid < 0:
            raise InvalidPaymentAmountError("Amount paid cannot be negative.")
        if paid > total + EPSILON:
            raise OverpaymentRejectedError(
                f"Amount paid {paid:g} is more than the invoice total {total:g}."
            )
        paid = min(paid, total)
        balance = round(total - paid, QTY_PLACES)

        if customer_id is None:
            if balance > EPSILON:
                raise CreditRequiresCustomerError(
                    "Select a customer to sell on credit; cash customers must pay in full."
                )
            return total, paid, 0.0, CASH_CUSTOMER_NAME

        row = self.conn.execute(
            "SELECT name FROM customers WHERE customer_id=?", (int(customer_id),)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return total, paid, balance, row["name"]
