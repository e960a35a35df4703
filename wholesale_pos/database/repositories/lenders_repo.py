from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sqlite3
from typing import Iterable, Optional

from ...constants import EPSILON, QTY_PLACES
from ...errors import (
    InsufficientStockError,
    InvalidPaymentAmountError,
    InvalidQuantityError,
    LenderMismatchError,
    NoReturnedProductsError,
    NotFoundError,
    ValidationError,
)
from ...modules.login.model import UserSession, require_session
from ...utils.validators import try_parse_float
from ..transactions import atomic_write
from .products_repo import ProductsRepo, adjust_stock, current_price

_log = logging.getLogger(__name__)

PAYMENT_TYPES = ("cash", "transfer", "goods")


@dataclass
class Lender:
    lender_id: int | None
    name: str
    phone: str | None = None
    address: str | None = None
    total_owed: float = 0.0


@dataclass
class ProductQty:
    product_id: int
    quantity: float


@dataclass
class BorrowingInstance:
    instance_id: int
    lender_id: int
    items: str
    amount_owed: float
    amount_paid: float
    balance: float
    borrowed_products: list[ProductQty] = field(default_factory=list)
    date: str | None = None

    @property
    def status(self) -> str:
        return "open" if self.balance > EPSILON else "closed"


@dataclass
class DebtorPayment:
    payment_id: int
    instance_id: int
    lender_id: int
    amount: float
    payment_type: str
    returned_products: list[ProductQty] = field(default_factory=list)
    date: str | None = None


def _product_qtys(rows: Iterable, *, error_label: str) -> list[ProductQty]:
    """Accept ProductQty objects or (product_id, quantity) pairs; quantity must be > 0."""
    out: list[ProductQty] = []
    for r in rows or ():
        if isinstance(r, ProductQty):
            pid, qty = r.product_id, r.quantity
        else:
            pid, qty = tuple(r)[:2]
        ok, q = try_parse_float(qty)
        if not ok or q <= 0:
            raise InvalidQuantityError(f"{error_label} quantity must be greater than 0.")
        out.append(ProductQty(int(pid), round(q, QTY_PLACES)))
    return out


class LendersRepo:
    """
    Suppliers who hand over goods on credit. Each delivery is a borrowing
    instance whose balance only goes down; lenders.total_owed caches the sum
    of open balances and moves in the same transaction as the instance.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- lenders ----------------------------

    def create(
        self,
        name: str,
        phone: str | None = None,
        address: str | None = None,
        *,
        session: Optional[UserSession],
    ) -> Lender:
        require_session(session)
        if not (name or "").strip():
            raise ValidationError("Name cannot be empty.")
        with atomic_write(self.conn, "Create lender"):
            cur = self.conn.execute(
                "INSERT INTO lenders(name, phone, address, total_owed) VALUES (?, ?, ?, 0)",
                (name.strip(), (phone or "").strip() or None, (address or "").strip() or None),
            )
        return self.get(int(cur.lastrowid))  # type: ignore[return-value]

    def get(self, lender_id: int) -> Lender | None:
        r = self.conn.execute(
            "SELECT lender_id, name, phone, address, CAST(total_owed AS REAL) AS total_owed "
            "FROM lenders WHERE lender_id=?",
            (int(lender_id),),
        ).fetchone()
        return Lender(**dict(r)) if r else None

    def list_lenders(self) -> list[Lender]:
        rows = self.conn.execute(
            "SELECT lender_id, name, phone, address, CAST(total_owed AS REAL) AS total_owed "
            "FROM lenders ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return [Lender(**dict(r)) for r in rows]

    def total_owed_check(self, lender_id: int) -> float:
        """Sum of instance balances, recomputed from the instances themselves."""
        row = self.conn.execute(
            "SELECT COALESCE(ROUND(SUM(CAST(balance AS REAL)), 6), 0.0) AS s "
            "FROM borrowing_instances WHERE lender_id=?",
            (int(lender_id),),
        ).fetchone()
        return float(row["s"])

    # ---------------------------- borrowing ----------------------------

    def record_borrowing(
        self,
        lender_id: int,
        amount_owed: float,
        borrowed_products: Iterable = (),
        items: str = "",
        *,
        session: Optional[UserSession],
    ) -> BorrowingInstance:
        user = require_session(session)
        ok, owed = try_parse_float(amount_owed)
        if not ok or owed <= 0:
            raise InvalidPaymentAmountError("Amount owed must be greater than 0.")
        products = _product_qtys(borrowed_products, error_label="Borrowed")

        with atomic_write(self.conn, "Record borrowing"):
            if self.get(lender_id) is None:
                raise NotFoundError(f"Lender {lender_id} not found")
            cur = self.conn.execute(
                "INSERT INTO borrowing_instances(lender_id, items, amount_owed, amount_paid, balance, created_by) "
                "VALUES (?, ?, ?, 0, ?, ?)",
                (int(lender_id), (items or "").strip(), owed, owed, user.user_id),
            )
            instance_id = int(cur.lastrowid)
            for p in products:
                self.conn.execute(
                    "INSERT INTO borrowed_products(instance_id, product_id, quantity) VALUES (?, ?, ?)",
                    (instance_id, p.product_id, p.quantity),
                )
                adjust_stock(self.conn, p.product_id, p.quantity)
            self.conn.execute(
                "UPDATE lenders SET total_owed = ROUND(total_owed + ?, ?), "
                "updated_at = datetime('now', 'localtime') WHERE lender_id = ?",
                (owed, QTY_PLACES, int(lender_id)),
            )

        _log.info("borrowing %s from lender %s: %g owed, %d products", instance_id, lender_id, owed, len(products))
        return self.get_instance(instance_id)  # type: ignore[return-value]

    def record_repayment(
        self,
        instance_id: int,
        lender_id: int,
        *,
        payment_type: str,
        amount: float | None = None,
        returned_products: Iterable = (),
        session: Optional[UserSession],
    ) -> DebtorPayment:
        """
        Pay a borrowing back in cash, by transfer, or by handing goods back.

        Goods are valued at today's catalog price (primary sale mode) and
        leave stock in the same transaction; the valuation replaces `amount`.
        """
        user = require_session(session)
        ptype = (payment_type or "").strip().lower()
        if ptype not in PAYMENT_TYPES:
            raise ValidationError(f"Unknown payment type: {payment_type!r}")

        returned: list[ProductQty] = []
        if ptype == "goods":
            returned = _product_qtys(returned_products, error_label="Returned")
            if not returned:
                raise NoReturnedProductsError("Select at least one product to return.")
        else:
            ok, amt = try_parse_float(amount)
            if not ok or amt <= 0:
                raise InvalidPaymentAmountError("Payment amount must be greater than 0.")

        products = ProductsRepo(self.conn)
        with atomic_write(self.conn, "Record repayment"):
            inst = self.conn.execute(
                "SELECT lender_id, CAST(balance AS REAL) AS balance FROM borrowing_instances WHERE instance_id=?",
                (int(instance_id),),
            ).fetchone()
            if inst is None:
                raise NotFoundError(f"Borrowing {instance_id} not found")
            if int(inst["lender_id"]) != int(lender_id):
                raise LenderMismatchError(
                    f"Borrowing {instance_id} does not belong to lender {lender_id}"
                )
            balance = float(inst["balance"])

            priced: list[tuple[ProductQty, float]] = []
            if ptype == "goods":
                for rp in returned:
                    product = products.get(rp.product_id)
                    if product is None:
                        raise NotFoundError(f"Product {rp.product_id} not found")
                    if rp.quantity > product.stock + EPSILON:
                        raise InsufficientStockError(
                            f"Only {product.stock:g} units of {product.name} available in stock",
                            product_id=rp.product_id,
                            available=product.stock,
                            requested=rp.quantity,
                        )
                    priced.append((rp, current_price(product)))
                amt = round(sum(rp.quantity * price for rp, price in priced), QTY_PLACES)
                if amt <= 0:
                    raise InvalidPaymentAmountError("Returned goods have no value at current prices.")

            if amt > balance + EPSILON:
                raise InvalidPaymentAmountError(
                    f"Payment {amt:g} exceeds outstanding balance {balance:g}."
                )

            self.conn.execute(
                """
                UPDATE borrowing_instances
                   SET amount_paid = ROUND(amount_paid + ?, ?),
                       balance     = MAX(ROUND(balance - ?, ?), 0),
                       updated_at  = datetime('now', 'localtime')
                 WHERE instance_id = ?
                """,
                (amt, QTY_PLACES, amt, QTY_PLACES, int(instance_id)),
            )
            self.conn.execute(
                "UPDATE lenders SET total_owed = MAX(ROUND(total_owed - ?, ?), 0), "
                "updated_at = datetime('now', 'localtime') WHERE lender_id = ?",
                (amt, QTY_PLACES, int(lender_id)),
            )
            cur = self.conn.execute(
                "INSERT INTO debtor_payments(instance_id, lender_id, amount, payment_type, created_by) "
                "VALUES (?, ?, ?, ?, ?)",
                (int(instance_id), int(lender_id), amt, ptype, user.user_id),
            )
            payment_id = int(cur.lastrowid)
            for rp, price in priced:
                self.conn.execute(
                    "INSERT INTO returned_products(payment_id, product_id, quantity, unit_price) "
                    "VALUES (?, ?, ?, ?)",
                    (payment_id, rp.product_id, rp.quantity, price),
                )
                adjust_stock(self.conn, rp.product_id, -rp.quantity)

        _log.info("repayment %s on borrowing %s (%s): %g", payment_id, instance_id, ptype, amt)
        return self._get_payment(payment_id)

    # ---------------------------- reads ----------------------------

    _INSTANCE_COLS = (
        "instance_id, lender_id, items, CAST(amount_owed AS REAL) AS amount_owed, "
        "CAST(amount_paid AS REAL) AS amount_paid, CAST(balance AS REAL) AS balance, date"
    )

    def _to_instance(self, r: sqlite3.Row) -> BorrowingInstance:
        borrowed = [
            ProductQty(int(b["product_id"]), float(b["quantity"]))
            for b in self.conn.execute(
                "SELECT product_id, CAST(quantity AS REAL) AS quantity FROM borrowed_products "
                "WHERE instance_id=? ORDER BY borrowed_id",
                (int(r["instance_id"]),),
            ).fetchall()
        ]
        return BorrowingInstance(**dict(r), borrowed_products=borrowed)

    def get_instance(self, instance_id: int) -> BorrowingInstance | None:
        r = self.conn.execute(
            f"SELECT {self._INSTANCE_COLS} FROM borrowing_instances WHERE instance_id=?",
            (int(instance_id),),
        ).fetchone()
        return self._to_instance(r) if r else None

    def instances(self, lender_id: int) -> list[BorrowingInstance]:
        rows = self.conn.execute(
            f"SELECT {self._INSTANCE_COLS} FROM borrowing_instances "
            "WHERE lender_id=? ORDER BY date DESC, instance_id DESC",
            (int(lender_id),),
        ).fetchall()
        return [self._to_instance(r) for r in rows]

    def open_instances(self, lender_id: int) -> list[BorrowingInstance]:
        return [i for i in self.instances(lender_id) if i.status == "open"]

    def _get_payment(self, payment_id: int) -> DebtorPayment:
        r = self.conn.execute(
            "SELECT payment_id, instance_id, lender_id, CAST(amount AS REAL) AS amount, "
            "payment_type, date FROM debtor_payments WHERE payment_id=?",
            (int(payment_id),),
        ).fetchone()
        returned = [
            ProductQty(int(x["product_id"]), float(x["quantity"]))
            for x in self.conn.execute(
                "SELECT product_id, CAST(quantity AS REAL) AS quantity FROM returned_products "
                "WHERE payment_id=? ORDER BY returned_id",
                (int(payment_id),),
            ).fetchall()
        ]
        return DebtorPayment(**dict(r), returned_products=returned)

    def payments(self, instance_id: int) -> list[DebtorPayment]:
        ids = self.conn.execute(
            "SELECT payment_id FROM debtor_payments WHERE instance_id=? "
            "ORDER BY date DESC, payment_id DESC",
            (int(instance_id),),
        ).fetchall()
        return [self._get_payment(int(r["payment_id"])) for r in ids]
