from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sqlite3
from typing import Optional

from ...constants import EPSILON, QTY_PLACES
from ...errors import InvalidPaymentAmountError, NotFoundError, ValidationError
from ...modules.login.model import UserSession, require_session
from ...utils.validators import try_parse_float
from ..transactions import atomic_write

_log = logging.getLogger(__name__)


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str | None = None
    email: str | None = None
    debt: float = 0.0
    last_payment_date: str | None = None
    last_sale_id: int | None = None
    updated_at: str | None = None


@dataclass
class Payment:
    payment_id: int
    customer_id: int
    customer_name: str
    amount: float
    balance_after: float
    date: str


@dataclass
class StatementEntry:
    date: str
    kind: str            # 'sale' | 'payment'
    reference: str       # invoice id or payment number
    debit: float         # amount charged to the customer
    credit: float        # amount received
    balance: float       # running balance after this row


@dataclass
class CustomerStatement:
    customer: Customer
    entries: list[StatementEntry] = field(default_factory=list)
    total_purchases: float = 0.0
    total_paid: float = 0.0
    closing_balance: float = 0.0


def add_debt(
    conn: sqlite3.Connection, customer_id: int, amount: float, sale_id: int | None = None
) -> float:
    """
    Increase a customer's debt by `amount` inside the caller's transaction.
    Returns the new debt.
    """
    if amount < 0:
        raise InvalidPaymentAmountError("Debt increase cannot be negative.")
    row = conn.execute(
        "SELECT CAST(debt AS REAL) AS debt FROM customers WHERE customer_id=?",
        (int(customer_id),),
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    conn.execute(
        """
        UPDATE customers
           SET debt = ROUND(debt + ?, ?),
               last_sale_id = COALESCE(?, last_sale_id),
               updated_at = datetime('now', 'localtime')
         WHERE customer_id = ?
        """,
        (float(amount), QTY_PLACES, sale_id, int(customer_id)),
    )
    return round(float(row["debt"]) + float(amount), QTY_PLACES)


class CustomersRepo:
    _COLS = (
        "customer_id, name, phone, email, CAST(debt AS REAL) AS debt, "
        "last_payment_date, last_sale_id, updated_at"
    )

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip() or None

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    # ---- Queries ----------------------------------------------------------

    def list_customers(self) -> list[Customer]:
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM customers ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return [Customer(**dict(r)) for r in rows]

    def search(self, term: str) -> list[Customer]:
        """
        Matches using LIKE on id, name, phone and email.
        """
        pattern = f"%{(term or '').strip()}%"
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM customers "
            "WHERE CAST(customer_id AS TEXT) LIKE ? OR name LIKE ? "
            "   OR COALESCE(phone, '') LIKE ? OR COALESCE(email, '') LIKE ? "
            "ORDER BY name COLLATE NOCASE",
            (pattern, pattern, pattern, pattern),
        ).fetchall()
        return [Customer(**dict(r)) for r in rows]

    def debtors(self) -> list[Customer]:
        """Customers who currently owe the business, largest debt first."""
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM customers WHERE debt > ? "
            "ORDER BY debt DESC, name COLLATE NOCASE",
            (EPSILON,),
        ).fetchall()
        return [Customer(**dict(r)) for r in rows]

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            f"SELECT {self._COLS} FROM customers WHERE customer_id=?",
            (int(customer_id),),
        ).fetchone()
        return Customer(**dict(r)) if r else None

    # ---- Commands ---------------------------------------------------------

    def create(
        self,
        name: str,
        phone: str | None = None,
        email: str | None = None,
        *,
        session: Optional[UserSession],
    ) -> Customer:
        require_session(session)
        self._ensure_non_empty(name, "Name")
        with atomic_write(self.conn, "Create customer"):
            cur = self.conn.execute(
                "INSERT INTO customers(name, phone, email, debt) VALUES (?, ?, ?, 0)",
                (name.strip(), self._normalize_text(phone), self._normalize_text(email)),
            )
        customer_id = int(cur.lastrowid)
        _log.info("customer %s created: %s", customer_id, name.strip())
        return self.get(customer_id)  # type: ignore[return-value]

    def record_payment(
        self, customer_id: int, amount: float, *, session: Optional[UserSession]
    ) -> Payment:
        """
        Receive money against a customer's debt. The debt is re-read under the
        write lock, so two concurrent payments cannot together overdraw it.
        """
        user = require_session(session)
        ok, amt = try_parse_float(amount)
        if not ok or amt <= 0:
            raise InvalidPaymentAmountError("Payment amount must be greater than 0.")

        with atomic_write(self.conn, "Record payment"):
            row = self.conn.execute(
                "SELECT name, CAST(debt AS REAL) AS debt FROM customers WHERE customer_id=?",
                (int(customer_id),),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Customer {customer_id} not found")
            debt = float(row["debt"])
            if amt > debt + EPSILON:
                raise InvalidPaymentAmountError(
                    f"Payment {amt:g} exceeds outstanding debt {debt:g}."
                )
            balance_after = max(round(debt - amt, QTY_PLACES), 0.0)
            self.conn.execute(
                """
                UPDATE customers
                   SET debt = MAX(ROUND(debt - ?, ?), 0),
                       last_payment_date = datetime('now', 'localtime'),
                       updated_at = datetime('now', 'localtime')
                 WHERE customer_id = ?
                """,
                (amt, QTY_PLACES, int(customer_id)),
            )
            cur = self.conn.execute(
                "INSERT INTO payments(customer_id, customer_name, amount, balance_after, created_by) "
                "VALUES (?, ?, ?, ?, ?)",
                (int(customer_id), row["name"], amt, balance_after, user.user_id),
            )
            payment_id = int(cur.lastrowid)

        _log.info("payment %s from customer %s: %g (balance %g)", payment_id, customer_id, amt, balance_after)
        return self._get_payment(payment_id)

    # ---- Ledger views -----------------------------------------------------

    def _get_payment(self, payment_id: int) -> Payment:
        r = self.conn.execute(
            "SELECT payment_id, customer_id, customer_name, CAST(amount AS REAL) AS amount, "
            "CAST(balance_after AS REAL) AS balance_after, date FROM payments WHERE payment_id=?",
            (payment_id,),
        ).fetchone()
        return Payment(**dict(r))

    def history(self, customer_id: int) -> list[Payment]:
        rows = self.conn.execute(
            "SELECT payment_id, customer_id, customer_name, CAST(amount AS REAL) AS amount, "
            "CAST(balance_after AS REAL) AS balance_after, date "
            "FROM payments WHERE customer_id=? ORDER BY date DESC, payment_id DESC",
            (int(customer_id),),
        ).fetchall()
        return [Payment(**dict(r)) for r in rows]

    def statement(self, customer_id: int) -> CustomerStatement:
        """
        Sales (debit total, credit paid-at-till) and later payments merged in
        date order with a running balance.
        """
        customer = self.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        rows = self.conn.execute(
            """
            SELECT date, 'sale' AS kind, invoice_id AS reference,
                   CAST(total AS REAL) AS debit, CAST(paid AS REAL) AS credit, 0 AS ord, sale_id AS id
              FROM sales WHERE customer_id = ?
            UNION ALL
            SELECT date, 'payment' AS kind, 'PAY-' || payment_id AS reference,
                   0.0 AS debit, CAST(amount AS REAL) AS credit, 1 AS ord, payment_id AS id
              FROM payments WHERE customer_id = ?
            ORDER BY date, ord, id
            """,
            (int(customer_id), int(customer_id)),
        ).fetchall()

        stmt = CustomerStatement(customer=customer)
        running = 0.0
        for r in rows:
            debit, credit = float(r["debit"]), float(r["credit"])
            running = round(running + debit - credit, QTY_PLACES)
            stmt.total_purchases += debit
            stmt.total_paid += credit
            stmt.entries.append(
                StatementEntry(
                    date=r["date"],
                    kind=r["kind"],
                    reference=r["reference"],
                    debit=debit,
                    credit=credit,
                    balance=running,
                )
            )
        stmt.total_purchases = round(stmt.total_purchases, QTY_PLACES)
        stmt.total_paid = round(stmt.total_paid, QTY_PLACES)
        stmt.closing_balance = running
        return stmt
