from __future__ import annotations
from dataclasses import dataclass, field
import sqlite3
import time
from typing import Iterable, Optional

from ...constants import INVOICE_PREFIX


@dataclass
class SaleItem:
    product_id: int
    name: str
    qty: float
    price: float            # unit price actually charged (may differ from list price)
    sale_mode_name: str
    multiplier: float

    @property
    def line_total(self) -> float:
        return round(self.qty * self.price, 6)

    @property
    def base_units(self) -> float:
        return round(self.qty * self.multiplier, 6)


@dataclass
class Sale:
    sale_id: int
    invoice_id: str
    customer_id: int | None
    customer_name: str
    items: list[SaleItem] = field(default_factory=list)
    total: float = 0.0
    paid: float = 0.0
    balance: float = 0.0
    date: str | None = None


def next_invoice_id(conn: sqlite3.Connection, now_ms: Optional[int] = None) -> str:
    """
    'INV-<epoch ms>'. When two sales land in the same millisecond the number
    is bumped until it is unused.
    """
    n = int(now_ms if now_ms is not None else time.time() * 1000)
    while conn.execute(
        "SELECT 1 FROM sales WHERE invoice_id=?", (f"{INVOICE_PREFIX}{n}",)
    ).fetchone():
        n += 1
    return f"{INVOICE_PREFIX}{n}"


def insert_sale(
    conn: sqlite3.Connection,
    *,
    invoice_id: str,
    customer_id: int | None,
    customer_name: str,
    items: Iterable[SaleItem],
    total: float,
    paid: float,
    balance: float,
    created_by: int | None = None,
    date: str | None = None,
) -> int:
    """Header + item rows; caller owns the transaction. `date` defaults to now (local)."""
    cur = conn.execute(
        """
        INSERT INTO sales(invoice_id, customer_id, customer_name, total, paid, balance, created_by, date)
        VALUES (?, ?, ?, ?, ?, ?, ?, COALESCE(?, datetime('now', 'localtime')))
        """,
        (invoice_id, customer_id, customer_name, total, paid, balance, created_by, date),
    )
    sale_id = int(cur.lastrowid)
    conn.executemany(
        """
        INSERT INTO sale_items(sale_id, product_id, name, qty, price, sale_mode_name, multiplier)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (sale_id, it.product_id, it.name, it.qty, it.price, it.sale_mode_name, it.multiplier)
            for it in items
        ],
    )
    return sale_id


class SalesRepo:
    """
    Read side of the sales ledger. Sales are written once by
    modules.sales.service.SalesService and never updated afterwards.
    """

    _COLS = (
        "sale_id, invoice_id, customer_id, customer_name, CAST(total AS REAL) AS total, "
        "CAST(paid AS REAL) AS paid, CAST(balance AS REAL) AS balance, date"
    )

    def __init__(self, conn: sqlite3.Connection):
        # ensure rows behave like dicts/tuples
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def _to_sale(self, r: sqlite3.Row) -> Sale:
        return Sale(**dict(r), items=self.items(int(r["sale_id"])))

    def items(self, sale_id: int) -> list[SaleItem]:
        rows = self.conn.execute(
            """
            SELECT product_id, name, CAST(qty AS REAL) AS qty, CAST(price AS REAL) AS price,
                   sale_mode_name, multiplier
            FROM sale_items WHERE sale_id=? ORDER BY item_id
            """,
            (int(sale_id),),
        ).fetchall()
        return [SaleItem(**dict(r)) for r in rows]

    def get(self, sale_id: int) -> Sale | None:
        r = self.conn.execute(
            f"SELECT {self._COLS} FROM sales WHERE sale_id=?", (int(sale_id),)
        ).fetchone()
        return self._to_sale(r) if r else None

    def get_by_invoice(self, invoice_id: str) -> Sale | None:
        r = self.conn.execute(
            f"SELECT {self._COLS} FROM sales WHERE invoice_id=?", (invoice_id,)
        ).fetchone()
        return self._to_sale(r) if r else None

    def list_sales(self) -> list[Sale]:
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM sales ORDER BY date DESC, sale_id DESC"
        ).fetchall()
        return [self._to_sale(r) for r in rows]

    def list_for_customer(self, customer_id: int) -> list[Sale]:
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM sales WHERE customer_id=? ORDER BY date DESC, sale_id DESC",
            (int(customer_id),),
        ).fetchall()
        return [self._to_sale(r) for r in rows]
