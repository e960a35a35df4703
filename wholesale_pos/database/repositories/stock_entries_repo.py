# wholesale_pos/database/repositories/stock_entries_repo.py
from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
from typing import Iterable, Optional

from ...constants import QTY_PLACES
from ...errors import InvalidQuantityError, NotFoundError
from ...modules.login.model import UserSession, require_session
from ...utils.validators import try_parse_float
from ..transactions import atomic_write
from .products_repo import adjust_stock

_log = logging.getLogger(__name__)


@dataclass
class StockEntry:
    entry_id: int
    product_id: int
    product_name: str
    quantity: float
    added_at: str


class StockEntriesRepo:
    """
    Append-only log of stock additions. Each entry and the matching
    products.stock increment are written in the same transaction.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _to_entry(self, r: sqlite3.Row) -> StockEntry:
        return StockEntry(
            entry_id=int(r["entry_id"]),
            product_id=int(r["product_id"]),
            product_name=r["product_name"],
            quantity=float(r["quantity"]),
            added_at=r["added_at"],
        )

    # ---------------------------- writes ----------------------------

    def record_addition(
        self, product_id: int, quantity: float, *, session: Optional[UserSession]
    ) -> StockEntry:
        user = require_session(session)
        ok, qty = try_parse_float(quantity)
        if not ok or qty <= 0:
            raise InvalidQuantityError("Quantity must be greater than 0.")

        with atomic_write(self.conn, "Add stock"):
            entry_id = self._append(int(product_id), qty, user.user_id)

        return self.get(entry_id)  # type: ignore[return-value]

    def add_stock(
        self, rows: Iterable, *, session: Optional[UserSession]
    ) -> list[StockEntry]:
        """
        Batch addition from the "add stock" form. `rows` are
        (product_id, quantity) pairs; rows without a product or with a
        non-positive quantity are skipped. All kept rows land together or
        not at all.
        """
        user = require_session(session)
        valid: list[tuple[int, float]] = []
        for row in rows or ():
            product_id, quantity = (tuple(row) + (None, None))[:2]
            if product_id in (None, ""):
                continue
            ok, qty = try_parse_float(quantity)
            if ok and qty > 0:
                valid.append((int(product_id), qty))
        if not valid:
            raise InvalidQuantityError("Add at least one product row with quantity")

        entry_ids: list[int] = []
        with atomic_write(self.conn, "Add stock batch"):
            for product_id, qty in valid:
                entry_ids.append(self._append(product_id, qty, user.user_id))

        _log.info("stock batch: %d entries added", len(entry_ids))
        return [self.get(e) for e in entry_ids]  # type: ignore[misc]

    def _append(self, product_id: int, qty: float, user_id: int | None) -> int:
        row = self.conn.execute(
            "SELECT name FROM products WHERE product_id=? AND deleted=0",
            (product_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found")
        qty = round(qty, QTY_PLACES)
        cur = self.conn.execute(
            "INSERT INTO stock_entries(product_id, product_name, quantity, created_by) "
            "VALUES (?, ?, ?, ?)",
            (product_id, row["name"], qty, user_id),
        )
        new_stock = adjust_stock(self.conn, product_id, qty)
        _log.info("stock +%g for product %s (now %g)", qty, product_id, new_stock)
        return int(cur.lastrowid)

    # ---------------------------- reads ----------------------------

    def get(self, entry_id: int) -> StockEntry | None:
        r = self.conn.execute(
            "SELECT entry_id, product_id, product_name, CAST(quantity AS REAL) AS quantity, added_at "
            "FROM stock_entries WHERE entry_id=?",
            (int(entry_id),),
        ).fetchone()
        return self._to_entry(r) if r else None

    def list(self, limit: int | None = None) -> list[StockEntry]:
        sql = (
            "SELECT entry_id, product_id, product_name, CAST(quantity AS REAL) AS quantity, added_at "
            "FROM stock_entries ORDER BY added_at DESC, entry_id DESC"
        )
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (int(limit),)
        return [self._to_entry(r) for r in self.conn.execute(sql, params).fetchall()]

    def list_for_product(self, product_id: int) -> list[StockEntry]:
        rows = self.conn.execute(
            "SELECT entry_id, product_id, product_name, CAST(quantity AS REAL) AS quantity, added_at "
            "FROM stock_entries WHERE product_id=? ORDER BY added_at DESC, entry_id DESC",
            (int(product_id),),
        ).fetchall()
        return [self._to_entry(r) for r in rows]
