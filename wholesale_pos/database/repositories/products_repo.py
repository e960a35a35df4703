# wholesale_pos/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sqlite3
from typing import Iterable, Optional

from ...constants import (
    DEFAULT_SALE_MODE_NAME,
    EPSILON,
    LOW_STOCK_THRESHOLD,
    QTY_PLACES,
)
from ...errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NoSaleModesError,
    NotFoundError,
    ValidationError,
)
from ...modules.login.model import UserSession, require_session
from ...utils.units import parse_multiplier, to_fraction
from ...utils.validators import lenient_price, try_parse_float
from ..transactions import atomic_write

_log = logging.getLogger(__name__)


@dataclass
class SaleMode:
    name: str
    multiplier: float
    price: float


@dataclass
class Product:
    product_id: int | None
    name: str
    category: str | None
    stock: float
    sale_modes: list[SaleMode] = field(default_factory=list)
    price: float = 0.0
    deleted: bool = False
    image_url: str | None = None
    updated_at: str | None = None

    @property
    def primary_mode(self) -> SaleMode:
        return self.sale_modes[0]

    def sale_mode(self, name: str | None) -> SaleMode | None:
        """Mode by name; None picks the primary mode."""
        if name is None:
            return self.primary_mode if self.sale_modes else None
        for m in self.sale_modes:
            if m.name == name:
                return m
        return None


# ---------------------------- pure helpers ----------------------------

def stock_status(stock: float) -> str:
    return "Low Stock" if float(stock or 0) < LOW_STOCK_THRESHOLD else "In Stock"


def current_price(product: Product) -> float:
    """Catalog price used to value goods right now (the primary sale mode's price)."""
    if product.sale_modes:
        return float(product.sale_modes[0].price)
    return float(product.price or 0.0)


def normalize_sale_modes(raw: Iterable) -> list[SaleMode]:
    """
    Build SaleMode rows from form input. Each row may be a SaleMode, a mapping
    with name/multiplier/price, or a (name, multiplier, price) tuple.
    Multipliers go through parse_multiplier(), prices are lenient (bad -> 0).
    """
    modes: list[SaleMode] = []
    seen: set[str] = set()
    for r in raw or ():
        if isinstance(r, SaleMode):
            name, mult, price = r.name, r.multiplier, r.price
        elif isinstance(r, dict):
            name, mult, price = r.get("name"), r.get("multiplier"), r.get("price")
        else:
            name, mult, price = tuple(r) + (None,) * (3 - len(tuple(r)))
        name = (str(name).strip() if name is not None else "") or DEFAULT_SALE_MODE_NAME
        if name in seen:
            raise ValidationError(f"Duplicate sale mode name: {name}")
        seen.add(name)
        modes.append(SaleMode(name=name, multiplier=parse_multiplier(mult), price=lenient_price(price)))
    if not modes:
        raise NoSaleModesError("Add at least one sale mode")
    return modes


def adjust_stock(conn: sqlite3.Connection, product_id: int, delta: float) -> float:
    """
    Additive stock change in BASE units; the only way stock is ever modified.

    Must run inside the caller's transaction (see transactions.atomic_write):
    stock is re-read under the write lock and a change that would drive it
    negative raises InsufficientStockError before anything is written.
    Returns the new stock.
    """
    row = conn.execute(
        "SELECT name, CAST(stock AS REAL) AS stock, deleted FROM products WHERE product_id=?",
        (int(product_id),),
    ).fetchone()
    if row is None or row["deleted"]:
        raise NotFoundError(f"Product {product_id} not found")

    stock = float(row["stock"])
    new_stock = round(stock + float(delta), QTY_PLACES)
    if new_stock < -EPSILON:
        raise InsufficientStockError(
            f"Only {stock:g} units of {row['name']} available in stock",
            product_id=int(product_id),
            available=stock,
            requested=-float(delta),
        )
    conn.execute(
        """
        UPDATE products
           SET stock = MAX(ROUND(stock + ?, ?), 0),
               updated_at = datetime('now', 'localtime')
         WHERE product_id = ?
        """,
        (float(delta), QTY_PLACES, int(product_id)),
    )
    return max(new_stock, 0.0)


class ProductsRepo:
    """
    Product catalog. Products are soft-deleted (deleted=1) so sales history
    keeps resolving; sale modes are stored in position order, position 0 is
    the primary mode whose price is shown in listings.
    """

    _COLS = (
        "product_id, name, category, CAST(price AS REAL) AS price, "
        "CAST(stock AS REAL) AS stock, image_url, deleted, updated_at"
    )

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        # Use Row for named access
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- Queries ----------------------------

    def list_active(self) -> list[Product]:
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM products WHERE deleted = 0 ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return self._hydrate(rows)

    def list_in_stock(self) -> list[Product]:
        """Active products that can be put on an invoice right now."""
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM products "
            "WHERE deleted = 0 AND stock > 0 ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return self._hydrate(rows)

    def search(self, term: str) -> list[Product]:
        """
        Case-insensitive match on name, category or any sale mode name.
        Blank term returns every active product.
        """
        t = (term or "").strip()
        if not t:
            return self.list_active()
        pattern = f"%{t}%"
        rows = self.conn.execute(
            f"""
            SELECT {self._COLS} FROM products p
            WHERE p.deleted = 0 AND (
                p.name LIKE ? OR
                COALESCE(p.category, '') LIKE ? OR
                EXISTS (SELECT 1 FROM sale_modes m
                        WHERE m.product_id = p.product_id AND m.name LIKE ?)
            )
            ORDER BY p.name COLLATE NOCASE
            """,
            (pattern, pattern, pattern),
        ).fetchall()
        return self._hydrate(rows)

    def get(self, product_id: int, *, include_deleted: bool = False) -> Product | None:
        r = self.conn.execute(
            f"SELECT {self._COLS} FROM products WHERE product_id=?",
            (int(product_id),),
        ).fetchone()
        if r is None or (r["deleted"] and not include_deleted):
            return None
        return self._hydrate([r])[0]

    def get_many(self, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = sorted({int(p) for p in product_ids})
        if not ids:
            return {}
        marks = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT {self._COLS} FROM products WHERE product_id IN ({marks})",
            ids,
        ).fetchall()
        return {p.product_id: p for p in self._hydrate(rows)}

    # ---------------------------- Mutations ----------------------------

    def create(
        self,
        name: str,
        category: str | None,
        sale_modes: Iterable,
        stock: float = 0,
        image_url: str | None = None,
        *,
        session: Optional[UserSession],
    ) -> Product:
        require_session(session)
        name_n, category_n = self._normalize_names(name, category)
        modes = normalize_sale_modes(sale_modes)
        ok, opening = try_parse_float(stock or 0)
        if not ok or opening < 0:
            raise InvalidQuantityError("Opening stock must be a number >= 0.")

        with atomic_write(self.conn, "Create product"):
            cur = self.conn.execute(
                "INSERT INTO products(name, category, price, stock, image_url, deleted) "
                "VALUES (?, ?, ?, ?, ?, 0)",
                (name_n, category_n, modes[0].price, round(opening, QTY_PLACES), image_url),
            )
            product_id = int(cur.lastrowid)
            self._write_modes(product_id, modes)

        _log.info("product %s created: %s (%d sale modes)", product_id, name_n, len(modes))
        return self.get(product_id)  # type: ignore[return-value]

    def update(
        self,
        product_id: int,
        name: str,
        category: str | None,
        sale_modes: Iterable,
        image_url: str | None = None,
        *,
        session: Optional[UserSession],
    ) -> Product:
        """
        Full overwrite of name/category/sale modes. Stock is never written
        here; use adjust_stock() through a ledger operation.
        """
        require_session(session)
        name_n, category_n = self._normalize_names(name, category)
        modes = normalize_sale_modes(sale_modes)

        with atomic_write(self.conn, "Update product"):
            cur = self.conn.execute(
                "UPDATE products SET name=?, category=?, price=?, image_url=?, "
                "updated_at=datetime('now', 'localtime') WHERE product_id=? AND deleted=0",
                (name_n, category_n, modes[0].price, image_url, int(product_id)),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Product {product_id} not found")
            self.conn.execute("DELETE FROM sale_modes WHERE product_id=?", (int(product_id),))
            self._write_modes(int(product_id), modes)

        _log.info("product %s updated", product_id)
        return self.get(product_id)  # type: ignore[return-value]

    def soft_delete(self, product_id: int, *, session: Optional[UserSession]) -> None:
        require_session(session)
        with atomic_write(self.conn, "Delete product"):
            cur = self.conn.execute(
                "UPDATE products SET deleted=1, updated_at=datetime('now', 'localtime') "
                "WHERE product_id=? AND deleted=0",
                (int(product_id),),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Product {product_id} not found")
        _log.info("product %s deleted (soft)", product_id)

    # ---------------------------- Internals ----------------------------

    @staticmethod
    def _normalize_names(name: str | None, category: str | None) -> tuple[str, str | None]:
        name_n = (name or "").strip()
        if not name_n:
            raise ValidationError("Name cannot be empty.")
        category_n = (category or "").strip() or None
        return name_n, category_n

    def _write_modes(self, product_id: int, modes: list[SaleMode]) -> None:
        self.conn.executemany(
            "INSERT INTO sale_modes(product_id, position, name, multiplier, price) "
            "VALUES (?, ?, ?, ?, ?)",
            [(product_id, i, m.name, m.multiplier, m.price) for i, m in enumerate(modes)],
        )

    def _hydrate(self, rows: list[sqlite3.Row]) -> list[Product]:
        if not rows:
            return []
        ids = [int(r["product_id"]) for r in rows]
        marks = ",".join("?" for _ in ids)
        modes_by_product: dict[int, list[SaleMode]] = {}
        for m in self.conn.execute(
            f"SELECT product_id, name, multiplier, price FROM sale_modes "
            f"WHERE product_id IN ({marks}) ORDER BY product_id, position",
            ids,
        ).fetchall():
            modes_by_product.setdefault(int(m["product_id"]), []).append(
                SaleMode(m["name"], parse_multiplier(m["multiplier"]), float(m["price"]))
            )

        out: list[Product] = []
        for r in rows:
            pid = int(r["product_id"])
            price = float(r["price"] or 0.0)
            modes = modes_by_product.get(pid) or [SaleMode(DEFAULT_SALE_MODE_NAME, 1.0, price)]
            out.append(
                Product(
                    product_id=pid,
                    name=r["name"],
                    category=r["category"],
                    stock=float(r["stock"] or 0.0),
                    sale_modes=modes,
                    price=price,
                    deleted=bool(r["deleted"]),
                    image_url=r["image_url"],
                    updated_at=r["updated_at"],
                )
            )
        return out


def sale_modes_label(product: Product) -> str:
    """'Carton (1), Half (1/2)' for tables and exports."""
    return ", ".join(f"{m.name} ({to_fraction(m.multiplier)})" for m in product.sale_modes)
