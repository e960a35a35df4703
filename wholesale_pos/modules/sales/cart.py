# wholesale_pos/modules/sales/cart.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol, Tuple

from ...constants import EPSILON, QTY_PLACES
from ...database.repositories.products_repo import Product
from ...errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    UnknownSaleModeError,
)
from ...utils.validators import lenient_price, try_parse_float


class Catalog(Protocol):
    def get(self, product_id: int) -> Optional[Product]: ...


@dataclass(frozen=True)
class CartLine:
    product_id: int
    name: str
    sale_mode_name: str
    multiplier: float
    unit_price: float
    quantity: float

    @property
    def key(self) -> Tuple[int, str]:
        return (self.product_id, self.sale_mode_name)

    @property
    def base_units(self) -> float:
        return round(self.quantity * self.multiplier, QTY_PLACES)

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, QTY_PLACES)


class Cart:
    """
    In-memory invoice being composed at the till.

    One line per (product, sale mode). Any change that raises the base units
    drawn from a product is checked against that product's current stock,
    counting the product's other lines too; a rejected change leaves the
    cart exactly as it was. The final check happens again at commit time.
    """

    def __init__(self, catalog: Catalog):
        self._catalog = catalog
        self._lines: Dict[Tuple[int, str], CartLine] = {}

    # ---------- read ----------

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def total(self) -> float:
        return round(sum(line.line_total for line in self._lines.values()), QTY_PLACES)

    def required_units(self) -> Dict[int, float]:
        """Base units needed per product across all its lines."""
        out: Dict[int, float] = {}
        for line in self._lines.values():
            out[line.product_id] = round(out.get(line.product_id, 0.0) + line.base_units, QTY_PLACES)
        return out

    # ---------- write ----------

    def add_line(
        self, product_id: int, sale_mode_name: Optional[str] = None, quantity: float = 1
    ) -> CartLine:
        """Add `quantity` of a sale mode (primary mode when None); merges into an existing line."""
        product = self._product(product_id)
        mode = product.sale_mode(sale_mode_name)
        if mode is None:
            raise UnknownSaleModeError(f"{product.name} has no sale mode named {sale_mode_name!r}")
        qty = self._valid_quantity(quantity)

        key = (product.product_id, mode.name)
        existing = self._lines.get(key)
        if existing is not None:
            line = replace(existing, quantity=existing.quantity + qty)
        else:
            line = CartLine(
                product_id=product.product_id,
                name=product.name,
                sale_mode_name=mode.name,
                multiplier=mode.multiplier,
                unit_price=mode.price,
                quantity=qty,
            )
        self._check_stock(product, line)
        self._lines[key] = line
        return line

    def set_quantity(self, product_id: int, sale_mode_name: str, quantity: float) -> CartLine:
        key = (int(product_id), sale_mode_name)
        existing = self._line(key)
        line = replace(existing, quantity=self._valid_quantity(quantity))
        self._check_stock(self._product(product_id), line)
        self._lines[key] = line
        return line

    def set_unit_price(self, product_id: int, sale_mode_name: str, price) -> CartLine:
        """Price override for this invoice only; blank/bad input becomes 0."""
        key = (int(product_id), sale_mode_name)
        line = replace(self._line(key), unit_price=lenient_price(price))
        self._lines[key] = line
        return line

    def remove_line(self, product_id: int, sale_mode_name: Optional[str] = None) -> None:
        """Drop one line, or every line of the product when no mode is given."""
        pid = int(product_id)
        if sale_mode_name is None:
            for key in [k for k in self._lines if k[0] == pid]:
                del self._lines[key]
        else:
            self._lines.pop((pid, sale_mode_name), None)

    def clear(self) -> None:
        self._lines.clear()

    # ---------- internals ----------

    def _product(self, product_id: int) -> Product:
        product = self._catalog.get(int(product_id))
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def _line(self, key: Tuple[int, str]) -> CartLine:
        line = self._lines.get(key)
        if line is None:
            raise NotFoundError(f"No cart line for product {key[0]} ({key[1]})")
        return line

    @staticmethod
    def _valid_quantity(quantity) -> float:
        ok, qty = try_parse_float(quantity)
        if not ok or qty < 1:
            raise InvalidQuantityError("Quantity must be at least 1.")
        return qty

    def _check_stock(self, product: Product, candidate: CartLine) -> None:
        others = sum(
            line.base_units
            for key, line in self._lines.items()
            if key[0] == candidate.product_id and key != candidate.key
        )
        needed = round(others + candidate.base_units, QTY_PLACES)
        if needed > product.stock + EPSILON:
            raise InsufficientStockError(
                f"Only {product.stock:g} units of {product.name} available in stock",
                product_id=product.product_id,
                available=product.stock,
                requested=needed,
            )
