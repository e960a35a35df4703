from __future__ import annotations

from typing import Any, List, Optional

from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex
from PySide6.QtGui import QColor

from ...database.repositories.products_repo import (
    Product,
    current_price,
    sale_modes_label,
    stock_status,
)
from ...database.repositories.stock_entries_repo import StockEntry
from ...utils.helpers import fmt_money


class ProductsTableModel(QAbstractTableModel):
    """
    Inventory listing. Stock is shown in base units; rows under the
    low-stock threshold are tinted in the Status column.
    """
    HEADERS: List[str] = ["Name", "Category", "Sale Modes", "Price", "Stock", "Status"]

    def __init__(self, rows: Optional[List[Product]] = None) -> None:
        super().__init__()
        self._rows: List[Product] = list(rows or [])

    # ---------- Qt model basics ----------

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return len(self.HEADERS)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        if not index.isValid():
            return None

        p = self._rows[index.row()]
        col = index.column()

        if role in (Qt.DisplayRole, Qt.EditRole):
            if col == 0:
                return p.name
            elif col == 1:
                return p.category or "N/A"
            elif col == 2:
                return sale_modes_label(p)
            elif col == 3:
                return fmt_money(current_price(p))
            elif col == 4:
                return f"{p.stock:g}"
            elif col == 5:
                return stock_status(p.stock)

        if role == Qt.ForegroundRole and col == 5 and stock_status(p.stock) == "Low Stock":
            return QColor("#c0392b")

        if role == Qt.TextAlignmentRole and col in (3, 4):
            return int(Qt.AlignRight | Qt.AlignVCenter)

        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            return self.HEADERS[section] if 0 <= section < len(self.HEADERS) else None
        return section + 1

    # ---------- helpers ----------

    def at(self, row: int) -> Product:
        return self._rows[row]

    def replace(self, rows: List[Product]) -> None:
        self.beginResetModel()
        self._rows = list(rows or [])
        self.endResetModel()


class StockEntriesTableModel(QAbstractTableModel):
    HEADERS: List[str] = ["ID", "Date", "Product", "Qty Added"]

    def __init__(self, rows: Optional[List[StockEntry]] = None) -> None:
        super().__init__()
        self._rows: List[StockEntry] = list(rows or [])

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return len(self.HEADERS)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        if not index.isValid():
            return None
        e = self._rows[index.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            return [e.entry_id, e.added_at, e.product_name, f"{e.quantity:g}"][index.column()]
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            return self.HEADERS[section] if 0 <= section < len(self.HEADERS) else None
        return section + 1

    def replace(self, rows: List[StockEntry]) -> None:
        self.beginResetModel()
        self._rows = list(rows or [])
        self.endResetModel()
