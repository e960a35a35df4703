from typing import List

from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex

from ...database.repositories.sales_repo import Sale, SaleItem
from ...utils.helpers import fmt_money
from ...utils.units import describe_sale_mode


class SalesTableModel(QAbstractTableModel):
    HEADERS = ["Invoice", "Date", "Customer", "Items", "Total", "Paid", "Balance"]

    def __init__(self, rows: List[Sale]):
        super().__init__()
        self._rows = list(rows)

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        s = self._rows[index.row()]
        c = index.column()
        if role in (Qt.DisplayRole, Qt.EditRole):
            mapping = [
                s.invoice_id,
                s.date,
                s.customer_name,
                len(s.items),
                fmt_money(s.total),
                fmt_money(s.paid),
                fmt_money(s.balance),
            ]
            return mapping[c] if c < len(mapping) else None
        if role == Qt.TextAlignmentRole and c >= 3:
            return int(Qt.AlignRight | Qt.AlignVCenter)
        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section] if section < len(self.HEADERS) else None
        return super().headerData(section, orientation, role)

    def at(self, row: int) -> Sale:
        return self._rows[row]

    def replace(self, rows: List[Sale]):
        self.beginResetModel()
        self._rows = list(rows)
        self.endResetModel()


class SaleItemsModel(QAbstractTableModel):
    HEADERS = ["#", "Product", "Sale Mode", "Qty", "Unit Price", "Line Total"]

    def __init__(self, rows: List[SaleItem]):
        super().__init__()
        self._rows = list(rows)

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def data(self, idx, role=Qt.DisplayRole):
        if not idx.isValid():
            return None
        r = self._rows[idx.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            m = [idx.row() + 1, r.name, describe_sale_mode(r.sale_mode_name, r.multiplier),
                 f"{r.qty:g}", fmt_money(r.price), fmt_money(r.line_total)]
            return m[idx.column()]
        return None

    def headerData(self, s, o, role=Qt.DisplayRole):
        return self.HEADERS[s] if o == Qt.Horizontal and role == Qt.DisplayRole else super().headerData(s, o, role)

    def replace(self, rows: List[SaleItem]):
        self.beginResetModel()
        self._rows = list(rows)
        self.endResetModel()
