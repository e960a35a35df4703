# wholesale_pos/database/repositories/dashboard_repo.py
from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from pathlib import Path
import sqlite3
from typing import Any, Dict, List, Optional

from ...constants import LOW_STOCK_THRESHOLD
from ...utils.helpers import now_str, to_float
from .products_repo import ProductsRepo, current_price, stock_status

_log = logging.getLogger(__name__)

INVENTORY_CSV_HEADERS = ("Product Name", "Category", "Price", "Stock", "Status")


@dataclass
class DashboardStats:
    total_sales: float
    total_debt: float
    total_owed_to_lenders: float
    low_stock_count: int
    total_customers: int
    total_products: int
    sales_today: int
    today_revenue: float
    revenue_growth: float   # percent, last 7 days vs the 7 before


class DashboardRepo:
    """
    Thin query layer for the Dashboard.

    All methods are read-only. Time windows are computed in Python from
    `now` (local clock) and compared against the stored
    'YYYY-MM-DD HH:MM:SS' text, so callers and tests can pin the clock.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        # Ensure we can access columns by name in a safe, schema-friendly way.
        self.conn.row_factory = sqlite3.Row

    def _scalar(self, sql: str, params: tuple = ()) -> Any:
        row = self.conn.execute(sql, params).fetchone()
        return row[0] if row else None

    def _sales_total(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> float:
        where, params = [], []
        if date_from:
            where.append("date >= ?")
            params.append(date_from)
        if date_to:
            where.append("date < ?")
            params.append(date_to)
        sql = "SELECT COALESCE(SUM(CAST(total AS REAL)), 0.0) FROM sales"
        if where:
            sql += " WHERE " + " AND ".join(where)
        return to_float(self._scalar(sql, tuple(params)))

    def stats(self, now: Optional[datetime] = None) -> DashboardStats:
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        last7 = now - timedelta(days=7)
        prev7 = last7 - timedelta(days=7)

        recent = self._sales_total(now_str(last7))
        previous = self._sales_total(now_str(prev7), now_str(last7))
        growth = ((recent - previous) / previous) * 100 if previous > 0 else 0.0

        today_row = self.conn.execute(
            "SELECT COUNT(*) AS n, COALESCE(SUM(CAST(total AS REAL)), 0.0) AS v "
            "FROM sales WHERE date >= ?",
            (now_str(today),),
        ).fetchone()

        return DashboardStats(
            total_sales=self._sales_total(),
            total_debt=to_float(self._scalar("SELECT COALESCE(SUM(CAST(debt AS REAL)), 0.0) FROM customers")),
            total_owed_to_lenders=to_float(
                self._scalar("SELECT COALESCE(SUM(CAST(total_owed AS REAL)), 0.0) FROM lenders")
            ),
            low_stock_count=int(
                self._scalar(
                    "SELECT COUNT(*) FROM products WHERE deleted = 0 AND stock < ?",
                    (LOW_STOCK_THRESHOLD,),
                )
                or 0
            ),
            total_customers=int(self._scalar("SELECT COUNT(*) FROM customers") or 0),
            total_products=int(self._scalar("SELECT COUNT(*) FROM products WHERE deleted = 0") or 0),
            sales_today=int(today_row["n"]),
            today_revenue=to_float(today_row["v"]),
            revenue_growth=growth,
        )

    # ----------------------------- Inventory export -----------------------------

    def inventory_export_rows(self) -> List[Dict[str, Any]]:
        rows = []
        for p in ProductsRepo(self.conn).list_active():
            rows.append(
                {
                    "Product Name": p.name,
                    "Category": p.category or "N/A",
                    "Price": current_price(p),
                    "Stock": p.stock,
                    "Status": stock_status(p.stock),
                }
            )
        return rows

    def export_inventory_csv(self, path: Path | str) -> Path:
        path = Path(path)
        rows = self.inventory_export_rows()
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(INVENTORY_CSV_HEADERS))
            writer.writeheader()
            writer.writerows(rows)
        _log.info("exported %d products to %s", len(rows), path)
        return path
