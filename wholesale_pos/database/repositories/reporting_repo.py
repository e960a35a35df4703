# wholesale_pos/database/repositories/reporting_repo.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
import sqlite3
from typing import Optional, Sequence

from ...errors import ValidationError
from ...utils.helpers import now_str, parse_timestamp
from ...utils.validators import try_parse_float
from .sales_repo import Sale, SalesRepo

PERIODS = ("all", "today", "week", "month", "year")
AGE_GROUPS = ("today", "this_week", "this_month", "this_year", "older")


@dataclass
class SalesSummary:
    total: float
    count: int
    average: float


def _months_back(d: datetime, months: int) -> datetime:
    """Same day-of-month `months` earlier, clamped to the month's last day."""
    y, m = divmod(d.year * 12 + (d.month - 1) - months, 12)
    last = calendar.monthrange(y, m + 1)[1]
    return d.replace(year=y, month=m + 1, day=min(d.day, last))


def _windows(now: datetime) -> dict[str, datetime]:
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "today": today,
        "week": today - timedelta(days=7),
        "month": _months_back(today, 1),
        "year": _months_back(today, 12),
    }


def _as_day(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_timestamp(str(value).strip())
    if parsed is None:
        raise ValidationError(f"Invalid date: {value!r}")
    return parsed.date()


class SalesHistoryRepo:
    """
    Read-only queries for the sales history screen.

    Notes on date handling:
      • Sales carry local 'YYYY-MM-DD HH:MM:SS' timestamps; every cutoff passed
        to SQLite is rendered the same way so text comparison is exact.
      • `end_date` is inclusive up to 23:59:59 of that day.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self._sales = SalesRepo(conn)

    def filter(
        self,
        period: str = "all",
        start_date: Optional[date | datetime | str] = None,
        end_date: Optional[date | datetime | str] = None,
        customer: Optional[str] = None,
        min_amount: Optional[float | str] = None,
        max_amount: Optional[float | str] = None,
        now: Optional[datetime] = None,
    ) -> list[Sale]:
        """Sales matching every given criterion, newest first."""
        period = (period or "all").lower()
        if period not in PERIODS:
            raise ValidationError(f"Unknown period: {period!r}")
        now = now or datetime.now()

        where: list[str] = []
        params: list = []

        if period != "all":
            where.append("date >= ? AND date <= ?")
            params += [now_str(_windows(now)[period]), now_str(now)]

        if start_date:
            where.append("date >= ?")
            params.append(f"{_as_day(start_date).isoformat()} 00:00:00")
        if end_date:
            where.append("date <= ?")
            params.append(f"{_as_day(end_date).isoformat()} 23:59:59")

        term = (customer or "").strip().lower()
        if term:
            where.append("LOWER(customer_name) LIKE ?")
            params.append(f"%{term}%")

        for bound, op in ((min_amount, ">="), (max_amount, "<=")):
            if bound is None or bound == "":
                continue
            ok, val = try_parse_float(bound)
            if not ok:
                raise ValidationError(f"Invalid amount: {bound!r}")
            where.append(f"CAST(total AS REAL) {op} ?")
            params.append(val)

        sql = "SELECT sale_id FROM sales"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY date DESC, sale_id DESC"

        return [self._sales.get(int(r["sale_id"])) for r in self.conn.execute(sql, params).fetchall()]

    @staticmethod
    def summary(sales: Sequence[Sale]) -> SalesSummary:
        if not sales:
            return SalesSummary(total=0.0, count=0, average=0.0)
        total = round(sum(s.total for s in sales), 6)
        return SalesSummary(total=total, count=len(sales), average=total / len(sales))

    @staticmethod
    def group_by_age(sales: Sequence[Sale], now: Optional[datetime] = None) -> dict[str, list[Sale]]:
        """
        Buckets by age: today, within 7 days, within a month, within a year,
        older. Each sale lands in the first bucket it qualifies for.
        """
        now = now or datetime.now()
        w = _windows(now)
        groups: dict[str, list[Sale]] = {k: [] for k in AGE_GROUPS}
        for s in sales:
            when = parse_timestamp(s.date) or now
            if when >= w["today"]:
                groups["today"].append(s)
            elif when >= w["week"]:
                groups["this_week"].append(s)
            elif when >= w["month"]:
                groups["this_month"].append(s)
            elif when >= w["year"]:
                groups["this_year"].append(s)
            else:
                groups["older"].append(s)
        return groups
