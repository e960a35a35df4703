# wholesale_pos/main.py
import argparse
import sys

from .constants import APP_NAME
from .database import get_connection
from .database.repositories.dashboard_repo import DashboardRepo
from .database.versioning import get_current_version
from .errors import DomainError
from .utils.helpers import fmt_money
from .utils.loggers import get_logger


def _print_stats(stats) -> None:
    print(f"{APP_NAME} dashboard")
    print(f"  Total sales:         {fmt_money(stats.total_sales)}")
    print(f"  Customer debt:       {fmt_money(stats.total_debt)}")
    print(f"  Owed to lenders:     {fmt_money(stats.total_owed_to_lenders)}")
    print(f"  Products:            {stats.total_products} ({stats.low_stock_count} low stock)")
    print(f"  Customers:           {stats.total_customers}")
    print(f"  Sales today:         {stats.sales_today} ({fmt_money(stats.today_revenue)})")
    print(f"  Revenue growth (7d): {stats.revenue_growth:.1f}%")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="wholesale-pos", description=f"{APP_NAME} data store summary.")
    parser.add_argument("--db", default=None, help="SQLite file (defaults to $WHOLESALE_POS_DB or the data dir).")
    parser.add_argument("--export-inventory", metavar="PATH", default=None,
                        help="Write the inventory CSV to PATH.")
    args = parser.parse_args(argv)

    log = get_logger("wholesale_pos")

    # DB connection (ensure schema, etc.)
    conn = get_connection(args.db)
    try:
        log.info("database ready, schema version %s", get_current_version(conn))
        repo = DashboardRepo(conn)
        _print_stats(repo.stats())
        if args.export_inventory:
            path = repo.export_inventory_csv(args.export_inventory)
            print(f"Inventory exported to {path}")
    except DomainError as e:
        log.error("%s", e)
        return 1
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
