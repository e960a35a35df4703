import logging
from pathlib import Path
import sqlite3
import sys

_log = logging.getLogger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- users -------- */
CREATE TABLE IF NOT EXISTS users (
    user_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    username        TEXT UNIQUE NOT NULL,
    password_hash   TEXT NOT NULL,
    full_name       TEXT NOT NULL,
    email           TEXT,
    role            TEXT NOT NULL DEFAULT 'user',
    is_active       INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_date    DATE DEFAULT CURRENT_DATE,
    last_login      TIMESTAMP,
    failed_attempts INTEGER NOT NULL DEFAULT 0,
    locked_until    TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_users_username ON users(username);

/* -------- catalog -------- */
CREATE TABLE IF NOT EXISTS products (
    product_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    category    TEXT,
    price       NUMERIC NOT NULL DEFAULT 0 CHECK (price >= 0),  -- primary sale mode price (listings)
    stock       NUMERIC NOT NULL DEFAULT 0 CHECK (stock >= 0),  -- BASE units, may be fractional
    image_url   TEXT,
    deleted     INTEGER NOT NULL DEFAULT 0 CHECK (deleted IN (0,1)),
    created_at  TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at  TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime'))
);
CREATE INDEX IF NOT EXISTS idx_products_active ON products(deleted, name);

CREATE TABLE IF NOT EXISTS sale_modes (
    sale_mode_id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id   INTEGER NOT NULL,
    position     INTEGER NOT NULL,          -- 0 = primary mode
    name         TEXT    NOT NULL,
    multiplier   REAL    NOT NULL CHECK (multiplier > 0),
    price        REAL    NOT NULL DEFAULT 0 CHECK (price >= 0),
    UNIQUE (product_id, position),
    UNIQUE (product_id, name),
    FOREIGN KEY (product_id) REFERENCES products(product_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_sale_modes_product ON sale_modes(product_id, position);

/* -------- stock ledger (append-only) -------- */
CREATE TABLE IF NOT EXISTS stock_entries (
    entry_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id   INTEGER NOT NULL,
    product_name TEXT    NOT NULL,
    quantity     NUMERIC NOT NULL CHECK (quantity > 0),   -- BASE units added
    added_at     TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    created_by   INTEGER,
    FOREIGN KEY (product_id) REFERENCES products(product_id),
    FOREIGN KEY (created_by) REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_stock_entries_product ON stock_entries(product_id, added_at);

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    name              TEXT NOT NULL,
    phone             TEXT,
    email             TEXT,
    debt              NUMERIC NOT NULL DEFAULT 0 CHECK (debt >= 0),  -- cached running total
    last_payment_date TIMESTAMP,
    last_sale_id      INTEGER,
    created_at        TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at        TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime'))
);
CREATE INDEX IF NOT EXISTS idx_customers_debt ON customers(debt);

CREATE TABLE IF NOT EXISTS lenders (
    lender_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    phone       TEXT,
    address     TEXT,
    total_owed  NUMERIC NOT NULL DEFAULT 0 CHECK (total_owed >= 0),  -- sum of open balances
    created_at  TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at  TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime'))
);

/* -------- sales -------- */
CREATE TABLE IF NOT EXISTS sales (
    sale_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id    TEXT    NOT NULL UNIQUE,
    customer_id   INTEGER,                  -- NULL = anonymous cash customer
    customer_name TEXT    NOT NULL,
    total         NUMERIC NOT NULL CHECK (total >= 0),
    paid          NUMERIC NOT NULL CHECK (paid >= 0),
    balance       NUMERIC NOT NULL CHECK (balance >= 0),
    date          TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    created_by    INTEGER,
    CHECK (ABS(balance - (total - paid)) < 1e-6),
    CHECK (balance < 1e-9 OR customer_id IS NOT NULL),  -- no anonymous credit
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (created_by)  REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_sales_date     ON sales(date);
CREATE INDEX IF NOT EXISTS idx_sales_customer ON sales(customer_id, date);

CREATE TABLE IF NOT EXISTS sale_items (
    item_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    sale_id        INTEGER NOT NULL,
    product_id     INTEGER NOT NULL,
    name           TEXT    NOT NULL,
    qty            NUMERIC NOT NULL CHECK (qty > 0),
    price          NUMERIC NOT NULL CHECK (price >= 0),   -- edited unit price actually charged
    sale_mode_name TEXT    NOT NULL,
    multiplier     REAL    NOT NULL CHECK (multiplier > 0),
    FOREIGN KEY (sale_id)    REFERENCES sales(sale_id),
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_sale_items_sale    ON sale_items(sale_id);
CREATE INDEX IF NOT EXISTS idx_sale_items_product ON sale_items(product_id);

/* -------- customer payments (append-only) -------- */
CREATE TABLE IF NOT EXISTS payments (
    payment_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id   INTEGER NOT NULL,
    customer_name TEXT    NOT NULL,
    amount        NUMERIC NOT NULL CHECK (amount > 0),
    balance_after NUMERIC NOT NULL CHECK (balance_after >= 0),
    date          TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    created_by    INTEGER,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (created_by)  REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_payments_customer ON payments(customer_id, date);

/* -------- lender borrowing -------- */
CREATE TABLE IF NOT EXISTS borrowing_instances (
    instance_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    lender_id    INTEGER NOT NULL,
    items        TEXT    NOT NULL DEFAULT '',  -- free-text description
    amount_owed  NUMERIC NOT NULL CHECK (amount_owed > 0),
    amount_paid  NUMERIC NOT NULL DEFAULT 0 CHECK (amount_paid >= 0),
    balance      NUMERIC NOT NULL CHECK (balance >= 0),
    date         TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at   TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    created_by   INTEGER,
    CHECK (ABS(balance - (amount_owed - amount_paid)) < 1e-6),
    FOREIGN KEY (lender_id)  REFERENCES lenders(lender_id),
    FOREIGN KEY (created_by) REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_borrowing_lender ON borrowing_instances(lender_id, date);

CREATE TABLE IF NOT EXISTS borrowed_products (
    borrowed_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    instance_id  INTEGER NOT NULL,
    product_id   INTEGER NOT NULL,
    quantity     NUMERIC NOT NULL CHECK (quantity > 0),   -- BASE units received
    FOREIGN KEY (instance_id) REFERENCES borrowing_instances(instance_id),
    FOREIGN KEY (product_id)  REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_borrowed_products_instance ON borrowed_products(instance_id);

CREATE TABLE IF NOT EXISTS debtor_payments (
    payment_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    instance_id  INTEGER NOT NULL,
    lender_id    INTEGER NOT NULL,
    amount       NUMERIC NOT NULL CHECK (amount > 0),
    payment_type TEXT    NOT NULL CHECK (payment_type IN ('cash','transfer','goods')),
    date         TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    created_by   INTEGER,
    FOREIGN KEY (instance_id) REFERENCES borrowing_instances(instance_id),
    FOREIGN KEY (lender_id)   REFERENCES lenders(lender_id),
    FOREIGN KEY (created_by)  REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_debtor_payments_instance ON debtor_payments(instance_id, date);

CREATE TABLE IF NOT EXISTS returned_products (
    returned_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_id   INTEGER NOT NULL,
    product_id   INTEGER NOT NULL,
    quantity     NUMERIC NOT NULL CHECK (quantity > 0),   -- BASE units handed back
    unit_price   NUMERIC NOT NULL CHECK (unit_price >= 0), -- catalog price at time of return
    FOREIGN KEY (payment_id) REFERENCES debtor_payments(payment_id),
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_returned_products_payment ON returned_products(payment_id);

/* -------- logs -------- */
CREATE TABLE IF NOT EXISTS audit_logs (
    log_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER,
    action_type TEXT NOT NULL,
    table_name  TEXT,
    record_id   TEXT,
    details     TEXT,
    created_at  TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
    FOREIGN KEY (user_id) REFERENCES users(user_id)
);


/* ======================== APPEND-ONLY LEDGERS ======================== */
/* Ledger rows are immutable once written; only cached aggregates on
   products/customers/lenders/borrowing_instances change afterwards. */

DROP TRIGGER IF EXISTS trg_stock_entries_no_update;
CREATE TRIGGER trg_stock_entries_no_update
BEFORE UPDATE ON stock_entries
BEGIN
  SELECT RAISE(ABORT, 'stock_entries is append-only');
END;

DROP TRIGGER IF EXISTS trg_stock_entries_no_delete;
CREATE TRIGGER trg_stock_entries_no_delete
BEFORE DELETE ON stock_entries
BEGIN
  SELECT RAISE(ABORT, 'stock_entries is append-only');
END;

DROP TRIGGER IF EXISTS trg_sales_no_update;
CREATE TRIGGER trg_sales_no_update
BEFORE UPDATE ON sales
BEGIN
  SELECT RAISE(ABORT, 'sales are immutable once committed');
END;

DROP TRIGGER IF EXISTS trg_sales_no_delete;
CREATE TRIGGER trg_sales_no_delete
BEFORE DELETE ON sales
BEGIN
  SELECT RAISE(ABORT, 'sales are immutable once committed');
END;

DROP TRIGGER IF EXISTS trg_sale_items_no_update;
CREATE TRIGGER trg_sale_items_no_update
BEFORE UPDATE ON sale_items
BEGIN
  SELECT RAISE(ABORT, 'sale_items are immutable once committed');
END;

DROP TRIGGER IF EXISTS trg_payments_no_update;
CREATE TRIGGER trg_payments_no_update
BEFORE UPDATE ON payments
BEGIN
  SELECT RAISE(ABORT, 'payments is append-only');
END;

DROP TRIGGER IF EXISTS trg_payments_no_delete;
CREATE TRIGGER trg_payments_no_delete
BEFORE DELETE ON payments
BEGIN
  SELECT RAISE(ABORT, 'payments is append-only');
END;

DROP TRIGGER IF EXISTS trg_debtor_payments_no_update;
CREATE TRIGGER trg_debtor_payments_no_update
BEFORE UPDATE ON debtor_payments
BEGIN
  SELECT RAISE(ABORT, 'debtor_payments is append-only');
END;

DROP TRIGGER IF EXISTS trg_debtor_payments_no_delete;
CREATE TRIGGER trg_debtor_payments_no_delete
BEFORE DELETE ON debtor_payments
BEGIN
  SELECT RAISE(ABORT, 'debtor_payments is append-only');
END;


/* ======================== BALANCE GUARDS ======================== */

/* A closed borrowing (balance 0) never reopens; repayments only reduce it. */
DROP TRIGGER IF EXISTS trg_borrowing_balance_non_increasing;
CREATE TRIGGER trg_borrowing_balance_non_increasing
BEFORE UPDATE OF balance ON borrowing_instances
FOR EACH ROW
WHEN CAST(NEW.balance AS REAL) > CAST(OLD.balance AS REAL) + 1e-9
BEGIN
  SELECT RAISE(ABORT, 'borrowing balance can only decrease');
END;

/* Repayments must reference an instance of the same lender. */
DROP TRIGGER IF EXISTS trg_debtor_payments_lender_matches;
CREATE TRIGGER trg_debtor_payments_lender_matches
BEFORE INSERT ON debtor_payments
FOR EACH ROW
BEGIN
  SELECT CASE
    WHEN NOT EXISTS (
      SELECT 1 FROM borrowing_instances b
      WHERE b.instance_id = NEW.instance_id AND b.lender_id = NEW.lender_id
    )
    THEN RAISE(ABORT, 'Repayment lender does not match borrowing instance')
    ELSE 1
  END;
END;
"""


def init_schema(db_path: Path | str = "wholesale.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        # Apply (idempotent) schema
        conn.executescript(SQL)
        conn.commit()
    finally:
        conn.close()
    _log.info("schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "wholesale.db"
    init_schema(target)
