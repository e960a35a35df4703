import csv
import logging

from wholesale_pos.constants import SCHEMA_VERSION
from wholesale_pos.database import get_connection
from wholesale_pos.database.repositories.products_repo import ProductsRepo
from wholesale_pos.database.versioning import get_current_version, set_current_version
from wholesale_pos.main import main
from wholesale_pos.modules.login import authenticate
from wholesale_pos.modules.login.model import UserSession
from wholesale_pos.utils.loggers import get_logger


def test_get_connection_prepares_a_fresh_file(tmp_path):
    conn = get_connection(tmp_path / "nested" / "pos.db")
    try:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert get_current_version(conn) == SCHEMA_VERSION
        assert authenticate(conn, "admin", "admin").role == "admin"
    finally:
        conn.close()


def test_reopening_keeps_version_and_users(tmp_path):
    path = tmp_path / "pos.db"
    conn = get_connection(path)
    set_current_version(conn, "1.0.1")
    conn.close()

    conn = get_connection(path)
    try:
        assert get_current_version(conn) == "1.0.1"
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1
    finally:
        conn.close()


def test_get_logger_does_not_stack_handlers():
    first = get_logger("wholesale_pos.test_bootstrap")
    second = get_logger("wholesale_pos.test_bootstrap", logging.DEBUG)
    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG


def test_cli_prints_summary_and_exports(tmp_path, capsys, monkeypatch):
    # keep the stream handler off the shared package logger while output is captured
    monkeypatch.setattr("wholesale_pos.main.get_logger", lambda name: logging.getLogger(name))
    db = tmp_path / "pos.db"
    conn = get_connection(db)
    cur = conn.execute(
        "INSERT INTO users(username, password_hash, full_name, role, is_active) "
        "VALUES ('clerk', 'x', 'Till Clerk', 'user', 1)"
    )
    conn.commit()
    clerk = UserSession(user_id=int(cur.lastrowid), username="clerk", full_name="Till Clerk", role="user")
    ProductsRepo(conn).create("Sugar", None, [("Bag", 1, 30000)], stock=3, session=clerk)
    conn.close()

    out_csv = tmp_path / "inventory.csv"
    assert main(["--db", str(db), "--export-inventory", str(out_csv)]) == 0

    printed = capsys.readouterr().out
    assert "Products:            1 (1 low stock)" in printed
    with out_csv.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["Product Name"] == "Sugar"
    assert rows[0]["Category"] == "N/A"
    assert rows[0]["Status"] == "Low Stock"
