# wholesale_pos/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures); offscreen platform
# - Every test gets its own SQLite file built from schema.SQL
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - A logged-in `session` fixture plus small factories for common rows
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import sqlite3
from pathlib import Path

import pytest

from wholesale_pos.database.repositories.customers_repo import CustomersRepo
from wholesale_pos.database.repositories.lenders_repo import LendersRepo
from wholesale_pos.database.repositories.products_repo import ProductsRepo
from wholesale_pos.database.schema import init_schema
from wholesale_pos.modules.login.model import UserSession


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- DB ----------
@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "wholesale_test.db"
    init_schema(path)
    return path


@pytest.fixture
def conn(db_path: Path):
    con = sqlite3.connect(db_path)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys = ON;")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture
def session(conn) -> UserSession:
    cur = conn.execute(
        "INSERT INTO users(username, password_hash, full_name, role, is_active) "
        "VALUES ('clerk', 'x', 'Till Clerk', 'user', 1)"
    )
    conn.commit()
    return UserSession(user_id=int(cur.lastrowid), username="clerk", full_name="Till Clerk", role="user")


# ---------- Factories ----------
@pytest.fixture
def products(conn) -> ProductsRepo:
    return ProductsRepo(conn)


@pytest.fixture
def make_product(products, session):
    def _make(name="Soap", stock=10, modes=(("Carton", 1, 5000),), category="Toiletries"):
        return products.create(name, category, list(modes), stock=stock, session=session)
    return _make


@pytest.fixture
def make_customer(conn, session):
    repo = CustomersRepo(conn)

    def _make(name="Amina Stores", phone="0803 000 0000", debt=0.0):
        c = repo.create(name, phone, session=session)
        if debt:
            conn.execute("UPDATE customers SET debt=? WHERE customer_id=?", (debt, c.customer_id))
            conn.commit()
            c = repo.get(c.customer_id)
        return c
    return _make


@pytest.fixture
def make_lender(conn, session):
    repo = LendersRepo(conn)

    def _make(name="Bello Distributors", phone=None, address="Kano"):
        return repo.create(name, phone, address, session=session)
    return _make
