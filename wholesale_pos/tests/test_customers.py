import sqlite3

import pytest

from wholesale_pos.database.repositories.customers_repo import CustomersRepo, add_debt
from wholesale_pos.database.transactions import atomic_write
from wholesale_pos.errors import InvalidPaymentAmountError, NotFoundError, ValidationError
from wholesale_pos.modules.sales.cart import Cart
from wholesale_pos.modules.sales.service import SalesService


def test_create_and_search(conn, session):
    repo = CustomersRepo(conn)
    c = repo.create("  Musa Traders ", " 0803 ", session=session)
    assert c.name == "Musa Traders"
    assert c.phone == "0803"
    assert c.debt == 0
    assert [x.name for x in repo.search("musa")] == ["Musa Traders"]
    with pytest.raises(ValidationError):
        repo.create("   ", session=session)


def test_debtors_lists_only_customers_who_owe(conn, make_customer):
    make_customer("Paid Up")
    owes = make_customer("Owes Money", debt=1200)
    assert [c.customer_id for c in CustomersRepo(conn).debtors()] == [owes.customer_id]


def test_payment_larger_than_debt_is_rejected(conn, make_customer, session):
    cust = make_customer(debt=3000)
    repo = CustomersRepo(conn)
    with pytest.raises(InvalidPaymentAmountError):
        repo.record_payment(cust.customer_id, 5000, session=session)
    assert repo.get(cust.customer_id).debt == 3000
    assert repo.history(cust.customer_id) == []


@pytest.mark.parametrize("amount", [0, -5, "abc"])
def test_non_positive_payment_is_rejected(conn, make_customer, session, amount):
    cust = make_customer(debt=3000)
    with pytest.raises(InvalidPaymentAmountError):
        CustomersRepo(conn).record_payment(cust.customer_id, amount, session=session)


def test_payment_reduces_debt_and_records_balance_after(conn, make_customer, session):
    cust = make_customer(debt=3000)
    repo = CustomersRepo(conn)
    first = repo.record_payment(cust.customer_id, 1000, session=session)
    second = repo.record_payment(cust.customer_id, 2000, session=session)
    assert first.balance_after == 2000
    assert second.balance_after == 0
    after = repo.get(cust.customer_id)
    assert after.debt == 0
    assert after.last_payment_date is not None
    assert [p.payment_id for p in repo.history(cust.customer_id)] == [second.payment_id, first.payment_id]


def test_payment_unknown_customer(conn, session):
    with pytest.raises(NotFoundError):
        CustomersRepo(conn).record_payment(404, 10, session=session)


def test_add_debt_is_additive(conn, make_customer):
    cust = make_customer(debt=100)
    with atomic_write(conn, "test"):
        assert add_debt(conn, cust.customer_id, 50.5) == 150.5
    assert CustomersRepo(conn).get(cust.customer_id).debt == 150.5
    with pytest.raises(InvalidPaymentAmountError):
        add_debt(conn, cust.customer_id, -1)


def test_payments_are_append_only(conn, make_customer, session):
    cust = make_customer(debt=500)
    p = CustomersRepo(conn).record_payment(cust.customer_id, 200, session=session)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("DELETE FROM payments WHERE payment_id=?", (p.payment_id,))
    conn.rollback()


def test_statement_running_balance(conn, products, make_product, make_customer, session):
    soap = make_product(stock=10)
    cust = make_customer()
    service = SalesService(conn)
    cart = Cart(products)
    cart.add_line(soap.product_id, quantity=2)
    service.commit(cart, customer_id=cust.customer_id, amount_paid=4000, session=session)
    repo = CustomersRepo(conn)
    repo.record_payment(cust.customer_id, 1000, session=session)

    stmt = repo.statement(cust.customer_id)
    assert [e.kind for e in stmt.entries] == ["sale", "payment"]
    assert [e.balance for e in stmt.entries] == [6000, 5000]
    assert stmt.total_purchases == 10000
    assert stmt.total_paid == 5000
    assert stmt.closing_balance == repo.get(cust.customer_id).debt == 5000
