import re

import pytest

from wholesale_pos.database.repositories.customers_repo import CustomersRepo
from wholesale_pos.database.repositories.sales_repo import SalesRepo
from wholesale_pos.errors import (
    AuthenticationError,
    CreditRequiresCustomerError,
    DocumentGenerationError,
    EmptyCartError,
    InsufficientStockError,
    InvalidPaymentAmountError,
    NotFoundError,
    OverpaymentRejectedError,
    PartialCommitError,
)
from wholesale_pos.modules.sales.cart import Cart
from wholesale_pos.modules.sales.service import SaleState, SalesService


class RecordingRenderer:
    def __init__(self):
        self.documents = []

    def render(self, document):
        self.documents.append(document)
        return "rendered"


class BrokenRenderer:
    def render(self, document):
        raise DocumentGenerationError("printer on fire")


def _sales_count(conn):
    return conn.execute("SELECT COUNT(*) FROM sales").fetchone()[0]


def test_cash_sale_commits_and_reduces_stock(conn, products, make_product, session):
    soap = make_product("Soap", stock=10, modes=[("Carton", 1, 5000)])
    cart = Cart(products)
    cart.add_line(soap.product_id, "Carton", quantity=2)

    renderer = RecordingRenderer()
    result = SalesService(conn, renderer).commit(cart, amount_paid=10000, session=session)

    assert result.state is SaleState.COMMITTED
    assert result.sale.balance == 0
    assert result.sale.customer_id is None
    assert result.sale.customer_name == "Cash Customer"
    assert re.fullmatch(r"INV-\d+", result.sale.invoice_id)
    assert products.get(soap.product_id).stock == 8
    assert cart.is_empty
    assert result.output == "rendered"
    assert renderer.documents[0]["invoice_id"] == result.sale.invoice_id
    assert result.warnings == []


def test_stock_drops_by_multiplier_times_quantity(conn, products, make_product, session):
    rice = make_product("Rice", stock=5, modes=[("Bag", 1, 40000), ("Half Bag", "1/2", 21000)])
    cart = Cart(products)
    cart.add_line(rice.product_id, "Bag", quantity=2)
    cart.add_line(rice.product_id, "Half Bag", quantity=3)
    SalesService(conn).commit(cart, amount_paid=cart.total, session=session)
    assert products.get(rice.product_id).stock == pytest.approx(5 - 2 - 1.5)


def test_edited_price_is_persisted_and_totals_add_up(conn, products, make_product, make_customer, session):
    soap = make_product()
    cust = make_customer()
    cart = Cart(products)
    cart.add_line(soap.product_id, quantity=3)
    cart.set_unit_price(soap.product_id, "Carton", 4500)

    result = SalesService(conn).commit(cart, customer_id=cust.customer_id, amount_paid=5000, session=session)
    sale = SalesRepo(conn).get(result.sale.sale_id)

    assert sale.items[0].price == 4500
    assert sale.total == sum(i.qty * i.price for i in sale.items) == 13500
    assert sale.balance == sale.total - sale.paid == 8500
    customer = CustomersRepo(conn).get(cust.customer_id)
    assert customer.debt == 8500
    assert customer.last_sale_id == sale.sale_id


def test_validation_order(conn, products, make_product, session):
    soap = make_product()
    service = SalesService(conn)
    with pytest.raises(EmptyCartError):
        service.commit(Cart(products), session=session)
    assert service.state is SaleState.REJECTED

    cart = Cart(products)
    cart.add_line(soap.product_id)
    with pytest.raises(InvalidPaymentAmountError):
        service.commit(cart, amount_paid=-1, session=session)
    for bad in (float("nan"), float("inf"), "abc"):
        with pytest.raises(InvalidPaymentAmountError):
            service.commit(cart, amount_paid=bad, session=session)
    with pytest.raises(OverpaymentRejectedError):
        service.commit(cart, amount_paid=5001, session=session)
    with pytest.raises(CreditRequiresCustomerError):
        service.commit(cart, amount_paid=1000, session=session)
    with pytest.raises(NotFoundError):
        service.commit(cart, customer_id=777, amount_paid=1000, session=session)
    with pytest.raises(AuthenticationError):
        service.commit(cart, amount_paid=5000, session=None)

    assert _sales_count(conn) == 0
    assert not cart.is_empty
    assert products.get(soap.product_id).stock == 10


def test_stock_is_rechecked_inside_the_transaction(conn, products, make_product, make_customer, session):
    soap = make_product(stock=2)
    cust = make_customer()
    cart = Cart(products)
    cart.add_line(soap.product_id, quantity=2)

    # another till sells one carton after this cart was built
    conn.execute("UPDATE products SET stock = 1 WHERE product_id=?", (soap.product_id,))
    conn.commit()

    with pytest.raises(InsufficientStockError):
        SalesService(conn).commit(cart, customer_id=cust.customer_id, amount_paid=0, session=session)

    assert _sales_count(conn) == 0
    assert products.get(soap.product_id).stock == 1
    assert CustomersRepo(conn).get(cust.customer_id).debt == 0
    assert not cart.is_empty


def test_storage_failure_rolls_back_everything(conn, products, make_product, make_customer, session):
    soap = make_product(stock=4)
    cust = make_customer()
    conn.execute(
        "CREATE TRIGGER fail_items BEFORE INSERT ON sale_items "
        "BEGIN SELECT RAISE(ABORT, 'disk full'); END;"
    )
    conn.commit()
    cart = Cart(products)
    cart.add_line(soap.product_id, quantity=2)

    with pytest.raises(PartialCommitError) as exc:
        SalesService(conn).commit(cart, customer_id=cust.customer_id, amount_paid=0, session=session)

    assert exc.value.rolled_back is True
    assert _sales_count(conn) == 0
    assert products.get(soap.product_id).stock == 4
    assert CustomersRepo(conn).get(cust.customer_id).debt == 0


def test_renderer_failure_keeps_sale(conn, products, make_product, session):
    soap = make_product()
    cart = Cart(products)
    cart.add_line(soap.product_id)
    result = SalesService(conn, BrokenRenderer()).commit(cart, amount_paid=5000, session=session)
    assert result.state is SaleState.COMMITTED
    assert result.warnings == ["printer on fire"]
    assert SalesRepo(conn).get_by_invoice(result.sale.invoice_id) is not None
    assert products.get(soap.product_id).stock == 9


def test_invoice_ids_stay_unique_within_one_millisecond(conn, products, make_product, session, monkeypatch):
    import wholesale_pos.database.repositories.sales_repo as sales_repo

    monkeypatch.setattr(sales_repo.time, "time", lambda: 1_700_000_000.0)
    soap = make_product()
    service = SalesService(conn)
    ids = []
    for _ in range(3):
        cart = Cart(products)
        cart.add_line(soap.product_id)
        ids.append(service.commit(cart, amount_paid=5000, session=session).sale.invoice_id)
    assert ids == ["INV-1700000000000", "INV-1700000000001", "INV-1700000000002"]


def test_sales_are_immutable(conn, products, make_product, session):
    import sqlite3

    soap = make_product()
    cart = Cart(products)
    cart.add_line(soap.product_id)
    sale = SalesService(conn).commit(cart, amount_paid=5000, session=session).sale
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("UPDATE sales SET paid = 0 WHERE sale_id=?", (sale.sale_id,))
    conn.rollback()


def test_sales_repo_listings(conn, products, make_product, make_customer, session):
    soap = make_product()
    cust = make_customer()
    service = SalesService(conn)
    for paid, cid in ((5000, None), (0, cust.customer_id), (5000, cust.customer_id)):
        cart = Cart(products)
        cart.add_line(soap.product_id)
        service.commit(cart, customer_id=cid, amount_paid=paid, session=session)

    repo = SalesRepo(conn)
    all_sales = repo.list_sales()
    assert len(all_sales) == 3
    assert [s.sale_id for s in all_sales] == sorted((s.sale_id for s in all_sales), reverse=True)
    assert len(repo.list_for_customer(cust.customer_id)) == 2
    assert repo.items(all_sales[0].sale_id)[0].sale_mode_name == "Carton"
