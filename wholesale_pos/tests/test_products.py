import pytest

from wholesale_pos.database.repositories.products_repo import (
    SaleMode,
    adjust_stock,
    current_price,
    stock_status,
)
from wholesale_pos.database.transactions import atomic_write
from wholesale_pos.errors import (
    AuthenticationError,
    InsufficientStockError,
    InvalidQuantityError,
    NoSaleModesError,
    NotFoundError,
    ValidationError,
)


def test_create_normalizes_sale_modes(products, session):
    p = products.create(
        "  Rice 50kg ",
        " Grains ",
        [
            {"name": " Bag ", "multiplier": "1", "price": "42000"},
            ("", "1/2", 21500),
            SaleMode("Mudu", "1/40", "bad price"),
        ],
        stock=12,
        session=session,
    )
    assert p.name == "Rice 50kg"
    assert p.category == "Grains"
    assert [m.name for m in p.sale_modes] == ["Bag", "Unit", "Mudu"]
    assert p.sale_modes[1].multiplier == 0.5
    assert p.sale_modes[2].multiplier == pytest.approx(0.025)
    assert p.sale_modes[2].price == 0.0
    assert p.price == 42000
    assert p.stock == 12
    assert p.deleted is False


def test_create_requires_name_and_modes(products, session):
    with pytest.raises(ValidationError):
        products.create("   ", None, [("Unit", 1, 10)], session=session)
    with pytest.raises(NoSaleModesError):
        products.create("Sugar", None, [], session=session)


def test_duplicate_sale_mode_names_rejected(products, session):
    with pytest.raises(ValidationError):
        products.create("Oil", None, [("Carton", 1, 10), ("Carton", 0.5, 6)], session=session)


def test_negative_opening_stock_rejected(products, session):
    with pytest.raises(InvalidQuantityError):
        products.create("Oil", None, [("Carton", 1, 10)], stock=-1, session=session)


def test_mutations_require_session(products):
    with pytest.raises(AuthenticationError):
        products.create("Soap", None, [("Carton", 1, 5000)], session=None)


def test_update_overwrites_modes_but_not_stock(products, make_product, session):
    p = make_product(stock=7)
    updated = products.update(
        p.product_id, "Soap Bar", "Cleaning", [("Pack", 1, 5200), ("Half", "1/2", 2700)], session=session
    )
    assert updated.name == "Soap Bar"
    assert [m.name for m in updated.sale_modes] == ["Pack", "Half"]
    assert updated.price == 5200
    assert updated.stock == 7


def test_soft_delete_hides_product_but_keeps_row(products, make_product, session):
    p = make_product()
    products.soft_delete(p.product_id, session=session)
    assert products.get(p.product_id) is None
    assert products.get(p.product_id, include_deleted=True).deleted is True
    assert all(x.product_id != p.product_id for x in products.list_active())
    with pytest.raises(NotFoundError):
        products.soft_delete(p.product_id, session=session)


def test_list_in_stock_and_search(products, make_product):
    soap = make_product("Soap", stock=5)
    make_product("Salt", stock=0, modes=[("Bag", 1, 900)], category="Spices")
    assert [p.name for p in products.list_in_stock()] == [soap.name]
    assert [p.name for p in products.search("spice")] == ["Salt"]
    assert [p.name for p in products.search("carton")] == ["Soap"]
    assert len(products.search("  ")) == 2


def test_product_without_mode_rows_gets_default_unit_mode(conn, products):
    cur = conn.execute("INSERT INTO products(name, price, stock) VALUES ('Legacy', 300, 4)")
    conn.commit()
    p = products.get(cur.lastrowid)
    assert p.sale_modes == [SaleMode("Unit", 1.0, 300.0)]
    assert current_price(p) == 300


def test_adjust_stock_guards_against_negative(conn, products, make_product):
    p = make_product(stock=3)
    with atomic_write(conn, "test"):
        assert adjust_stock(conn, p.product_id, -1.5) == 1.5
    with pytest.raises(InsufficientStockError) as exc:
        with atomic_write(conn, "test"):
            adjust_stock(conn, p.product_id, -2)
    assert exc.value.available == 1.5
    assert products.get(p.product_id).stock == 1.5
    with pytest.raises(NotFoundError):
        with atomic_write(conn, "test"):
            adjust_stock(conn, 9999, 1)


def test_stock_status_threshold():
    assert stock_status(9.99) == "Low Stock"
    assert stock_status(10) == "In Stock"
    assert stock_status(0) == "Low Stock"
