import pytest

from wholesale_pos.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    UnknownSaleModeError,
)
from wholesale_pos.modules.sales.cart import Cart


@pytest.fixture
def rice(make_product):
    return make_product(
        "Rice", stock=3, modes=[("Bag", 1, 40000), ("Half Bag", "1/2", 21000), ("Mudu", "1/40", 1200)]
    )


def test_add_line_defaults_to_primary_mode_and_merges(products, rice):
    cart = Cart(products)
    cart.add_line(rice.product_id)
    line = cart.add_line(rice.product_id, "Bag")
    assert len(cart.lines) == 1
    assert line.quantity == 2
    assert line.unit_price == 40000
    assert cart.total == 80000


def test_unknown_product_and_mode(products, rice):
    cart = Cart(products)
    with pytest.raises(NotFoundError):
        cart.add_line(9999)
    with pytest.raises(UnknownSaleModeError):
        cart.add_line(rice.product_id, "Crate")
    assert cart.is_empty


def test_stock_check_nets_other_lines_of_same_product(products, rice):
    cart = Cart(products)
    cart.add_line(rice.product_id, "Bag", quantity=2)
    cart.add_line(rice.product_id, "Half Bag", quantity=2)      # 2 + 1 = 3 bags
    assert cart.required_units() == {rice.product_id: 3}
    with pytest.raises(InsufficientStockError):
        cart.add_line(rice.product_id, "Mudu")
    assert cart.required_units() == {rice.product_id: 3}
    with pytest.raises(InsufficientStockError):
        cart.set_quantity(rice.product_id, "Half Bag", 3)
    assert {l.sale_mode_name: l.quantity for l in cart.lines} == {"Bag": 2, "Half Bag": 2}


def test_set_quantity_rejects_below_one(products, rice):
    cart = Cart(products)
    cart.add_line(rice.product_id)
    for bad in (0, 0.5, -2, "x"):
        with pytest.raises(InvalidQuantityError):
            cart.set_quantity(rice.product_id, "Bag", bad)
    assert cart.lines[0].quantity == 1


def test_set_unit_price_is_lenient(products, rice):
    cart = Cart(products)
    cart.add_line(rice.product_id)
    assert cart.set_unit_price(rice.product_id, "Bag", "38500").unit_price == 38500
    assert cart.set_unit_price(rice.product_id, "Bag", "").unit_price == 0
    assert cart.set_unit_price(rice.product_id, "Bag", -10).unit_price == 0


def test_remove_line_by_mode_or_whole_product(products, rice, make_product):
    soap = make_product()
    cart = Cart(products)
    cart.add_line(rice.product_id, "Bag")
    cart.add_line(rice.product_id, "Mudu")
    cart.add_line(soap.product_id)
    cart.remove_line(rice.product_id, "Mudu")
    assert {(l.product_id, l.sale_mode_name) for l in cart.lines} == {
        (rice.product_id, "Bag"),
        (soap.product_id, "Carton"),
    }
    cart.remove_line(rice.product_id)
    assert [l.product_id for l in cart.lines] == [soap.product_id]
    cart.clear()
    assert cart.is_empty and cart.total == 0


def test_adding_more_than_stock_leaves_cart_empty(products, make_product):
    soap = make_product("Soap", stock=1, modes=[("Carton", 1, 5000)])
    cart = Cart(products)
    with pytest.raises(InsufficientStockError):
        cart.add_line(soap.product_id, "Carton", quantity=2)
    assert cart.is_empty
    assert products.get(soap.product_id).stock == 1
