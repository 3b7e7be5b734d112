import pytest

import cart
import catalog
from errors import NotFoundError


def _assert_totals(c):
    assert c.total_amount == sum(it.product.price * it.quantity for it in c.items)
    assert c.total_items == sum(it.quantity for it in c.items)


def test_empty_cart_is_synthesised_but_not_persisted(store):
    c = cart.get_cart(store, "u1")
    assert c.user_id == "u1"
    assert c.items == []
    assert c.total_amount == 0
    assert c.total_items == 0
    assert store.get(cart.CARTS, "u1") is None


def test_totals_hold_after_every_mutation(store, make_product):
    kurta = make_product(name="Kurta", price=450)
    saree = make_product(name="Saree", price=1299.5)
    lamp = make_product(name="Lamp", price=75)

    steps = [
        lambda: cart.add_to_cart(store, "u1", kurta, 2),
        lambda: cart.add_to_cart(store, "u1", saree),
        lambda: cart.add_to_cart(store, "u1", kurta, 1),
        lambda: cart.add_to_cart(store, "u1", lamp, 4),
        lambda: cart.set_quantity(store, "u1", lamp, 1),
        lambda: cart.remove_from_cart(store, "u1", saree),
        lambda: cart.set_quantity(store, "u1", kurta, 0),
    ]
    for step in steps:
        returned = step()
        _assert_totals(returned)
        _assert_totals(cart.get_cart(store, "u1"))

    final = cart.get_cart(store, "u1")
    assert [(it.product_id, it.quantity) for it in final.items] == [(lamp, 1)]
    assert final.total_amount == 75
    assert final.total_items == 1


def test_add_existing_product_bumps_quantity(store, make_product):
    pid = make_product(price=100)
    cart.add_to_cart(store, "u1", pid, 1)
    c = cart.add_to_cart(store, "u1", pid, 3)
    assert len(c.items) == 1
    assert c.items[0].quantity == 4
    assert c.total_amount == 400


def test_add_unknown_product(store):
    with pytest.raises(NotFoundError):
        cart.add_to_cart(store, "u1", "missing")
    assert store.get(cart.CARTS, "u1") is None


def test_line_keeps_product_snapshot(store, make_product):
    pid = make_product(price=100)
    cart.add_to_cart(store, "u1", pid)
    catalog.update_product(store, pid, {"price": 250})

    c = cart.set_quantity(store, "u1", pid, 2)
    assert c.items[0].product.price == 100
    assert c.total_amount == 200


def test_negative_quantity_removes_line(store, make_product):
    pid = make_product()
    cart.add_to_cart(store, "u1", pid)
    c = cart.set_quantity(store, "u1", pid, -3)
    assert c.items == []
    assert c.total_items == 0


def test_quantity_above_stock_is_not_rejected(store, make_product):
    pid = make_product(price=10, stock=2)
    c = cart.add_to_cart(store, "u1", pid, 50)
    assert c.total_items == 50


def test_clear_cart(store, make_product):
    pid = make_product()
    cart.add_to_cart(store, "u1", pid, 2)
    c = cart.clear_cart(store, "u1")
    assert c.items == []
    stored = cart.get_cart(store, "u1")
    assert stored.items == []
    assert stored.total_amount == 0


def test_carts_are_per_user(store, make_product):
    pid = make_product(price=10)
    cart.add_to_cart(store, "u1", pid, 1)
    cart.add_to_cart(store, "u2", pid, 5)
    assert cart.get_cart(store, "u1").total_items == 1
    assert cart.get_cart(store, "u2").total_items == 5
